#!/usr/bin/env python3
"""
Entry point running one router of a topology file.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

from .cli import CliShell
from .config import NodeConfig, load_config
from .events import EventLoop
from .router import Router
from .transport import UdpTransport

TRACE = 5


def parse_args(argv: List[str]) -> argparse.Namespace:
  parser = argparse.ArgumentParser(
      description="Distance-vector router with path-vector loop avoidance.",
  )
  parser.add_argument("--router", required=True, help="Router address, e.g. A.1")
  parser.add_argument("--config", default="topo.sample.yaml", help="Topology definition file (YAML)")
  parser.add_argument("--log-level", default="info", choices=["trace", "debug", "info", "warning", "error"])
  parser.add_argument("--hierarchical", action="store_true", default=None, help="Announce only the local network to other areas")
  parser.add_argument("--period", type=float, default=None, help="Seconds between ROUTE announcements")
  parser.add_argument("--no-shell", action="store_true", help="Do not start the interactive shell")
  return parser.parse_args(argv)


def setup_logging(level_name: str) -> None:
  logging.addLevelName(TRACE, "TRACE")
  level = TRACE if level_name == "trace" else logging.getLevelName(level_name.upper())
  if isinstance(level, str):
    level = logging.INFO

  logging.basicConfig(
      level=level,
      format="%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s: %(message)s",
  )


def build_router(node: NodeConfig, loop: EventLoop) -> Router:
  transport = UdpTransport(loop, node.host, node.port)
  router = Router(node.address, transport, node.protocol)
  transport.open(router.handle_datagram)
  for neighbour in node.neighbours:
    if not router.add_neighbour(neighbour.address, neighbour.host, neighbour.port, neighbour.distance):
      logging.warning("configured neighbour %s rejected", neighbour.address)
  return router


def main(argv: Optional[List[str]] = None) -> int:
  args = parse_args(sys.argv[1:] if argv is None else argv)
  setup_logging(args.log_level)

  try:
    node = NodeConfig.from_mapping(args.router, load_config(Path(args.config)))
  except (OSError, ValueError) as exc:
    logging.error("cannot load configuration: %s", exc)
    return 2
  node.protocol = node.protocol.with_overrides(hierarchical=args.hierarchical, period=args.period)

  loop = EventLoop()
  try:
    router = build_router(node, loop)
  except OSError as exc:
    logging.error("cannot open %s:%s: %s", node.host, node.port, exc)
    return 1

  cli = CliShell(router=router)
  cli_thread: Optional[threading.Thread] = None
  if not args.no_shell:
    cli_thread = threading.Thread(target=_run_shell, args=(cli, loop), name="cli", daemon=True)

  logging.info("starting router %s", node.address)
  router.start(loop)
  if cli_thread is not None:
    cli_thread.start()

  try:
    loop.run()
  except KeyboardInterrupt:
    logging.warning("interrupt received, shutting down")
  finally:
    with contextlib.suppress(Exception):
      router.stop()
    with contextlib.suppress(Exception):
      router.transport.close()
    with contextlib.suppress(Exception):
      loop.close()
    cli.stop()
    if cli_thread is not None:
      cli_thread.join(timeout=1)

  return 0


def _run_shell(cli: CliShell, loop: EventLoop) -> None:
  cli.run()
  loop.stop()


if __name__ == "__main__":
  sys.exit(main())
