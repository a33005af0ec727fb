"""
Interactive shell used to inspect and drive a running router.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from .address import Address, AddressError

LOGGER = logging.getLogger(__name__)

_USAGE = (
    "commands: show routes|neighbours|vector|stats, add <addr> <host> <port> <dist>, "
    "update <addr> <host> <port> <dist>, del <addr>, send <dest> <text...>, announce, quit/exit"
)


class CliShell:
  def __init__(self, router: "Router", prompt: str = "> ") -> None:
    self.router = router
    self.prompt = prompt
    self._running = threading.Event()
    self._running.set()
    self._commands: Dict[str, Callable[[List[str]], None]] = {
        "show": self._cmd_show,
        "add": self._cmd_add,
        "update": self._cmd_update,
        "del": self._cmd_del,
        "send": self._cmd_send,
        "announce": self._cmd_announce,
        "quit": self._cmd_quit,
        "exit": self._cmd_quit,
        "help": self._cmd_help,
    }

  def run(self) -> None:
    while self._running.is_set():
      try:
        line = input(self.prompt)
      except EOFError:
        break
      self.execute(line)

  def execute(self, line: str) -> bool:
    """Run one command line; returns ``False`` for unknown or failed commands."""
    tokens = line.split()
    if not tokens:
      return True
    handler = self._commands.get(tokens[0])
    if handler is None:
      LOGGER.warning("unknown command: %s", tokens[0])
      return False
    try:
      handler(tokens[1:])
    except (AddressError, ValueError) as exc:
      LOGGER.warning("%s: %s", tokens[0], exc)
      return False
    except Exception:
      LOGGER.exception("command failed")
      return False
    return True

  def stop(self) -> None:
    self._running.clear()

  @property
  def running(self) -> bool:
    return self._running.is_set()

  # ----------------------------------------------------------------- commands
  def _cmd_show(self, args: List[str]) -> None:
    if not args:
      LOGGER.info("usage: show <routes|neighbours|vector|stats>")
      return
    views = {
        "routes": self._show_routes,
        "neighbours": self._show_neighbours,
        "neighbors": self._show_neighbours,
        "vector": self._show_vector,
        "stats": self._show_stats,
    }
    view = views.get(args[0])
    if view is None:
      LOGGER.warning("unsupported show topic: %s", args[0])
      return
    view()

  def _cmd_add(self, args: List[str]) -> None:
    address, host, port, distance = _neighbour_args("add", args)
    if self.router.add_neighbour(address, host, port, distance):
      LOGGER.info("neighbour %s added", address)
    else:
      LOGGER.warning("neighbour %s not added", address)

  def _cmd_update(self, args: List[str]) -> None:
    address, host, port, distance = _neighbour_args("update", args)
    if self.router.update_neighbour(address, host, port, distance):
      LOGGER.info("neighbour %s updated", address)
    else:
      LOGGER.warning("neighbour %s not updated", address)

  def _cmd_del(self, args: List[str]) -> None:
    if len(args) != 1:
      raise ValueError("usage: del <addr>")
    address = Address.parse(args[0])
    if self.router.remove_neighbour(address, send_bye=True):
      LOGGER.info("neighbour %s deleted", address)

  def _cmd_send(self, args: List[str]) -> None:
    if len(args) < 2:
      raise ValueError("usage: send <dest> <text...>")
    destination = Address.parse(args[0])
    text = " ".join(args[1:])
    if self.router.send_data(destination, text):
      LOGGER.info("DATA sent to %s", destination)
    else:
      LOGGER.warning("DATA to %s not sent", destination)

  def _cmd_announce(self, _: List[str]) -> None:
    sent = self.router.send_local_route()
    LOGGER.info("ROUTE sent to %d neighbours", sent)

  def _cmd_quit(self, _: List[str]) -> None:
    LOGGER.info("exiting CLI")
    self.stop()

  def _cmd_help(self, _: List[str]) -> None:
    LOGGER.info(_USAGE)

  # ------------------------------------------------------------------- views
  def _show_routes(self) -> None:
    rows = self.router.table.rows()
    if not rows:
      LOGGER.info("routing table empty")
      return
    for row in rows:
      LOGGER.info(
          "%s -> next-hop %s distance %s path %s",
          row["destination"],
          row["next_hop"],
          row["distance"],
          row["path"],
      )

  def _show_neighbours(self) -> None:
    rows = self.router.neighbours.rows()
    if not rows:
      LOGGER.info("no neighbours")
      return
    for row in rows:
      LOGGER.info("%s at %s:%s distance %s", row["address"], row["host"], row["port"], row["distance"])

  def _show_vector(self) -> None:
    vector = self.router.neighbours.local_vector(include_self=True)
    LOGGER.info("local vector: %s", " ; ".join(str(entry) for entry in vector))

  def _show_stats(self) -> None:
    for kind, counts in self.router.counters.snapshot().items():
      LOGGER.info("%-5s sent=%d received=%d", kind, counts["sent"], counts["received"])


def _neighbour_args(command: str, args: List[str]) -> Tuple[Address, str, int, int]:
  if len(args) != 4:
    raise ValueError(f"usage: {command} <addr> <host> <port> <dist>")
  try:
    port = int(args[2])
    distance = int(args[3])
  except ValueError as exc:
    raise ValueError("port and distance must be integers") from exc
  return Address.parse(args[0]), args[1], port, distance


# Avoid circular import
from typing import TYPE_CHECKING

if TYPE_CHECKING:
  from .router import Router
