"""
Shared fakes: a transport that records datagrams and a resolver that never
touches DNS.
"""

from __future__ import annotations

from typing import List, Tuple

import pytest

from dvrouter.address import Address
from dvrouter.config import ProtocolConfig
from dvrouter.message import loads
from dvrouter.router import Router


class RecordingTransport:
  def __init__(self, endpoint: Tuple[str, int] = ("127.0.0.1", 20011), fail: bool = False) -> None:
    self.endpoint = endpoint
    self.fail = fail
    self.sent: List[Tuple[Tuple[str, int], bytes]] = []

  @property
  def local_endpoint(self) -> Tuple[str, int]:
    return self.endpoint

  def send(self, endpoint, data: bytes) -> bool:
    if self.fail:
      raise OSError("network unreachable")
    self.sent.append((tuple(endpoint), bytes(data)))
    return True

  def packets(self, port=None):
    return [loads(data) for (host, dst), data in self.sent if port is None or dst == port]

  def clear(self) -> None:
    self.sent.clear()


def fake_resolver(host: str) -> str:
  if host == "unresolvable":
    raise OSError("name or service not known")
  if host == "localhost":
    return "127.0.0.1"
  return host


def addr(text: str) -> Address:
  return Address.parse(text)


@pytest.fixture
def transport() -> RecordingTransport:
  return RecordingTransport()


@pytest.fixture
def make_router(transport):
  def build(local: str = "A.1", **config) -> Router:
    return Router(
        addr(local),
        transport,
        ProtocolConfig(**config),
        resolver=fake_resolver,
        clock=lambda: 1000.0,
    )
  return build
