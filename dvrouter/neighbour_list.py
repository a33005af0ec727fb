"""
Registry of the router's neighbours.

The list is the only place that maps a logical address to a UDP endpoint and
back.  It is shared by the inbound packet handlers, the periodic cycle and
the interactive shell, so every access goes through one re-entrant lock;
packets are always sent after the lock has been released.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Dict, List, Optional

from . import defaults
from .address import Address, AddressList
from .entry import Entry
from .neighbour import Neighbour, Resolver, resolve_host

if TYPE_CHECKING:
  from .counters import PacketCounters
  from .transport import Transport

LOGGER = logging.getLogger(__name__)

_LOOPBACK_NAMES = ("localhost", "::1")


def is_loopback(host: str) -> bool:
  return host in _LOOPBACK_NAMES or host.startswith("127.")


def same_host(first: Optional[str], second: Optional[str]) -> bool:
  """Host equality where every loopback spelling matches every other."""
  if first is None or second is None:
    return False
  if first == second:
    return True
  return is_loopback(first) and is_loopback(second)


class NeighbourList:
  def __init__(
      self,
      local_address: Address,
      transport: "Transport",
      counters: Optional["PacketCounters"] = None,
      *,
      max_neighbours: int = defaults.MAX_NEIGHBOURS,
      max_distance: int = defaults.MAX_DISTANCE,
      resolver: Resolver = resolve_host,
  ) -> None:
    self.local_address = local_address
    self.transport = transport
    self.counters = counters
    self.max_neighbours = max_neighbours
    self.max_distance = max_distance
    self.resolver = resolver
    self._items: Dict[Address, Neighbour] = {}
    self._lock = threading.RLock()

  # --------------------------------------------------------------- mutation
  def add(self, address: Address, host: str, port: int, distance: int, now: Optional[float] = None) -> bool:
    """
    Register (or replace) a neighbour.  Returns ``False`` without sending
    anything when the neighbour is rejected; a newly known neighbour is
    greeted with HELLO.
    """
    if address == self.local_address:
      LOGGER.warning("refusing to add the local address %s as a neighbour", address)
      return False
    if not 1 <= distance <= self.max_distance:
      LOGGER.warning("invalid distance %s for neighbour %s", distance, address)
      return False

    candidate = Neighbour.register(
        address,
        host,
        port,
        distance,
        max_distance=self.max_distance,
        resolver=self.resolver,
        now=now,
    )
    if not candidate.is_valid():
      LOGGER.warning("invalid neighbour data for %s (%s:%s)", address, host, port)
      return False

    with self._lock:
      is_new = address not in self._items
      if is_new and len(self._items) >= self.max_neighbours:
        LOGGER.warning("neighbour list full (%d), %s not added", self.max_neighbours, address)
        return False
      clash = self._find_endpoint(candidate.ip, port)
      if clash is not None and clash.address != address:
        LOGGER.warning("endpoint %s:%s already used by neighbour %s", host, port, clash.address)
        return False
      self._items[address] = candidate

    LOGGER.info("neighbour %s %s at %s:%s distance %s", address, "added" if is_new else "replaced", host, port, distance)
    if is_new:
      candidate.send_hello(self.transport, self.local_address, self.counters)
    return True

  def update(self, address: Address, host: str, port: int, distance: int) -> bool:
    """
    Change the distance of the neighbour registered at ``host:port``.  The new
    address must belong to the same network; an unchanged distance is a no-op
    and reported as ``False``.  The host is resolved with the lock released.
    """
    with self._lock:
      neighbour = self.lookup_endpoint(host, port)
      if neighbour is None:
        LOGGER.warning("no neighbour registered at %s:%s", host, port)
        return False
      if not 1 <= distance <= self.max_distance:
        LOGGER.warning("invalid distance %s for neighbour %s", distance, address)
        return False
      if not address.same_network(neighbour.address):
        LOGGER.warning("address %s does not match %s registered at %s:%s", address, neighbour.address, host, port)
        return False
      if neighbour.distance == distance:
        return False

    candidate = Neighbour.register(
        neighbour.address,
        host,
        port,
        distance,
        max_distance=self.max_distance,
        resolver=self.resolver,
    )

    with self._lock:
      if self._items.get(neighbour.address) is not neighbour:
        LOGGER.warning("neighbour %s changed while %s was resolved, not updated", neighbour.address, host)
        return False
      ok = neighbour.take_endpoint(candidate)
    LOGGER.info("neighbour %s distance set to %s", neighbour.address, distance)
    return ok

  def remove(self, address: Address, send_bye: bool = False) -> bool:
    with self._lock:
      neighbour = self._items.pop(address, None)
    if neighbour is None:
      LOGGER.info("neighbour %s not deleted: unknown", address)
      return False
    self._say_bye(neighbour, send_bye)
    return True

  def remove_neighbour(self, neighbour: Neighbour, send_bye: bool = False) -> bool:
    with self._lock:
      if self._items.get(neighbour.address) is not neighbour:
        return False
      del self._items[neighbour.address]
    self._say_bye(neighbour, send_bye)
    return True

  def clear(self, send_bye: bool = False) -> None:
    with self._lock:
      removed = list(self._items.values())
      self._items.clear()
    for neighbour in removed:
      self._say_bye(neighbour, send_bye)

  def evict_expired(self, now: float, timeout: float) -> List[Neighbour]:
    """Drop neighbours silent for more than ``timeout`` seconds; no BYE is sent."""
    if timeout <= 0:
      return []
    with self._lock:
      expired = [item for item in self._items.values() if item.expired(now, timeout)]
      for neighbour in expired:
        del self._items[neighbour.address]
    for neighbour in expired:
      LOGGER.warning("neighbour %s silent for more than %ss, removed", neighbour.address, timeout)
    return expired

  def _say_bye(self, neighbour: Neighbour, send_bye: bool) -> None:
    if send_bye and neighbour.is_valid():
      neighbour.send_bye(self.transport, self.local_address, self.counters)
    LOGGER.info("neighbour %s removed", neighbour.address)

  # ----------------------------------------------------------------- lookup
  def lookup(self, address: Address) -> Optional[Neighbour]:
    with self._lock:
      return self._items.get(address)

  def lookup_endpoint(self, host: str, port: int) -> Optional[Neighbour]:
    with self._lock:
      return self._find_endpoint(host, port)

  def _find_endpoint(self, host: Optional[str], port: int) -> Optional[Neighbour]:
    for neighbour in self._items.values():
      if neighbour.port != port:
        continue
      if same_host(neighbour.ip, host) or same_host(neighbour.host, host):
        return neighbour
    return None

  def values(self) -> List[Neighbour]:
    with self._lock:
      return list(self._items.values())

  def rows(self) -> List[dict]:
    return [item.row() for item in sorted(self.values(), key=lambda n: str(n.address))]

  def __len__(self) -> int:
    with self._lock:
      return len(self._items)

  def __contains__(self, address: object) -> bool:
    with self._lock:
      return address in self._items

  # ---------------------------------------------------------------- sending
  def broadcast(self, data: bytes, exclude: Optional[Neighbour] = None) -> int:
    sent = 0
    for neighbour in self.values():
      if neighbour is exclude or not neighbour.is_valid():
        continue
      if neighbour.send(self.transport, data):
        sent += 1
    return sent

  def local_vector(self, include_self: bool = False) -> List[Entry]:
    """
    This node's own view: one entry per valid neighbour at its link distance,
    optionally preceded by the local address at distance 0.
    """
    vector: List[Entry] = []
    if include_self:
      vector.append(Entry(self.local_address, 0, AddressList()))
    for neighbour in self.values():
      if neighbour.is_valid():
        vector.append(Entry(neighbour.address, neighbour.distance, AddressList([neighbour.address])))
    return vector
