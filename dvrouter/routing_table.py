"""
Routing table built from scratch every cycle.

A table is filled by the engine, frozen and then published by swapping a
reference.  Readers holding a published table never observe a partial
update.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Union

from .address import Address
from .entry import Entry, RouteEntry

Destination = Union[Address, str]


def _key(destination: Destination) -> str:
  return destination if isinstance(destination, str) else str(destination)


class RoutingTable:
  def __init__(self) -> None:
    self._routes: Dict[str, RouteEntry] = {}
    self._frozen = False

  def add_or_replace(self, route: RouteEntry) -> None:
    if self._frozen:
      raise RuntimeError("routing table is frozen")
    self._routes[_key(route.destination)] = route

  def freeze(self) -> "RoutingTable":
    self._frozen = True
    return self

  @property
  def frozen(self) -> bool:
    return self._frozen

  def lookup(self, destination: Destination) -> Optional[RouteEntry]:
    return self._routes.get(_key(destination))

  def next_hop(self, destination: Destination) -> Optional[Address]:
    route = self.lookup(destination)
    return route.next_hop if route is not None else None

  def vector(self) -> List[Entry]:
    """Entries to advertise in a ROUTE packet."""
    return [route.entry.copy() for route in self._routes.values()]

  def rows(self) -> List[dict]:
    return [self._routes[key].row() for key in sorted(self._routes)]

  def __iter__(self) -> Iterator[RouteEntry]:
    return iter(list(self._routes.values()))

  def __len__(self) -> int:
    return len(self._routes)

  def __contains__(self, destination: object) -> bool:
    if not isinstance(destination, (Address, str)):
      return False
    return _key(destination) in self._routes

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, RoutingTable):
      return NotImplemented
    return self._routes == other._routes

  def __str__(self) -> str:
    return "\n".join(str(self._routes[key]) for key in sorted(self._routes))
