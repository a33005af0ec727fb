"""
Vector elements exchanged in ROUTE packets and the routing table rows built
from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from .address import Address, AddressList


@dataclass
class Entry:
  destination: Address
  distance: int
  path: Optional[AddressList] = field(default_factory=AddressList)

  def copy(self) -> "Entry":
    path = self.path.copy() if self.path is not None else None
    return Entry(self.destination, self.distance, path)

  def same_destination(self, other: "Entry") -> bool:
    return self.destination == other.destination

  def __str__(self) -> str:
    return f"({self.destination},{self.distance},{self.path if self.path is not None else '[]'})"


@dataclass
class RouteEntry:
  """
  A routing table row: the advertised :class:`Entry` plus the neighbour the
  route goes through.  ``next_hop`` is ``None`` for the local node.
  """

  entry: Entry
  next_hop: Optional[Address] = None

  @classmethod
  def build(
      cls,
      destination: Address,
      distance: int,
      next_hop: Optional[Address],
      path: Optional[AddressList] = None,
  ) -> "RouteEntry":
    return cls(Entry(destination, distance, path if path is not None else AddressList()), next_hop)

  @property
  def destination(self) -> Address:
    return self.entry.destination

  @property
  def distance(self) -> int:
    return self.entry.distance

  @property
  def path(self) -> Optional[AddressList]:
    return self.entry.path

  def copy(self) -> "RouteEntry":
    return RouteEntry(self.entry.copy(), self.next_hop)

  def row(self) -> dict:
    return {
        "destination": str(self.destination),
        "next_hop": str(self.next_hop) if self.next_hop is not None else "-",
        "distance": self.distance,
        "path": str(self.path) if self.path is not None else "[]",
    }

  def __str__(self) -> str:
    hop = self.next_hop if self.next_hop is not None else "-"
    return f"({self.destination} : {hop} : {self.distance} : {self.path})"


def vectors_equal(first: Optional[Sequence[Entry]], second: Optional[Sequence[Entry]]) -> bool:
  """
  Compare two vectors regardless of element order.

  Every entry of ``first`` must be paired with a distinct, equal entry of
  ``second``; matched positions of ``second`` are recorded so a repeated entry
  cannot be paired twice.
  """
  if first is second:
    return True
  if first is None or second is None or len(first) != len(second):
    return False
  matched: set[int] = set()
  for candidate in first:
    for idx, other in enumerate(second):
      if idx not in matched and other == candidate:
        matched.add(idx)
        break
    else:
      return False
  return True
