"""
Router addresses of the form ``<Area>.<Machine>``.

An area is a single upper-case letter ``A``..``Z`` and a machine a digit
``0``..``9``; machine ``0`` names the area (network) itself.  ``0.0`` is the
reserved text of the empty address and never parses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

INVALID_TEXT = "0.0"
_UNSET_AREA = " "
_UNSET_MACHINE = -1


class AddressError(ValueError):
  """Raised when text cannot be parsed into a valid address."""


@dataclass(frozen=True)
class Address:
  area: str = _UNSET_AREA
  machine: int = _UNSET_MACHINE

  @classmethod
  def parse(cls, text: str) -> "Address":
    if not isinstance(text, str) or len(text) != 3:
      raise AddressError(f"address must have the form <Area>.<Machine>: {text!r}")
    if text == INVALID_TEXT:
      raise AddressError("0.0 is the reserved empty address")
    area, sep, machine = text[0], text[1], text[2]
    if sep != ".":
      raise AddressError(f"missing '.' separator in {text!r}")
    if not valid_area(area):
      raise AddressError(f"invalid area {area!r} in {text!r}")
    if not machine.isdigit() or not machine.isascii():
      raise AddressError(f"invalid machine {machine!r} in {text!r}")
    return cls(area, int(machine))

  @classmethod
  def invalid(cls) -> "Address":
    return cls()

  def is_valid(self) -> bool:
    return valid_area(self.area) and valid_machine(self.machine)

  def is_network(self) -> bool:
    return self.is_valid() and self.machine == 0

  def network_address(self) -> "Address":
    return Address(self.area, 0)

  def same_network(self, other: "Address") -> bool:
    return self.area == other.area

  def __str__(self) -> str:
    if not self.is_valid():
      return INVALID_TEXT
    return f"{self.area}.{self.machine}"


def valid_area(area: str) -> bool:
  return isinstance(area, str) and len(area) == 1 and "A" <= area <= "Z"


def valid_machine(machine: int) -> bool:
  return isinstance(machine, int) and 0 <= machine <= 9


class AddressList:
  """
  Ordered sequence of addresses, used both as a path vector in routing
  entries and as the hop trace of a DATA packet.
  """

  def __init__(self, addresses: Optional[Iterable[Address]] = None) -> None:
    self._items: List[Address] = list(addresses or [])

  @classmethod
  def parse(cls, text: str) -> "AddressList":
    text = text.strip()
    if not (text.startswith("[") and text.endswith("]")):
      raise AddressError(f"address list must be enclosed in brackets: {text!r}")
    body = text[1:-1].strip()
    if not body:
      return cls()
    return cls(Address.parse(part.strip()) for part in body.split(","))

  def insert_head(self, address: Address) -> None:
    self._items.insert(0, address)

  def append(self, address: Address) -> None:
    self._items.append(address)

  def remove_at(self, index: int) -> Address:
    return self._items.pop(index)

  def clear(self) -> None:
    self._items.clear()

  def index_of(self, address: Address) -> int:
    for idx, item in enumerate(self._items):
      if item == address:
        return idx
    return -1

  def copy(self) -> "AddressList":
    return AddressList(self._items)

  def flatten(self, local_network: Optional[Address] = None) -> "AddressList":
    """
    Return a new list where every hop outside ``local_network`` is replaced
    by its network address and consecutive hops of the same foreign network
    collapse into one.  With ``local_network=None`` every hop is collapsed.
    """
    result = AddressList()
    for item in self._items:
      if local_network is not None and item.same_network(local_network):
        hop = item
      else:
        hop = item.network_address()
      if result and result[-1] == hop:
        continue
      result.append(hop)
    return result

  def __getitem__(self, index: int) -> Address:
    return self._items[index]

  def __len__(self) -> int:
    return len(self._items)

  def __iter__(self) -> Iterator[Address]:
    return iter(self._items)

  def __contains__(self, address: object) -> bool:
    return address in self._items

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, AddressList):
      return NotImplemented
    return self._items == other._items

  def __str__(self) -> str:
    return "[" + ",".join(str(item) for item in self._items) + "]"

  def __repr__(self) -> str:
    return f"AddressList({self})"
