"""
Binary encoding of the four router packets.

Every datagram starts with a one byte tag followed by big-endian fixed width
fields::

  Address      area:uint16 (character code)  machine:int8
  AddressList  count:int32  Address*count
  Entry        Address  distance:int32  AddressList

  HELLO  tag  sender  distance:int32
  BYE    tag  sender
  ROUTE  tag  sender  ttl:int32  count:int32  Entry*count
  DATA   tag  sender  destination  length:uint16  message  path:AddressList

Decoding validates every field and raises :class:`MessageDecodeError`;
encoding validates the same limits and raises
:class:`MessageValidationError`.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Dict, List, Union

from . import defaults
from .address import Address, AddressList
from .entry import Entry

_TAG = struct.Struct("!B")
_ADDRESS = struct.Struct("!Hb")
_INT = struct.Struct("!i")
_LENGTH = struct.Struct("!H")


class PacketType(IntEnum):
  HELLO = 1
  BYE = 2
  ROUTE = 3
  DATA = 4


class MessageError(ValueError):
  """Base class for wire format errors."""


class MessageValidationError(MessageError):
  """Raised when a packet cannot be encoded because a field is out of range."""


class MessageDecodeError(MessageError):
  """Raised when received bytes do not form a valid packet."""


@dataclass(frozen=True)
class WireLimits:
  max_distance: int = defaults.MAX_DISTANCE
  max_path_len: int = defaults.MAX_PATH_LEN
  max_vector_len: int = defaults.MAX_VECTOR_LEN
  max_message_len: int = defaults.MAX_MESSAGE_LEN


DEFAULT_LIMITS = WireLimits()


class Reader:
  """Cursor over a received datagram."""

  def __init__(self, data: bytes) -> None:
    self._data = bytes(data)
    self._offset = 0

  def unpack(self, fmt: struct.Struct) -> tuple:
    end = self._offset + fmt.size
    if end > len(self._data):
      raise MessageDecodeError(f"packet truncated at byte {self._offset}")
    values = fmt.unpack_from(self._data, self._offset)
    self._offset = end
    return values

  def read_int(self) -> int:
    return self.unpack(_INT)[0]

  def read_bytes(self, count: int) -> bytes:
    end = self._offset + count
    if end > len(self._data):
      raise MessageDecodeError(f"packet truncated: expected {count} bytes at {self._offset}")
    chunk = self._data[self._offset:end]
    self._offset = end
    return chunk

  @property
  def remaining(self) -> int:
    return len(self._data) - self._offset


# ------------------------------------------------------------------ fields

def encode_address(address: Address) -> bytes:
  if not address.is_valid():
    raise MessageValidationError(f"cannot encode invalid address {address!r}")
  return _ADDRESS.pack(ord(address.area), address.machine)


def decode_address(reader: Reader) -> Address:
  code, machine = reader.unpack(_ADDRESS)
  address = Address(chr(code), machine)
  if not address.is_valid():
    raise MessageDecodeError(f"invalid address (area code {code}, machine {machine})")
  return address


def encode_address_list(path: AddressList) -> bytes:
  return _INT.pack(len(path)) + b"".join(encode_address(item) for item in path)


def decode_address_list(reader: Reader) -> AddressList:
  count = reader.read_int()
  if count < 0:
    raise MessageDecodeError(f"invalid path length {count}")
  path = AddressList()
  for _ in range(count):
    path.append(decode_address(reader))
  return path


def encode_entry(entry: Entry, limits: WireLimits = DEFAULT_LIMITS) -> bytes:
  if not 0 <= entry.distance <= limits.max_distance:
    raise MessageValidationError(f"distance {entry.distance} outside [0, {limits.max_distance}]")
  path = entry.path if entry.path is not None else AddressList()
  return encode_address(entry.destination) + _INT.pack(entry.distance) + encode_address_list(path)


def decode_entry(reader: Reader, limits: WireLimits = DEFAULT_LIMITS) -> Entry:
  destination = decode_address(reader)
  distance = reader.read_int()
  if not 0 <= distance <= limits.max_distance:
    raise MessageDecodeError(f"invalid distance {distance}")
  return Entry(destination, distance, decode_address_list(reader))


# ----------------------------------------------------------------- packets

@dataclass
class Hello:
  sender: Address
  distance: int

  packet_type = PacketType.HELLO

  def dumps(self, limits: WireLimits = DEFAULT_LIMITS) -> bytes:
    return _TAG.pack(self.packet_type) + encode_address(self.sender) + _INT.pack(self.distance)


@dataclass
class Bye:
  sender: Address

  packet_type = PacketType.BYE

  def dumps(self, limits: WireLimits = DEFAULT_LIMITS) -> bytes:
    return _TAG.pack(self.packet_type) + encode_address(self.sender)


@dataclass
class Route:
  sender: Address
  ttl: int
  entries: List[Entry] = field(default_factory=list)

  packet_type = PacketType.ROUTE

  def dumps(self, limits: WireLimits = DEFAULT_LIMITS) -> bytes:
    count = len(self.entries)
    if not 1 <= count <= limits.max_vector_len:
      raise MessageValidationError(f"vector length {count} outside [1, {limits.max_vector_len}]")
    if self.ttl < 0:
      raise MessageValidationError(f"negative ttl {self.ttl}")
    parts = [
        _TAG.pack(self.packet_type),
        encode_address(self.sender),
        _INT.pack(self.ttl),
        _INT.pack(count),
    ]
    parts.extend(encode_entry(entry, limits) for entry in self.entries)
    return b"".join(parts)


@dataclass
class Data:
  sender: Address
  destination: Address
  message: bytes
  path: AddressList = field(default_factory=AddressList)

  packet_type = PacketType.DATA

  def dumps(self, limits: WireLimits = DEFAULT_LIMITS) -> bytes:
    if len(self.message) > limits.max_message_len:
      raise MessageValidationError(f"message too long ({len(self.message)}>{limits.max_message_len})")
    if len(self.path) > limits.max_path_len:
      raise MessageValidationError(f"path too long ({len(self.path)}>{limits.max_path_len})")
    return b"".join(
        [
            _TAG.pack(self.packet_type),
            encode_address(self.sender),
            encode_address(self.destination),
            _LENGTH.pack(len(self.message)),
            bytes(self.message),
            encode_address_list(self.path),
        ]
    )

  def text(self) -> str:
    return self.message.decode("utf-8", errors="replace")


Packet = Union[Hello, Bye, Route, Data]


def loads(data: bytes, limits: WireLimits = DEFAULT_LIMITS) -> Packet:
  """
  Decode one datagram.  Raises :class:`MessageDecodeError` on any violation.
  """
  if not isinstance(data, (bytes, bytearray, memoryview)):
    raise MessageDecodeError("data must be bytes-like")
  reader = Reader(data)
  (tag,) = reader.unpack(_TAG)
  try:
    packet_type = PacketType(tag)
  except ValueError as exc:
    raise MessageDecodeError(f"unknown packet tag {tag}") from exc
  return _DECODERS[packet_type](reader, limits)


def _decode_hello(reader: Reader, limits: WireLimits) -> Hello:
  sender = decode_address(reader)
  return Hello(sender=sender, distance=reader.read_int())


def _decode_bye(reader: Reader, limits: WireLimits) -> Bye:
  return Bye(sender=decode_address(reader))


def _decode_route(reader: Reader, limits: WireLimits) -> Route:
  sender = decode_address(reader)
  ttl = reader.read_int()
  if ttl < 0:
    raise MessageDecodeError(f"invalid ttl {ttl}")
  count = reader.read_int()
  if count <= 0 or count > limits.max_vector_len:
    raise MessageDecodeError(f"invalid vector length {count}")
  entries = [decode_entry(reader, limits) for _ in range(count)]
  return Route(sender=sender, ttl=ttl, entries=entries)


def _decode_data(reader: Reader, limits: WireLimits) -> Data:
  sender = decode_address(reader)
  destination = decode_address(reader)
  (length,) = reader.unpack(_LENGTH)
  if length > limits.max_message_len:
    raise MessageDecodeError(f"message too long ({length}>{limits.max_message_len})")
  message = reader.read_bytes(length)
  path = decode_address_list(reader)
  if len(path) > limits.max_path_len:
    raise MessageDecodeError(f"path too long ({len(path)}>{limits.max_path_len})")
  if reader.remaining:
    raise MessageDecodeError(f"{reader.remaining} trailing bytes after path")
  return Data(sender=sender, destination=destination, message=message, path=path)


_DECODERS: Dict[PacketType, Callable[[Reader, WireLimits], Packet]] = {
    PacketType.HELLO: _decode_hello,
    PacketType.BYE: _decode_bye,
    PacketType.ROUTE: _decode_route,
    PacketType.DATA: _decode_data,
}
