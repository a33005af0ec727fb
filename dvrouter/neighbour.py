"""
State kept for each adjacent router.

A neighbour is configured (or discovered through HELLO) with its logical
address, its UDP endpoint and the link distance.  It only becomes ``VALID``
once the endpoint resolves, the address is valid and the distance is inside
``[1, max_distance]``.  The last ROUTE vector received from it is soft state:
it takes part in route computation only while its TTL has not run out.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from . import defaults
from .address import Address
from .entry import Entry
from .message import Bye, Hello, MessageError

if TYPE_CHECKING:
  from .counters import PacketCounters
  from .transport import Transport

LOGGER = logging.getLogger(__name__)

Endpoint = Tuple[str, int]
Resolver = Callable[[str], str]


def resolve_host(host: str) -> str:
  """Return the IPv4 address for ``host``; raises :class:`OSError` on failure."""
  return socket.gethostbyname(host)


class NeighbourError(RuntimeError):
  """Raised when an operation needs a valid neighbour."""


class NeighbourState(str, Enum):
  REGISTERING = "registering"
  VALID = "valid"
  INVALID = "invalid"


@dataclass(eq=False)
class Neighbour:
  address: Address
  host: str
  port: int
  distance: int
  ip: Optional[str] = None
  state: NeighbourState = NeighbourState.REGISTERING
  vector: Optional[List[Entry]] = None
  vector_time: float = 0.0
  vector_ttl: float = 0.0
  last_heard: float = 0.0

  @classmethod
  def register(
      cls,
      address: Address,
      host: str,
      port: int,
      distance: int,
      *,
      max_distance: int = defaults.MAX_DISTANCE,
      resolver: Resolver = resolve_host,
      now: Optional[float] = None,
  ) -> "Neighbour":
    """
    Build a neighbour and resolve its endpoint.  The returned instance is
    either ``VALID`` or ``INVALID``; callers must check :meth:`is_valid`.
    """
    neighbour = cls(address=address, host=host, port=port, distance=distance)
    neighbour._resolve(resolver, max_distance)
    neighbour.last_heard = time.time() if now is None else now
    return neighbour

  def update(
      self,
      host: str,
      port: int,
      distance: int,
      *,
      max_distance: int = defaults.MAX_DISTANCE,
      resolver: Resolver = resolve_host,
  ) -> bool:
    """Replace endpoint and distance; an unresolvable endpoint invalidates the neighbour."""
    candidate = Neighbour.register(
        self.address, host, port, distance, max_distance=max_distance, resolver=resolver
    )
    return self.take_endpoint(candidate)

  def take_endpoint(self, other: "Neighbour") -> bool:
    """Copy the already resolved endpoint, distance and state of ``other``."""
    self.host = other.host
    self.port = other.port
    self.distance = other.distance
    self.ip = other.ip
    self.state = other.state
    if not self.is_valid():
      self.vector = None
    return self.is_valid()

  def _resolve(self, resolver: Resolver, max_distance: int) -> None:
    self.state = NeighbourState.REGISTERING
    try:
      self.ip = resolver(self.host)
    except (OSError, UnicodeError) as exc:
      LOGGER.warning("cannot resolve neighbour %s host %r: %s", self.address, self.host, exc)
      self.ip = None

    if self.ip is None:
      self.state = NeighbourState.INVALID
    elif not self.address.is_valid():
      LOGGER.warning("neighbour address %r is not valid", self.address)
      self.state = NeighbourState.INVALID
    elif not 1 <= self.distance <= max_distance:
      LOGGER.warning("neighbour %s distance %s outside [1, %s]", self.address, self.distance, max_distance)
      self.state = NeighbourState.INVALID
    elif not 0 < self.port < 65536:
      LOGGER.warning("neighbour %s port %s out of range", self.address, self.port)
      self.state = NeighbourState.INVALID
    else:
      self.state = NeighbourState.VALID

  def is_valid(self) -> bool:
    return self.state == NeighbourState.VALID

  @property
  def endpoint(self) -> Endpoint:
    return (self.ip or self.host, self.port)

  # ------------------------------------------------------------------ vector
  def update_vector(self, entries: List[Entry], ttl: float, now: Optional[float] = None) -> None:
    if not self.is_valid():
      raise NeighbourError(f"cannot store a vector for invalid neighbour {self.address}")
    now = time.time() if now is None else now
    self.vector = list(entries)
    self.vector_time = now
    self.vector_ttl = ttl
    self.last_heard = now

  def vector_valid(self, now: Optional[float] = None) -> bool:
    if self.vector is None:
      return False
    now = time.time() if now is None else now
    return now - self.vector_time <= self.vector_ttl

  def current_vector(self, now: Optional[float] = None) -> Optional[List[Entry]]:
    """The last vector while it is fresh, ``None`` once its TTL ran out."""
    return self.vector if self.vector_valid(now) else None

  # -------------------------------------------------------------- liveness
  def heard(self, now: Optional[float] = None) -> None:
    self.last_heard = time.time() if now is None else now

  def expired(self, now: float, timeout: float) -> bool:
    if timeout <= 0:
      return False
    return now - self.last_heard > timeout

  # --------------------------------------------------------------- sending
  def send(self, transport: "Transport", data: bytes) -> bool:
    try:
      return bool(transport.send(self.endpoint, data))
    except OSError as exc:
      LOGGER.error("send to %s at %s:%s failed: %s", self.address, self.endpoint[0], self.port, exc)
      return False

  def send_hello(
      self,
      transport: "Transport",
      local_address: Address,
      counters: Optional["PacketCounters"] = None,
  ) -> bool:
    return self._send_control(transport, Hello(sender=local_address, distance=self.distance), counters)

  def send_bye(
      self,
      transport: "Transport",
      local_address: Address,
      counters: Optional["PacketCounters"] = None,
  ) -> bool:
    return self._send_control(transport, Bye(sender=local_address), counters)

  def _send_control(self, transport: "Transport", packet, counters: Optional["PacketCounters"]) -> bool:
    try:
      data = packet.dumps()
    except MessageError as exc:
      LOGGER.error("cannot encode %s for %s: %s", packet.packet_type.name, self.address, exc)
      return False
    sent = self.send(transport, data)
    if sent and counters is not None:
      counters.sent(packet.packet_type)
    LOGGER.debug("%s to %s %s", packet.packet_type.name, self.address, "sent" if sent else "failed")
    return sent

  def row(self) -> dict:
    return {
        "address": str(self.address),
        "host": self.host,
        "port": self.port,
        "distance": self.distance,
    }

  def __str__(self) -> str:
    name = str(self.address) if self.address.is_valid() else "INVALID"
    return f"({name} ; {self.host} ; {self.port} ; {self.distance})"
