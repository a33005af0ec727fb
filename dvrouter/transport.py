"""
UDP transport used by the router.

The routing core only needs ``send(endpoint, data)`` and an inbound callback
receiving ``(host, port, data)``; :class:`UdpTransport` provides both on top
of one datagram socket registered with the :class:`~dvrouter.events.EventLoop`.
"""

from __future__ import annotations

import logging
import socket
from typing import Callable, Optional, Protocol, Tuple

from .events import EventLoop

LOGGER = logging.getLogger(__name__)

Endpoint = Tuple[str, int]
ReceiveCallback = Callable[[str, int, bytes], None]

MAX_DATAGRAM = 65535


class Transport(Protocol):
  @property
  def local_endpoint(self) -> Endpoint:
    ...

  def send(self, endpoint: Endpoint, data: bytes) -> bool:
    ...


class UdpTransport:
  def __init__(self, loop: EventLoop, host: str = "0.0.0.0", port: int = 0) -> None:
    self.loop = loop
    self.host = host
    self.port = port
    self._socket: Optional[socket.socket] = None
    self._unregister: Optional[Callable[[], None]] = None
    self._on_receive: Optional[ReceiveCallback] = None

  # ---------------------------------------------------------------- lifecycle
  def open(self, on_receive: ReceiveCallback) -> None:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((self.host, self.port))
    self.port = sock.getsockname()[1]
    self._socket = sock
    self._on_receive = on_receive
    self._unregister = self.loop.register_socket(sock, self._on_readable)
    LOGGER.info("listening on %s:%s", self.host, self.port)

  def close(self) -> None:
    if self._unregister:
      try:
        self._unregister()
      except Exception:
        LOGGER.exception("failed to unregister socket")
      self._unregister = None
    if self._socket:
      try:
        self._socket.close()
      except OSError:
        LOGGER.exception("failed to close socket")
      self._socket = None

  @property
  def local_endpoint(self) -> Endpoint:
    host = "127.0.0.1" if self.host in ("0.0.0.0", "") else self.host
    return (host, self.port)

  # ------------------------------------------------------------------ sending
  def send(self, endpoint: Endpoint, data: bytes) -> bool:
    if self._socket is None:
      LOGGER.warning("socket not open, dropping %d bytes for %s:%s", len(data), *endpoint)
      return False
    try:
      self._socket.sendto(data, endpoint)
    except OSError as exc:
      LOGGER.error("send to %s:%s failed: %s", endpoint[0], endpoint[1], exc)
      return False
    return True

  # ---------------------------------------------------------------- receiving
  def _on_readable(self, sock: socket.socket) -> None:
    try:
      data, addr = sock.recvfrom(MAX_DATAGRAM)
    except OSError as exc:
      LOGGER.error("receive failed: %s", exc)
      return
    if self._on_receive is None:
      return
    self._on_receive(addr[0], addr[1], data)
