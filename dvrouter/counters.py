"""
Per packet kind sent/received counters shown by ``show stats``.
"""

from __future__ import annotations

import threading
from typing import Dict

from .message import PacketType


class PacketCounters:
  def __init__(self) -> None:
    self._lock = threading.Lock()
    self._sent: Dict[PacketType, int] = {kind: 0 for kind in PacketType}
    self._received: Dict[PacketType, int] = {kind: 0 for kind in PacketType}

  def sent(self, kind: PacketType, count: int = 1) -> None:
    with self._lock:
      self._sent[kind] += count

  def received(self, kind: PacketType) -> None:
    with self._lock:
      self._received[kind] += 1

  def sent_count(self, kind: PacketType) -> int:
    with self._lock:
      return self._sent[kind]

  def received_count(self, kind: PacketType) -> int:
    with self._lock:
      return self._received[kind]

  def reset(self) -> None:
    with self._lock:
      for kind in PacketType:
        self._sent[kind] = 0
        self._received[kind] = 0

  def snapshot(self) -> Dict[str, Dict[str, int]]:
    with self._lock:
      return {
          kind.name: {"sent": self._sent[kind], "received": self._received[kind]}
          for kind in PacketType
      }
