"""
Unit tests for PacketCounters.
"""

import threading

from dvrouter.counters import PacketCounters
from dvrouter.message import PacketType


def test_snapshot_and_reset():
  counters = PacketCounters()
  counters.sent(PacketType.ROUTE, 3)
  counters.received(PacketType.DATA)
  snapshot = counters.snapshot()
  assert snapshot["ROUTE"] == {"sent": 3, "received": 0}
  assert snapshot["DATA"] == {"sent": 0, "received": 1}
  counters.reset()
  assert counters.sent_count(PacketType.ROUTE) == 0
  assert counters.received_count(PacketType.DATA) == 0


def test_concurrent_increments():
  counters = PacketCounters()

  def worker():
    for _ in range(1000):
      counters.received(PacketType.HELLO)

  threads = [threading.Thread(target=worker) for _ in range(4)]
  for thread in threads:
    thread.start()
  for thread in threads:
    thread.join()
  assert counters.received_count(PacketType.HELLO) == 4000
