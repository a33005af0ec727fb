"""
Tests for the selector event loop.
"""

import socket
import threading

import pytest

from dvrouter.events import EventLoop


class FakeClock:
  def __init__(self):
    self.now = 100.0

  def __call__(self):
    return self.now


@pytest.fixture
def loop():
  clock = FakeClock()
  event_loop = EventLoop(clock=clock)
  event_loop.fake_clock = clock
  yield event_loop
  event_loop.close()


def test_one_shot_task_runs_once(loop):
  calls = []
  loop.schedule(5, lambda: calls.append("x"))
  assert loop.run_pending() == 0
  loop.fake_clock.now += 5
  assert loop.run_pending() == 1
  loop.fake_clock.now += 5
  assert loop.run_pending() == 0
  assert calls == ["x"]


def test_repeating_task_until_cancelled(loop):
  calls = []
  task = loop.schedule(2, lambda: calls.append(loop.fake_clock.now), repeat=True)
  for _ in range(3):
    loop.fake_clock.now += 2
    loop.run_pending()
  loop.cancel(task)
  loop.fake_clock.now += 2
  loop.run_pending()
  assert calls == [102.0, 104.0, 106.0]
  assert loop.pending() == 0


def test_failing_task_does_not_stop_others(loop):
  calls = []

  def boom():
    raise RuntimeError("boom")

  loop.schedule(0, boom)
  loop.schedule(0, lambda: calls.append("ok"))
  assert loop.run_pending() == 2
  assert calls == ["ok"]


def test_schedule_validation(loop):
  with pytest.raises(ValueError):
    loop.schedule(-1, lambda: None)
  with pytest.raises(ValueError):
    loop.schedule(0, lambda: None, repeat=True)
  with pytest.raises(TypeError):
    loop.schedule(1, "not callable")


def test_socket_callback_and_cross_thread_stop():
  loop = EventLoop()
  received = []
  sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
  receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
  receiver.bind(("127.0.0.1", 0))
  try:
    def on_readable(sock):
      received.append(sock.recv(64))
      loop.stop()

    loop.register_socket(receiver, on_readable)
    thread = loop.start_thread()
    sender.sendto(b"ping", receiver.getsockname())
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert received == [b"ping"]
  finally:
    sender.close()
    receiver.close()
    loop.close()


def test_call_soon_wakes_running_loop():
  loop = EventLoop()
  ran = threading.Event()
  try:
    thread = loop.start_thread()
    loop.call_soon(ran.set)
    assert ran.wait(timeout=5)
    loop.stop()
    thread.join(timeout=5)
    assert not thread.is_alive()
  finally:
    loop.close()
