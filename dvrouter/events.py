"""
Selector based event loop driving the router.

It multiplexes timers and readable sockets in a single thread:

- ``schedule``: one-shot or periodic timers;
- ``call_soon``: hand a callback over from another thread (CLI, tests);
- ``register_socket``: readable notifications;
- ``run`` / ``stop``: drive and stop the loop.

A socketpair wakes the selector whenever another thread adds work or asks the
loop to stop, so those requests never wait for the next timer.
"""

from __future__ import annotations

import heapq
import logging
import selectors
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

LOGGER = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledTask:
  deadline: float
  priority: int
  callback: Callable[[], None] = field(compare=False)
  interval: Optional[float] = field(default=None, compare=False)
  cancelled: bool = field(default=False, compare=False)


class EventLoop:
  def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
    self.clock = clock
    self._selector = selectors.DefaultSelector()
    self._tasks: List[ScheduledTask] = []
    self._task_seq = 0
    self._running = False
    self._lock = threading.Lock()
    self._thread: Optional[threading.Thread] = None
    self._wake_r, self._wake_w = socket.socketpair()
    self._wake_r.setblocking(False)
    self._wake_w.setblocking(False)
    self._selector.register(self._wake_r, selectors.EVENT_READ, None)

  # ------------------------------------------------------------------ timers
  def schedule(self, delay: float, callback: Callable[[], None], *, repeat: bool = False) -> ScheduledTask:
    """
    Run ``callback`` after ``delay`` seconds; with ``repeat`` it keeps running
    every ``delay`` seconds until :meth:`cancel`.
    """
    if delay < 0:
      raise ValueError("delay must be non-negative")
    if repeat and delay == 0:
      raise ValueError("repeating tasks need a positive interval")
    if not callable(callback):
      raise TypeError("callback must be callable")

    with self._lock:
      self._task_seq += 1
      task = ScheduledTask(
          deadline=self.clock() + delay,
          priority=self._task_seq,
          callback=callback,
          interval=delay if repeat else None,
      )
      heapq.heappush(self._tasks, task)
    self._wakeup()
    return task

  def call_soon(self, callback: Callable[[], None]) -> ScheduledTask:
    return self.schedule(0, callback)

  def cancel(self, task: ScheduledTask) -> None:
    task.cancelled = True

  def pending(self) -> int:
    with self._lock:
      return sum(1 for task in self._tasks if not task.cancelled)

  # ---------------------------------------------------------------- sockets
  def register_socket(
      self,
      sock: socket.socket,
      callback: Callable[[socket.socket], None],
  ) -> Callable[[], None]:
    """
    Register ``callback`` to run when ``sock`` becomes readable; returns a
    function that undoes the registration.
    """
    if not isinstance(sock, socket.socket):
      raise TypeError("sock must be a socket")
    if not callable(callback):
      raise TypeError("callback must be callable")

    sock.setblocking(False)
    self._selector.register(sock, selectors.EVENT_READ, callback)
    self._wakeup()

    def unregister() -> None:
      try:
        self._selector.unregister(sock)
      except (KeyError, ValueError):
        pass

    return unregister

  # ------------------------------------------------------------------- loop
  def run(self) -> None:
    """Run until :meth:`stop` is called."""
    self._running = True
    self._thread = threading.current_thread()
    try:
      while self._running:
        self._run_once()
    finally:
      self._thread = None

  def start_thread(self, name: str = "event-loop") -> threading.Thread:
    thread = threading.Thread(target=self.run, name=name, daemon=True)
    thread.start()
    return thread

  def stop(self) -> None:
    """The loop exits after the current iteration."""
    self._running = False
    self._wakeup()

  @property
  def running(self) -> bool:
    return self._running

  def close(self) -> None:
    self.stop()
    for sock in (self._wake_r, self._wake_w):
      try:
        sock.close()
      except OSError:
        LOGGER.exception("failed to close wakeup socket")
    self._selector.close()

  # ------------------------------------------------------------ internals
  def _wakeup(self) -> None:
    if self._thread is None or self._thread is threading.current_thread():
      return
    try:
      self._wake_w.send(b"\0")
    except (BlockingIOError, OSError):
      pass

  def _drain_wakeup(self) -> None:
    try:
      while self._wake_r.recv(512):
        pass
    except (BlockingIOError, OSError):
      pass

  def run_pending(self) -> int:
    """Run every task whose deadline has passed; returns how many ran."""
    now = self.clock()
    ran = 0
    while True:
      with self._lock:
        if not self._tasks or self._tasks[0].deadline > now:
          break
        task = heapq.heappop(self._tasks)
      if task.cancelled:
        continue
      ran += 1
      try:
        task.callback()
      except Exception:
        LOGGER.exception("scheduled task failed")
      if task.interval and not task.cancelled:
        task.deadline = now + task.interval
        with self._lock:
          heapq.heappush(self._tasks, task)
    return ran

  def _run_once(self) -> None:
    self.run_pending()

    timeout: Optional[float] = None
    with self._lock:
      if self._tasks:
        timeout = max(0.0, self._tasks[0].deadline - self.clock())

    events = self._selector.select(timeout)
    for key, _ in events:
      if key.fileobj is self._wake_r:
        self._drain_wakeup()
        continue
      callback = key.data
      try:
        callback(key.fileobj)  # type: ignore[arg-type]
      except Exception:
        LOGGER.exception("socket callback failed")
