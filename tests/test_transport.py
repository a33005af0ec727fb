"""
Loopback UDP test of the transport together with two routers.
"""

import threading

from dvrouter.events import EventLoop
from dvrouter.message import Hello, loads
from dvrouter.router import Router
from dvrouter.transport import UdpTransport

from conftest import addr


def test_datagrams_reach_the_callback():
  loop = EventLoop()
  got = []
  done = threading.Event()
  receiver = UdpTransport(loop, "127.0.0.1", 0)
  sender = UdpTransport(loop, "127.0.0.1", 0)

  def on_receive(host, port, data):
    got.append((host, port, data))
    done.set()

  receiver.open(on_receive)
  sender.open(lambda *args: None)
  thread = loop.start_thread()
  try:
    assert sender.send(receiver.local_endpoint, Hello(addr("A.2"), 1).dumps())
    assert done.wait(timeout=5)
    host, port, data = got[0]
    assert (host, port) == sender.local_endpoint
    assert loads(data) == Hello(addr("A.2"), 1)
  finally:
    loop.stop()
    thread.join(timeout=5)
    receiver.close()
    sender.close()
    loop.close()


def test_send_on_closed_transport_returns_false():
  loop = EventLoop()
  try:
    transport = UdpTransport(loop, "127.0.0.1", 0)
    assert not transport.send(("127.0.0.1", 9), b"x")
  finally:
    loop.close()


def test_two_routers_discover_each_other():
  loop = EventLoop()
  first = UdpTransport(loop, "127.0.0.1", 0)
  second = UdpTransport(loop, "127.0.0.1", 0)
  a1 = Router(addr("A.1"), first)
  a2 = Router(addr("A.2"), second)
  first.open(a1.handle_datagram)
  second.open(a2.handle_datagram)
  thread = loop.start_thread()
  try:
    discovered = threading.Event()

    def add():
      a1.add_neighbour(addr("A.2"), "127.0.0.1", second.port, 1)

    loop.call_soon(add)
    for _ in range(50):
      if a2.neighbours.lookup(addr("A.1")) is not None:
        discovered.set()
        break
      discovered.wait(timeout=0.1)
    assert discovered.is_set()
    assert a2.neighbours.lookup(addr("A.1")).port == first.port
  finally:
    loop.stop()
    thread.join(timeout=5)
    first.close()
    second.close()
    loop.close()
