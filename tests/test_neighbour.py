"""
Unit tests for a single Neighbour.
"""

import pytest

from dvrouter.address import Address, AddressList
from dvrouter.entry import Entry
from dvrouter.counters import PacketCounters
from dvrouter.message import Bye, Hello, PacketType
from dvrouter.neighbour import Neighbour, NeighbourError, NeighbourState

from conftest import RecordingTransport, addr, fake_resolver


def register(host="127.0.0.1", distance=1, address="A.2"):
  return Neighbour.register(addr(address), host, 20012, distance, resolver=fake_resolver, now=0.0)


def test_register_valid_neighbour():
  neighbour = register()
  assert neighbour.state == NeighbourState.VALID
  assert neighbour.endpoint == ("127.0.0.1", 20012)


def test_register_resolves_hostname():
  assert register(host="localhost").ip == "127.0.0.1"


@pytest.mark.parametrize("kwargs", [{"host": "unresolvable"}, {"distance": 0}, {"distance": 17}])
def test_register_invalid(kwargs):
  assert register(**kwargs).state == NeighbourState.INVALID


def test_register_invalid_address():
  neighbour = Neighbour.register(Address.invalid(), "127.0.0.1", 20012, 1, resolver=fake_resolver)
  assert not neighbour.is_valid()


def test_vector_expires_after_ttl():
  """A vector received at T with TTL 5 is used at T+4 and ignored at T+6."""
  neighbour = register()
  vector = [Entry(addr("A.3"), 1, AddressList())]
  neighbour.update_vector(vector, 5, now=100.0)
  assert neighbour.current_vector(104.0) == vector
  assert neighbour.current_vector(106.0) is None
  assert neighbour.vector == vector


def test_no_vector_before_first_route():
  assert register().current_vector(0.0) is None


def test_invalid_neighbour_refuses_vector():
  neighbour = register(distance=0)
  with pytest.raises(NeighbourError):
    neighbour.update_vector([], 5, now=1.0)


def test_update_failure_invalidates():
  neighbour = register()
  neighbour.update_vector([Entry(addr("A.3"), 1, AddressList())], 5, now=1.0)
  assert not neighbour.update("unresolvable", 20012, 1, resolver=fake_resolver)
  assert neighbour.state == NeighbourState.INVALID
  assert neighbour.current_vector(1.0) is None


def test_take_endpoint_keeps_vector_and_liveness():
  neighbour = register()
  neighbour.update_vector([Entry(addr("A.3"), 1, AddressList())], 5, now=1.0)
  resolved = Neighbour.register(addr("A.2"), "localhost", 20022, 3, resolver=fake_resolver, now=50.0)
  assert neighbour.take_endpoint(resolved)
  assert neighbour.endpoint == ("127.0.0.1", 20022)
  assert neighbour.distance == 3
  assert neighbour.last_heard == 1.0
  assert neighbour.current_vector(1.0) is not None


def test_send_hello_and_bye():
  transport = RecordingTransport()
  counters = PacketCounters()
  neighbour = register(distance=3)
  assert neighbour.send_hello(transport, addr("A.1"), counters)
  assert neighbour.send_bye(transport, addr("A.1"), counters)
  assert transport.packets() == [Hello(addr("A.1"), 3), Bye(addr("A.1"))]
  assert counters.sent_count(PacketType.HELLO) == 1
  assert counters.sent_count(PacketType.BYE) == 1


def test_send_failure_is_reported_not_raised():
  neighbour = register()
  assert not neighbour.send_hello(RecordingTransport(fail=True), addr("A.1"))


def test_expired_only_with_timeout():
  neighbour = register()
  neighbour.heard(10.0)
  assert not neighbour.expired(100.0, 0)
  assert not neighbour.expired(15.0, 10)
  assert neighbour.expired(21.0, 10)
