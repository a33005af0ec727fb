"""
Unit tests for Entry, RouteEntry and vector comparison.
"""

from dvrouter.address import AddressList
from dvrouter.entry import Entry, RouteEntry, vectors_equal

from conftest import addr


def entry(dest, distance, path="[]"):
  return Entry(addr(dest), distance, AddressList.parse(path))


def test_entry_equality_includes_path():
  assert entry("A.1", 2, "[A.2]") == entry("A.1", 2, "[A.2]")
  assert entry("A.1", 2, "[A.2]") != entry("A.1", 2, "[A.3]")
  assert entry("A.1", 2) != entry("A.1", 3)


def test_entries_without_path_are_equal():
  assert Entry(addr("A.1"), 1, None) == Entry(addr("A.1"), 1, None)


def test_entry_copy_does_not_share_path():
  original = entry("A.1", 1, "[A.2]")
  copy = original.copy()
  copy.path.append(addr("A.3"))
  assert str(original.path) == "[A.2]"


def test_vectors_equal_ignores_order():
  e1, e2 = entry("A.1", 1), entry("B.1", 2, "[B.0]")
  assert vectors_equal([e1, e2], [e2, e1])


def test_vectors_equal_needs_distinct_matches():
  e1, e2 = entry("A.1", 1), entry("B.1", 2)
  assert not vectors_equal([e1, e1], [e1, e2])
  assert not vectors_equal([e1], [e2])
  assert not vectors_equal([e1], [e1, e2])


def test_vectors_equal_handles_absent_vectors():
  assert vectors_equal(None, None)
  assert not vectors_equal(None, [])


def test_route_entry_equality_requires_next_hop():
  first = RouteEntry.build(addr("A.3"), 2, addr("A.2"), AddressList.parse("[A.2]"))
  second = RouteEntry.build(addr("A.3"), 2, addr("A.4"), AddressList.parse("[A.2]"))
  assert first != second
  assert first == first.copy()


def test_route_entry_row_for_local_node():
  row = RouteEntry.build(addr("A.1"), 0, None).row()
  assert row == {"destination": "A.1", "next_hop": "-", "distance": 0, "path": "[]"}
