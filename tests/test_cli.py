"""
Tests for the interactive shell commands.
"""

import logging

from dvrouter.cli import CliShell
from dvrouter.message import Bye, Data, loads

from conftest import addr

HOST = "127.0.0.1"


def test_show_commands_log_tables(make_router, caplog):
  router = make_router()
  router.add_neighbour(addr("A.2"), HOST, 20012, 1)
  shell = CliShell(router)
  with caplog.at_level(logging.INFO, logger="dvrouter.cli"):
    for topic in ("routes", "neighbours", "vector", "stats"):
      assert shell.execute(f"show {topic}")
  text = caplog.text
  assert "A.1 -> next-hop - distance 0" in text
  assert "A.2 at 127.0.0.1:20012 distance 1" in text
  assert "(A.1,0,[]) ; (A.2,1,[A.2])" in text
  assert "HELLO sent=1" in text


def test_add_update_and_del(make_router, transport):
  router = make_router()
  shell = CliShell(router)
  assert shell.execute("add A.2 127.0.0.1 20012 2")
  assert shell.execute("update A.2 127.0.0.1 20012 5")
  assert router.neighbours.lookup(addr("A.2")).distance == 5
  transport.clear()
  assert shell.execute("del A.2")
  assert transport.packets() == [Bye(addr("A.1"))]


def test_bad_arguments_are_reported(make_router):
  shell = CliShell(make_router())
  assert not shell.execute("add A.2 127.0.0.1 port 1")
  assert not shell.execute("add a.2 127.0.0.1 20012 1")
  assert not shell.execute("del")
  assert not shell.execute("frobnicate")
  assert shell.execute("")


def test_send_and_announce(make_router, transport):
  router = make_router()
  shell = CliShell(router)
  assert shell.execute("send A.1 hello there")
  packet = loads(transport.sent[-1][1])
  assert isinstance(packet, Data)
  assert packet.text() == "hello there"
  assert shell.execute("announce")


def test_quit_stops_shell(make_router):
  shell = CliShell(make_router())
  assert shell.running
  shell.execute("quit")
  assert not shell.running
