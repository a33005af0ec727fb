"""
Tests for topology loading and protocol settings.
"""

from pathlib import Path

import pytest

from dvrouter.config import NodeConfig, ProtocolConfig, load_config

from conftest import addr

SAMPLE = Path(__file__).resolve().parent.parent / "topo.sample.yaml"


def test_sample_topology_loads():
  node = NodeConfig.from_mapping("A.2", load_config(SAMPLE))
  assert node.address == addr("A.2")
  assert node.port == 20012
  assert [str(n.address) for n in node.neighbours] == ["A.1", "A.3", "B.1"]
  assert node.protocol.period == 10
  assert node.protocol.route_ttl == 15
  assert node.protocol.tick_interval == 5


def test_defaults_without_section():
  config = {"routers": {"A.1": {"port": 20011}}}
  node = NodeConfig.from_mapping("A.1", config)
  assert node.protocol == ProtocolConfig()
  assert node.neighbours == []


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"routers": {}},
        {"routers": {"A.1": {"port": "abc"}}},
        {"routers": {"A.1": {"port": 70000}}},
        {"routers": {"A.1": {"neighbours": [{"address": "a.2", "port": 1, "distance": 1}]}}},
        {"routers": {"A.1": {"neighbours": [{"address": "A.2", "distance": 1}]}}},
        {"routers": {"A.1": {"neighbours": {"address": "A.2"}}}},
        {"defaults": {"period": 0}, "routers": {"A.1": {}}},
        {"defaults": {"hierarchical": "yes"}, "routers": {"A.1": {}}},
        {"defaults": {"colour": "blue"}, "routers": {"A.1": {}}},
    ],
)
def test_invalid_config_raises_value_error(config):
  with pytest.raises(ValueError):
    NodeConfig.from_mapping("A.1", config)


def test_invalid_router_address():
  with pytest.raises(ValueError):
    NodeConfig.from_mapping("0.0", {"routers": {}})


def test_limits_follow_protocol_config():
  limits = ProtocolConfig(max_distance=8, max_path_len=4).limits
  assert limits.max_distance == 8
  assert limits.max_path_len == 4
  assert limits.max_vector_len == 30


def test_overrides_skip_none():
  base = ProtocolConfig()
  assert base.with_overrides(hierarchical=None, period=None) == base
  assert base.with_overrides(hierarchical=True).hierarchical


def test_load_config_errors(tmp_path):
  with pytest.raises(FileNotFoundError):
    load_config(tmp_path / "missing.yaml")
  listing = tmp_path / "list.yaml"
  listing.write_text("- a\n- b\n", encoding="utf-8")
  with pytest.raises(ValueError):
    load_config(listing)
  broken = tmp_path / "broken.yaml"
  broken.write_text("routers: [unclosed\n", encoding="utf-8")
  with pytest.raises(ValueError):
    load_config(broken)
