"""
Topology file loading.

The YAML file has a ``defaults`` mapping with protocol settings shared by
every router and a ``routers`` mapping keyed by router address::

  defaults:
    period: 10
    hierarchical: false
  routers:
    A.1:
      host: 127.0.0.1
      port: 20011
      neighbours:
        - {address: A.2, host: 127.0.0.1, port: 20012, distance: 1}
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import yaml

from . import defaults
from .address import Address, AddressError
from .message import WireLimits


@dataclass(frozen=True)
class ProtocolConfig:
  period: float = defaults.ROUTE_PERIOD
  hierarchical: bool = False
  max_distance: int = defaults.MAX_DISTANCE
  max_path_len: int = defaults.MAX_PATH_LEN
  max_neighbours: int = defaults.MAX_NEIGHBOURS
  max_vector_len: int = defaults.MAX_VECTOR_LEN
  max_message_len: int = defaults.MAX_MESSAGE_LEN
  route_ttl_margin: float = defaults.ROUTE_TTL_MARGIN
  neighbour_timeout: float = defaults.NEIGHBOUR_TIMEOUT

  def __post_init__(self) -> None:
    if self.period <= 0:
      raise ValueError("period must be positive")
    if self.max_distance < 1:
      raise ValueError("max_distance must be at least 1")
    if self.max_path_len < 0:
      raise ValueError("max_path_len must be non-negative")
    if self.max_neighbours < 1:
      raise ValueError("max_neighbours must be at least 1")
    if self.max_vector_len < 1:
      raise ValueError("max_vector_len must be at least 1")
    if not 0 <= self.max_message_len <= 0xFFFF:
      raise ValueError("max_message_len must fit in two bytes")
    if self.route_ttl_margin < 0:
      raise ValueError("route_ttl_margin must be non-negative")
    if self.neighbour_timeout < 0:
      raise ValueError("neighbour_timeout must be non-negative")

  @property
  def tick_interval(self) -> float:
    return self.period / 2

  @property
  def route_ttl(self) -> int:
    """TTL advertised in ROUTE packets, in whole seconds."""
    return int(self.period + self.route_ttl_margin)

  @property
  def limits(self) -> WireLimits:
    return WireLimits(
        max_distance=self.max_distance,
        max_path_len=self.max_path_len,
        max_vector_len=self.max_vector_len,
        max_message_len=self.max_message_len,
    )

  def with_overrides(self, **changes: Any) -> "ProtocolConfig":
    return replace(self, **{key: value for key, value in changes.items() if value is not None})

  @classmethod
  def from_mapping(cls, data: Mapping[str, Any]) -> "ProtocolConfig":
    if not isinstance(data, Mapping):
      raise ValueError("'defaults' must be a mapping")
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
      raise ValueError(f"unknown defaults: {', '.join(sorted(unknown))}")
    values: Dict[str, Any] = {}
    for key, raw in data.items():
      try:
        if key == "hierarchical":
          values[key] = _as_bool(key, raw)
        elif key in ("period", "route_ttl_margin", "neighbour_timeout"):
          values[key] = float(raw)
        else:
          values[key] = int(raw)
      except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for '{key}': {raw!r}") from exc
    return cls(**values)


def _as_bool(key: str, raw: Any) -> bool:
  if isinstance(raw, bool):
    return raw
  raise ValueError(f"'{key}' must be true or false")


@dataclass(frozen=True)
class NeighbourConfig:
  address: Address
  host: str
  port: int
  distance: int

  @classmethod
  def from_mapping(cls, data: Mapping[str, Any]) -> "NeighbourConfig":
    if not isinstance(data, Mapping):
      raise ValueError("neighbour entry must be a mapping")
    missing = [key for key in ("address", "port", "distance") if key not in data]
    if missing:
      raise ValueError(f"neighbour entry missing {', '.join(missing)}")
    try:
      address = Address.parse(str(data["address"]))
    except AddressError as exc:
      raise ValueError(f"invalid neighbour address: {exc}") from exc
    try:
      port = int(data["port"])
      distance = int(data["distance"])
    except (TypeError, ValueError) as exc:
      raise ValueError(f"neighbour {address} needs integer port and distance") from exc
    return cls(address=address, host=str(data.get("host", "127.0.0.1")), port=port, distance=distance)


@dataclass
class NodeConfig:
  address: Address
  host: str = "127.0.0.1"
  port: int = defaults.DEFAULT_PORT
  protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
  neighbours: List[NeighbourConfig] = field(default_factory=list)

  @classmethod
  def from_mapping(cls, address: Union[Address, str], config: Mapping[str, Any]) -> "NodeConfig":
    """Pick the router ``address`` out of a loaded topology mapping."""
    if isinstance(address, str):
      try:
        address = Address.parse(address)
      except AddressError as exc:
        raise ValueError(f"invalid router address: {exc}") from exc

    protocol = ProtocolConfig.from_mapping(config.get("defaults") or {})

    routers_cfg = config.get("routers")
    if not isinstance(routers_cfg, Mapping):
      raise ValueError("config missing 'routers' mapping")
    router_cfg = routers_cfg.get(str(address))
    if not isinstance(router_cfg, Mapping):
      raise ValueError(f"config missing definition for router {address}")

    neighbours_cfg = router_cfg.get("neighbours") or []
    if not isinstance(neighbours_cfg, list):
      raise ValueError(f"router {address} 'neighbours' must be a list")
    neighbours = [NeighbourConfig.from_mapping(item) for item in neighbours_cfg]

    try:
      port = int(router_cfg.get("port", defaults.DEFAULT_PORT))
    except (TypeError, ValueError) as exc:
      raise ValueError(f"router {address} port must be an integer") from exc
    if not 0 < port < 65536:
      raise ValueError(f"router {address} port {port} out of range")

    return cls(
        address=address,
        host=str(router_cfg.get("host", "127.0.0.1")),
        port=port,
        protocol=protocol,
        neighbours=neighbours,
    )


def load_config(path: Union[Path, str]) -> Dict[str, Any]:
  path = Path(path)
  if not path.exists():
    raise FileNotFoundError(f"config file not found: {path}")
  with path.open("r", encoding="utf-8") as stream:
    try:
      data = yaml.safe_load(stream)
    except yaml.YAMLError as exc:
      raise ValueError(f"cannot parse {path}: {exc}") from exc
  if not isinstance(data, dict):
    raise ValueError("topology file must contain a mapping at the root")
  return data
