"""
Distance-vector routing over UDP with path-vector loop avoidance and an
optional hierarchical (area) mode.

Main components:
- `Router`: the routing engine, handling HELLO/BYE/ROUTE/DATA and the
  periodic announce and recompute cycle;
- `NeighbourList` and `RoutingTable`: the state the engine works on;
- `EventLoop` and `UdpTransport`: timers and the datagram socket;
- `CliShell`: interactive shell for inspecting a running router.
"""

from .address import Address, AddressError, AddressList
from .cli import CliShell
from .config import NodeConfig, ProtocolConfig, load_config
from .events import EventLoop
from .neighbour_list import NeighbourList
from .router import Router, RouterListener  # re-export for convenience
from .routing_table import RoutingTable
from .transport import UdpTransport

__all__ = [
    "Address",
    "AddressError",
    "AddressList",
    "CliShell",
    "EventLoop",
    "NeighbourList",
    "NodeConfig",
    "ProtocolConfig",
    "Router",
    "RouterListener",
    "RoutingTable",
    "UdpTransport",
    "load_config",
]
