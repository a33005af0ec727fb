"""
Distance-vector routing engine.

The engine:
1. keeps the neighbour registry up to date from HELLO and BYE packets;
2. stores the vector of every ROUTE packet on the neighbour that sent it;
3. on every tick advertises its table and recomputes it with one relaxation
   pass over the fresh neighbour vectors;
4. forwards DATA packets hop by hop, appending itself to the packet path.

A published table is frozen and replaced as a whole, so readers on other
threads always see a complete table.  Ties between neighbours offering the
same distance keep whichever was seen first; neighbour order is not defined,
so neither is the winner.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Union

from .address import Address, AddressList
from .config import ProtocolConfig
from .counters import PacketCounters
from .entry import Entry, RouteEntry
from .events import EventLoop, ScheduledTask
from .message import (
    Bye,
    Data,
    Hello,
    MessageDecodeError,
    MessageValidationError,
    Packet,
    PacketType,
    Route,
    loads,
)
from .neighbour import NeighbourError, Resolver, resolve_host
from .neighbour_list import NeighbourList
from .routing_table import RoutingTable
from .transport import Transport

LOGGER = logging.getLogger(__name__)


class RouterListener:
  """
  Receives presentation snapshots from the engine.  Every method is a no-op
  here; exceptions raised by subclasses are logged and swallowed by the
  router.
  """

  def on_routing_table(self, rows: List[dict]) -> None:
    pass

  def on_neighbours(self, rows: List[dict]) -> None:
    pass

  def on_data(self, sender: Address, destination: Address, message: str, path: AddressList) -> None:
    pass


class Router:
  def __init__(
      self,
      local_address: Address,
      transport: Transport,
      config: Optional[ProtocolConfig] = None,
      *,
      neighbours: Optional[NeighbourList] = None,
      listener: Optional[RouterListener] = None,
      counters: Optional[PacketCounters] = None,
      resolver: Resolver = resolve_host,
      clock: Callable[[], float] = time.time,
  ) -> None:
    if not local_address.is_valid():
      raise ValueError(f"invalid local address {local_address!r}")
    self.local_address = local_address
    self.transport = transport
    self.config = config if config is not None else ProtocolConfig()
    self.counters = counters if counters is not None else PacketCounters()
    if neighbours is None:
      neighbours = NeighbourList(
          local_address,
          transport,
          self.counters,
          max_neighbours=self.config.max_neighbours,
          max_distance=self.config.max_distance,
          resolver=resolver,
      )
    self.neighbours = neighbours
    self.listener = listener if listener is not None else RouterListener()
    self.clock = clock

    self._lock = threading.RLock()
    self._table = self._initial_table()
    self._loop: Optional[EventLoop] = None
    self._ticker: Optional[ScheduledTask] = None
    self._stopped = False
    self._handlers: Dict[PacketType, Callable[[Packet, str, int], None]] = {
        PacketType.HELLO: self._handle_hello,
        PacketType.BYE: self._handle_bye,
        PacketType.ROUTE: self._handle_route,
        PacketType.DATA: self._handle_data,
    }

  # ---------------------------------------------------------------- lifecycle
  def start(self, loop: EventLoop) -> None:
    """Compute the first table and run :meth:`tick` every half period."""
    with self._lock:
      if self._ticker is not None:
        return
      self._stopped = False
      self._loop = loop
      table = self._rebuild(self.clock())
      self._ticker = loop.schedule(self.config.tick_interval, self.tick, repeat=True)
    self._notify("on_routing_table", table.rows())
    LOGGER.info(
        "router %s started, period=%ss hierarchical=%s",
        self.local_address,
        self.config.period,
        self.config.hierarchical,
    )

  def stop(self) -> None:
    """Cancel the ticker, say BYE to every neighbour and publish an empty table."""
    with self._lock:
      if self._stopped:
        return
      self._stopped = True
      if self._ticker is not None and self._loop is not None:
        self._loop.cancel(self._ticker)
      self._ticker = None
      self.neighbours.clear(send_bye=True)
      self._table = RoutingTable().freeze()
      table = self._table
    LOGGER.info("router %s stopped", self.local_address)
    self._notify("on_routing_table", table.rows())
    self._notify("on_neighbours", self.neighbours.rows())

  @property
  def stopped(self) -> bool:
    return self._stopped

  def _initial_table(self) -> RoutingTable:
    table = RoutingTable()
    table.add_or_replace(RouteEntry.build(self.local_address, 0, None, AddressList()))
    return table.freeze()

  # ------------------------------------------------------------------- cycle
  def tick(self, now: Optional[float] = None) -> None:
    """One periodic cycle: evict silent neighbours, advertise, recompute."""
    if self._stopped:
      return
    now = self.clock() if now is None else now
    evicted = self.neighbours.evict_expired(now, self.config.neighbour_timeout)
    with self._lock:
      if self._stopped:
        return
      self.send_local_route()
      table = self._rebuild(now)
    self._notify("on_routing_table", table.rows())
    if evicted:
      self._notify("on_neighbours", self.neighbours.rows())

  def send_local_route(self) -> int:
    """
    Advertise the current table.  In hierarchical mode neighbours outside
    the local area only learn the local network itself.  Returns the number
    of ROUTE packets sent.
    """
    with self._lock:
      vector = self._table.vector()
      full = self._encode_route(vector)
      summary: Optional[bytes] = None
      if self.config.hierarchical:
        summary = self._encode_route([Entry(self.local_address.network_address(), 0, AddressList())])

      sent = 0
      for neighbour in self.neighbours.values():
        if not neighbour.is_valid():
          continue
        if self.config.hierarchical and not neighbour.address.same_network(self.local_address):
          data = summary
        else:
          data = full
        if data is not None and neighbour.send(self.transport, data):
          sent += 1
    if sent:
      self.counters.sent(PacketType.ROUTE, sent)
    LOGGER.debug("ROUTE sent to %d neighbours (%d entries)", sent, len(vector))
    return sent

  def _encode_route(self, vector: List[Entry]) -> Optional[bytes]:
    packet = Route(sender=self.local_address, ttl=self.config.route_ttl, entries=vector)
    try:
      return packet.dumps(self.config.limits)
    except MessageValidationError as exc:
      LOGGER.error("cannot encode ROUTE with %d entries: %s", len(vector), exc)
      return None

  def recompute(self, now: Optional[float] = None) -> RoutingTable:
    """
    Build a new table from the current neighbour vectors and publish it.

    A neighbour entry is installed when its destination is unknown or it
    offers a strictly shorter distance.  Candidates beyond ``max_distance``
    and paths already containing the local address are ignored.  Listeners
    are notified after the engine lock has been released.
    """
    now = self.clock() if now is None else now
    table = self._rebuild(now)
    self._notify("on_routing_table", table.rows())
    return table

  def _rebuild(self, now: float) -> RoutingTable:
    max_distance = self.config.max_distance
    with self._lock:
      if self._stopped:
        return self._table
      table = RoutingTable()
      table.add_or_replace(RouteEntry.build(self.local_address, 0, None, AddressList()))

      for neighbour in self.neighbours.values():
        if not neighbour.is_valid():
          continue
        vector = neighbour.current_vector(now)
        if vector is None:
          continue
        if neighbour.address.same_network(self.local_address):
          hop = neighbour.address
        else:
          hop = neighbour.address.network_address()

        for entry in vector:
          candidate = entry.distance + neighbour.distance
          if candidate > max_distance:
            continue
          if entry.path is not None and self.local_address in entry.path:
            continue
          existing = table.lookup(entry.destination)
          if existing is not None and candidate >= existing.distance:
            continue
          path = entry.path.copy() if entry.path is not None else AddressList()
          path.insert_head(hop)
          table.add_or_replace(RouteEntry.build(entry.destination, candidate, neighbour.address, path))

      table.freeze()
      changed = table != self._table
      self._table = table

    if changed:
      LOGGER.info("routing table updated, %d destinations", len(table))
    else:
      LOGGER.debug("routing table unchanged, %d destinations", len(table))
    return table

  @property
  def table(self) -> RoutingTable:
    return self._table

  def route_for(self, destination: Address) -> Optional[RouteEntry]:
    """
    Destinations outside the local area are looked up by their network
    address first, then by their exact address.
    """
    table = self._table
    if not destination.same_network(self.local_address):
      route = table.lookup(destination.network_address())
      if route is not None:
        return route
    return table.lookup(destination)

  def next_hop(self, destination: Address) -> Optional[Address]:
    route = self.route_for(destination)
    return route.next_hop if route is not None else None

  # --------------------------------------------------------------- neighbours
  def add_neighbour(self, address: Address, host: str, port: int, distance: int) -> bool:
    added = self.neighbours.add(address, host, port, distance, now=self.clock())
    if added:
      self._notify("on_neighbours", self.neighbours.rows())
    return added

  def update_neighbour(self, address: Address, host: str, port: int, distance: int) -> bool:
    updated = self.neighbours.update(address, host, port, distance)
    if updated:
      self._notify("on_neighbours", self.neighbours.rows())
    return updated

  def remove_neighbour(self, address: Address, send_bye: bool = True) -> bool:
    removed = self.neighbours.remove(address, send_bye=send_bye)
    if removed:
      self._notify("on_neighbours", self.neighbours.rows())
    return removed

  # ------------------------------------------------------------------ inbound
  def handle_datagram(self, host: str, port: int, data: bytes) -> None:
    """Transport callback for every received datagram."""
    if self._stopped:
      LOGGER.debug("router stopped, ignoring %d bytes from %s:%s", len(data), host, port)
      return
    try:
      packet = loads(data, self.config.limits)
    except MessageDecodeError as exc:
      LOGGER.warning("dropping invalid packet from %s:%s: %s", host, port, exc)
      return
    self.counters.received(packet.packet_type)
    LOGGER.debug("%s from %s at %s:%s", packet.packet_type.name, packet.sender, host, port)
    self._handlers[packet.packet_type](packet, host, port)

  def _handle_hello(self, packet: Hello, host: str, port: int) -> None:
    if packet.sender == self.local_address:
      LOGGER.warning("HELLO carrying the local address from %s:%s", host, port)
      return
    now = self.clock()
    known = self.neighbours.lookup_endpoint(host, port)
    if known is not None and known.address == packet.sender:
      known.heard(now)
      return
    if self.neighbours.add(packet.sender, host, port, packet.distance, now=now):
      LOGGER.info("neighbour %s discovered at %s:%s", packet.sender, host, port)
      self._notify("on_neighbours", self.neighbours.rows())

  def _handle_bye(self, packet: Bye, host: str, port: int) -> None:
    neighbour = self.neighbours.lookup_endpoint(host, port)
    if neighbour is None or neighbour.address != packet.sender:
      LOGGER.warning("BYE from unknown neighbour %s at %s:%s", packet.sender, host, port)
      return
    self.neighbours.remove_neighbour(neighbour, send_bye=False)
    self._notify("on_neighbours", self.neighbours.rows())
    self.recompute()

  def _handle_route(self, packet: Route, host: str, port: int) -> None:
    neighbour = self.neighbours.lookup_endpoint(host, port)
    if neighbour is None:
      LOGGER.warning("ROUTE from unknown endpoint %s:%s", host, port)
      return
    if packet.sender == self.local_address:
      LOGGER.warning("ROUTE carrying the local address looped back from %s:%s", host, port)
      return
    if neighbour.address != packet.sender:
      LOGGER.warning("ROUTE from %s claims to be %s", neighbour.address, packet.sender)
      return
    try:
      neighbour.update_vector(packet.entries, packet.ttl, self.clock())
    except NeighbourError as exc:
      LOGGER.warning("ROUTE from %s ignored: %s", packet.sender, exc)
      return
    LOGGER.debug(
        "vector from %s: %s (ttl=%ss)",
        packet.sender,
        " ; ".join(str(entry) for entry in packet.entries),
        packet.ttl,
    )

  def _handle_data(self, packet: Data, host: str, port: int) -> None:
    if packet.destination == self.local_address:
      LOGGER.info("DATA from %s delivered: %r path=%s", packet.sender, packet.text(), packet.path)
      self._notify("on_data", packet.sender, packet.destination, packet.text(), packet.path)
      return
    self.forward(packet)

  # ----------------------------------------------------------------- outbound
  def forward(self, packet: Data) -> bool:
    """
    Send ``packet`` one hop closer to its destination with the local address
    appended to its path.  Returns ``False`` when it was dropped.
    """
    route = self.route_for(packet.destination)
    if route is None or route.next_hop is None:
      LOGGER.warning("no route to %s, DATA from %s dropped", packet.destination, packet.sender)
      return False
    neighbour = self.neighbours.lookup(route.next_hop)
    if neighbour is None or not neighbour.is_valid():
      LOGGER.warning("next hop %s for %s is gone, DATA dropped", route.next_hop, packet.destination)
      return False

    path = packet.path.copy()
    path.append(self.local_address)
    if len(path) > self.config.max_path_len:
      LOGGER.warning("DATA for %s dropped: path %s exceeds %d hops", packet.destination, path, self.config.max_path_len)
      return False
    try:
      data = Data(packet.sender, packet.destination, packet.message, path).dumps(self.config.limits)
    except MessageValidationError as exc:
      LOGGER.error("cannot encode DATA for %s: %s", packet.destination, exc)
      return False

    if not neighbour.send(self.transport, data):
      return False
    self.counters.sent(PacketType.DATA)
    LOGGER.debug("DATA for %s forwarded to %s", packet.destination, neighbour.address)
    return True

  def send_data(self, destination: Address, message: Union[str, bytes]) -> bool:
    """Originate a DATA packet; a packet for the local address is sent to our own socket."""
    payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
    if destination != self.local_address:
      return self.forward(Data(self.local_address, destination, payload, AddressList()))

    packet = Data(self.local_address, destination, payload, AddressList([self.local_address]))
    try:
      data = packet.dumps(self.config.limits)
    except MessageValidationError as exc:
      LOGGER.error("cannot encode DATA: %s", exc)
      return False
    try:
      sent = bool(self.transport.send(self.transport.local_endpoint, data))
    except OSError as exc:
      LOGGER.error("self send failed: %s", exc)
      return False
    if sent:
      self.counters.sent(PacketType.DATA)
    return sent

  # ------------------------------------------------------------ presentation
  def _notify(self, name: str, *args) -> None:
    try:
      getattr(self.listener, name)(*args)
    except Exception:
      LOGGER.exception("listener %s failed", name)
