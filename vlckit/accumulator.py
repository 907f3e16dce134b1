"""Replicated set of strings that converges by exchanging states over UDP.

Each server keeps a set of strings. A client sends a string to the first
server; a server that learns something new broadcasts its whole state to
the others, which merge it into their own.
"""

from __future__ import annotations

import asyncio
import ipaddress
import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from vlckit.vector_clock import VectorClock

SocketAddr = tuple[str, int]

_RECV_BUFFER_SIZE = 1500
_TERMINATE = "Terminate"


def _parse_socket_addr(text: str) -> SocketAddr:
    if text.startswith("["):
        host, sep, port = text[1:].partition("]:")
        if not sep:
            raise ValueError(f"invalid socket address: {text!r}")
        parse_host = ipaddress.IPv6Address
    else:
        host, sep, port = text.rpartition(":")
        if not sep:
            raise ValueError(f"invalid socket address: {text!r}")
        parse_host = ipaddress.IPv4Address
    try:
        parse_host(host)
    except ValueError as exc:
        raise ValueError(f"invalid socket address: {text!r}") from exc
    if not (port.isascii() and port.isdigit()) or int(port) > 0xFFFF:
        raise ValueError(f"invalid socket address: {text!r}")
    return host, int(port)


@dataclass(frozen=True)
class Configuration:
    """Network configuration: the addresses of all servers, in order."""

    server_addrs: tuple[SocketAddr, ...]

    def __init__(self, server_addrs: Iterable[SocketAddr]) -> None:
        object.__setattr__(self, "server_addrs", tuple(server_addrs))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> Configuration:
        """Read one ``host:port`` address per line."""
        lines = Path(path).read_text(encoding="utf-8").splitlines()
        return cls(_parse_socket_addr(line) for line in lines)


@dataclass
class ServerState:
    """State of a server: a vector clock, the node id and the item set."""

    node_id: int
    clock: VectorClock = field(default_factory=VectorClock)
    items: set[str] = field(default_factory=set)

    def add(self, items: Iterable[str]) -> bool:
        """Add items; return True if the state changed."""
        items = set(items)
        if items <= self.items:
            return False
        self.items |= items
        self.clock.inc(self.node_id)
        return True

    def merge(self, other: ServerState) -> bool:
        """Merge another state in.

        Returns True only when the result differs from both this state
        and the received one.
        """
        order = self.clock.partial_cmp(other.clock)
        if order == -1:
            self.clock = other.clock.copy()
            self.items = set(other.items)
            return False
        if order is None:
            self.clock.merge([other.clock])
            return self.add(other.items)
        return False


def _state_to_json(state: ServerState) -> dict[str, Any]:
    return {
        "clock": state.clock.to_dict(),
        "id": state.node_id,
        "items": sorted(state.items),
    }


def _state_from_json(data: Any) -> ServerState:
    items = data["items"]
    node_id = data["id"]
    if not isinstance(node_id, int) or not all(isinstance(i, str) for i in items):
        raise ValueError("malformed server state")
    return ServerState(node_id, VectorClock.from_dict(data["clock"]), set(items))


@dataclass(frozen=True)
class _FromClient:
    item: str


@dataclass(frozen=True)
class _FromServer:
    state: ServerState


@dataclass(frozen=True)
class _Terminate:
    pass


_Message = Union[_FromClient, _FromServer, _Terminate]


def _dumps(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _decode_message(data: bytes) -> _Message:
    raw = json.loads(data.decode("utf-8", errors="replace"))
    try:
        match raw:
            case "Terminate":
                return _Terminate()
            case {"FromClient": {"item": str(item)}}:
                return _FromClient(item)
            case {"FromServer": {"state": state}}:
                return _FromServer(_state_from_json(state))
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"malformed message: {raw!r}") from exc
    raise ValueError(f"unknown message: {raw!r}")


class _DatagramInbox(asyncio.DatagramProtocol):
    """Queues every received datagram with its sender."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[tuple[bytes, Any]] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: Any) -> None:
        self.queue.put_nowait((data, addr))

    def error_received(self, exc: Exception) -> None:
        # Delivery failures of UDP sends are not reported to the sender.
        pass


async def _open_endpoint(
    local_addr: SocketAddr,
) -> tuple[asyncio.DatagramTransport, _DatagramInbox]:
    loop = asyncio.get_running_loop()
    return await loop.create_datagram_endpoint(_DatagramInbox, local_addr=local_addr)


def _checked_index(config: Configuration, index: int) -> int:
    if not 0 <= index < len(config.server_addrs):
        raise IndexError(f"server index {index} out of range")
    return index


class Client:
    """A client that sends items and termination requests to servers."""

    def __init__(self, transport: asyncio.DatagramTransport, config: Configuration) -> None:
        self._transport = transport
        self.config = config

    @classmethod
    async def create(cls, config: Configuration) -> Client:
        """Bind an ephemeral UDP socket and return a client."""
        transport, _ = await _open_endpoint(("0.0.0.0", 0))
        return cls(transport, config)

    async def disseminate(self, item: str) -> None:
        """Send ``item`` to the first server."""
        self._transport.sendto(_dumps({"FromClient": {"item": item}}), self.config.server_addrs[0])

    async def terminate(self, index: int) -> None:
        """Ask the server at ``index`` to stop."""
        addr = self.config.server_addrs[_checked_index(self.config, index)]
        self._transport.sendto(_dumps(_TERMINATE), addr)

    def close(self) -> None:
        """Release the socket."""
        self._transport.close()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


class Server:
    """A server node holding a UDP socket and a :class:`ServerState`."""

    def __init__(
        self,
        config: Configuration,
        index: int,
        transport: asyncio.DatagramTransport,
        inbox: _DatagramInbox,
    ) -> None:
        self.config = config
        self.index = index
        self.state = ServerState(index)
        self._transport = transport
        self._inbox = inbox
        self._running = False

    @classmethod
    async def create(cls, config: Configuration, index: int) -> Server:
        """Bind to the address of server ``index`` and return the server."""
        addr = config.server_addrs[_checked_index(config, index)]
        transport, inbox = await _open_endpoint(addr)
        return cls(config, index, transport, inbox)

    def _broadcast_state(self) -> None:
        data = _dumps({"FromServer": {"state": _state_to_json(self.state)}})
        for i, addr in enumerate(self.config.server_addrs):
            if i != self.index:
                self._transport.sendto(data, addr)

    def _handle(self, message: _Message) -> None:
        match message:
            case _FromClient(item=item):
                if self.state.add([item]):
                    self._broadcast_state()
            case _FromServer(state=state):
                if self.state.merge(state):
                    self._broadcast_state()
            case _Terminate():
                self._running = False

    async def run(self) -> None:
        """Process messages until a termination request arrives."""
        self._running = True
        while self._running:
            data, _ = await self._inbox.queue.get()
            self._handle(_decode_message(data[:_RECV_BUFFER_SIZE]))

    def close(self) -> None:
        """Release the socket."""
        self._transport.close()

    async def __aenter__(self) -> Server:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()