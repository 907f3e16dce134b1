"""Causally consistent key-value store replicated over UDP.

Every server keeps a map of keys to versioned values and a vector clock.
A client sends the clock it has seen with each request. A server whose
clock is behind that dependency answers with a refusal, and the client
may retry. After a write, a server sends its whole state to the other
servers, which merge it into their own.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import random
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from vlckit.accumulator import Configuration, SocketAddr
from vlckit.vector_clock import VectorClock

_RECV_BUFFER_SIZE = 1500
_TERMINATE = "Terminate"


@dataclass
class ServerState:
    """State of a storage node: clock, node id and versioned key-value store."""

    node_id: int
    clock: VectorClock = field(default_factory=VectorClock)
    store: dict[str, tuple[str, int]] = field(default_factory=dict)

    def read(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None."""
        entry = self.store.get(key)
        return entry[0] if entry is not None else None

    def write(self, key: str, value: str) -> None:
        """Store ``value`` under ``key`` with the next version and tick the clock."""
        entry = self.store.get(key)
        version = entry[1] + 1 if entry is not None else 1
        self.store[key] = (value, version)
        self.clock.inc(self.node_id)

    def merge(self, other: ServerState) -> None:
        """Merge another state: the higher version of each key wins."""
        for key, (value, version) in other.store.items():
            mine = self.store.get(key)
            if mine is not None and version <= mine[1]:
                continue
            self.store[key] = (value, version)
        self.clock.merge([other.clock])

    def copy(self) -> ServerState:
        """Return an independent copy of this state."""
        return ServerState(self.node_id, self.clock.copy(), dict(self.store))


def _clock_to_json(clock: Optional[VectorClock]) -> Optional[dict[str, Any]]:
    return clock.to_dict() if clock is not None else None


def _clock_from_json(data: Any) -> Optional[VectorClock]:
    return VectorClock.from_dict(data) if data is not None else None


def _state_to_json(state: ServerState) -> dict[str, Any]:
    return {
        "clock": state.clock.to_dict(),
        "id": state.node_id,
        "store": {key: [value, version] for key, (value, version) in state.store.items()},
    }


def _state_from_json(data: Any) -> ServerState:
    node_id = data["id"]
    if not isinstance(node_id, int):
        raise ValueError("malformed server state")
    store: dict[str, tuple[str, int]] = {}
    for key, (value, version) in data["store"].items():
        if not isinstance(value, str) or not isinstance(version, int):
            raise ValueError("malformed server state")
        store[key] = (value, version)
    return ServerState(node_id, VectorClock.from_dict(data["clock"]), store)


@dataclass(frozen=True)
class _Read:
    key: str
    clock: Optional[VectorClock]


@dataclass(frozen=True)
class _Write:
    key: str
    value: str
    clock: Optional[VectorClock]


@dataclass(frozen=True)
class _ReadReply:
    value: Optional[str]
    clock: Optional[VectorClock]


@dataclass(frozen=True)
class _WriteReply:
    clock: Optional[VectorClock]


@dataclass(frozen=True)
class _Sync:
    state: ServerState


@dataclass(frozen=True)
class _Terminate:
    pass


_Request = Union[_Read, _Write]
_Reply = Union[_ReadReply, _WriteReply]
_Message = Union[_Read, _Write, _ReadReply, _WriteReply, _Sync, _Terminate]


def _encode(message: _Message) -> bytes:
    match message:
        case _Read(key=key, clock=clock):
            raw: Any = {"Request": {"Read": {"key": key, "clock": _clock_to_json(clock)}}}
        case _Write(key=key, value=value, clock=clock):
            raw = {
                "Request": {
                    "Write": {"key": key, "value": value, "clock": _clock_to_json(clock)}
                }
            }
        case _ReadReply(value=value, clock=clock):
            raw = {"Reply": {"ReadReply": {"value": value, "clock": _clock_to_json(clock)}}}
        case _WriteReply(clock=clock):
            raw = {"Reply": {"WriteReply": {"clock": _clock_to_json(clock)}}}
        case _Sync(state=state):
            raw = {"Sync": {"state": _state_to_json(state)}}
        case _Terminate():
            raw = _TERMINATE
        case _:
            raise TypeError(f"not a message: {message!r}")
    return json.dumps(raw, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _decode(data: bytes) -> _Message:
    raw = json.loads(data.decode("utf-8", errors="replace"))
    try:
        match raw:
            case "Terminate":
                return _Terminate()
            case {"Request": {"Read": {"key": str(key), "clock": clock}}}:
                return _Read(key, _clock_from_json(clock))
            case {"Request": {"Write": {"key": str(key), "value": str(value), "clock": clock}}}:
                return _Write(key, value, _clock_from_json(clock))
            case {"Reply": {"ReadReply": {"value": value, "clock": clock}}} if (
                value is None or isinstance(value, str)
            ):
                return _ReadReply(value, _clock_from_json(clock))
            case {"Reply": {"WriteReply": {"clock": clock}}}:
                return _WriteReply(_clock_from_json(clock))
            case {"Sync": {"state": state}}:
                return _Sync(_state_from_json(state))
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise ValueError(f"malformed message: {raw!r}") from exc
    raise ValueError(f"unknown message: {raw!r}")


class _Inbox(asyncio.DatagramProtocol):
    """Queues every received datagram with its sender."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[tuple[bytes, Any]] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: Any) -> None:
        self.queue.put_nowait((data[:_RECV_BUFFER_SIZE], addr))

    def error_received(self, exc: Exception) -> None:
        # UDP delivery failures are not reported to the sender.
        pass


async def _open_endpoint(local_addr: SocketAddr) -> tuple[asyncio.DatagramTransport, _Inbox]:
    loop = asyncio.get_running_loop()
    return await loop.create_datagram_endpoint(_Inbox, local_addr=local_addr)


def _checked_index(config: Configuration, index: int) -> int:
    if not 0 <= index < len(config.server_addrs):
        raise IndexError(f"server index {index} out of range")
    return index


class Client:
    """A client of the store that tracks the causal dependencies it has seen."""

    def __init__(
        self,
        transport: asyncio.DatagramTransport,
        inbox: _Inbox,
        config: Configuration,
    ) -> None:
        self._transport = transport
        self._inbox = inbox
        self.config = config
        self.clock: Optional[VectorClock] = None

    @classmethod
    async def create(cls, config: Configuration) -> Client:
        """Bind an ephemeral UDP socket and return a client."""
        transport, inbox = await _open_endpoint(("0.0.0.0", 0))
        return cls(transport, inbox, config)

    async def read(self, key: str, index: Optional[int] = None) -> tuple[bool, Optional[str]]:
        """Read ``key`` from server ``index``, or from a random server.

        Returns ``(False, None)`` when the server does not yet hold all the
        causal dependencies of this client.
        """
        if index is None:
            index = random.randrange(len(self.config.server_addrs))
        return await self._invoke(_Read(key, self._clock_copy()), index)

    async def write(self, key: str, value: str, index: Optional[int] = None) -> None:
        """Write ``key`` to server ``index``, or to the key's home server."""
        if index is None:
            index = self._key_to_server(key)
        await self._invoke(_Write(key, value, self._clock_copy()), index)

    async def terminate(self, index: int) -> None:
        """Ask the server at ``index`` to stop."""
        addr = self.config.server_addrs[_checked_index(self.config, index)]
        self._transport.sendto(_encode(_Terminate()), addr)

    def close(self) -> None:
        """Release the socket."""
        self._transport.close()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def _clock_copy(self) -> Optional[VectorClock]:
        return self.clock.copy() if self.clock is not None else None

    def _key_to_server(self, key: str) -> int:
        digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "little") % len(self.config.server_addrs)

    def _update_clock(self, clock: VectorClock) -> None:
        if self.clock is None:
            self.clock = clock.copy()
        else:
            self.clock.merge([clock])

    async def _invoke(self, request: _Request, index: int) -> tuple[bool, Optional[str]]:
        addr = self.config.server_addrs[_checked_index(self.config, index)]
        self._transport.sendto(_encode(request), addr)
        while True:
            data, _ = await self._inbox.queue.get()
            match _decode(data):
                case _ReadReply(clock=None) | _WriteReply(clock=None):
                    return False, None
                case _ReadReply(value=value, clock=clock):
                    self._update_clock(clock)
                    return True, value
                case _WriteReply(clock=clock):
                    self._update_clock(clock)
                    return True, None


class Server:
    """A storage node holding a UDP socket and a :class:`ServerState`."""

    def __init__(
        self,
        config: Configuration,
        index: int,
        transport: asyncio.DatagramTransport,
        inbox: _Inbox,
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

    def get_server_state(self) -> ServerState:
        """Return the current state of this node."""
        return self.state

    def _is_behind(self, clock: Optional[VectorClock]) -> bool:
        if clock is None:
            return False
        return self.state.clock.partial_cmp(clock) in (-1, None)

    def _sync_others(self) -> None:
        data = _encode(_Sync(self.state.copy()))
        for i, addr in enumerate(self.config.server_addrs):
            if i != self.index:
                self._transport.sendto(data, addr)

    def _handle_request(self, request: _Request) -> _Reply:
        match request:
            case _Read(key=key, clock=clock):
                if self._is_behind(clock):
                    return _ReadReply(None, None)
                return _ReadReply(self.state.read(key), self.state.clock.copy())
            case _Write(key=key, value=value, clock=clock):
                if self._is_behind(clock):
                    return _WriteReply(None)
                self.state.write(key, value)
                self._sync_others()
                return _WriteReply(self.state.clock.copy())
        raise TypeError(f"not a request: {request!r}")

    def _handle(self, message: _Message, src: Any) -> None:
        match message:
            case _Read() | _Write():
                reply = self._handle_request(message)
                self._transport.sendto(_encode(reply), src)
            case _Sync(state=state):
                self.state.merge(state)
            case _Terminate():
                self._running = False

    async def run(self) -> None:
        """Process messages until a termination request arrives."""
        self._running = True
        while self._running:
            data, src = await self._inbox.queue.get()
            self._handle(_decode(data), src)

    def close(self) -> None:
        """Release the socket."""
        self._transport.close()

    async def __aenter__(self) -> Server:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()