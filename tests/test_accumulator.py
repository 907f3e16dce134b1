import asyncio
import json
import socket

import pytest

from vlckit.accumulator import Client, Configuration, Server, ServerState
from vlckit.vector_clock import VectorClock


def _free_ports(count):
    sockets = []
    try:
        for _ in range(count):
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.bind(("127.0.0.1", 0))
            sockets.append(sock)
        return [sock.getsockname()[1] for sock in sockets]
    finally:
        for sock in sockets:
            sock.close()


async def _start_servers(n_server):
    config = Configuration(("127.0.0.1", port) for port in _free_ports(n_server))
    servers = [await Server.create(config, i) for i in range(n_server)]
    tasks = [asyncio.create_task(server.run()) for server in servers]
    return config, servers, tasks


async def _terminate_and_collect(config, servers, tasks):
    async with await Client.create(config) as client:
        for i in range(len(config.server_addrs)):
            await client.terminate(i)
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=5)
    for server in servers:
        server.close()
    return [server.state.items for server in servers]


@pytest.mark.asyncio
async def test_single_server():
    config, servers, tasks = await _start_servers(1)
    async with await Client.create(config) as client:
        await client.disseminate("hello")
    await asyncio.sleep(0.2)
    states = await _terminate_and_collect(config, servers, tasks)
    assert "hello" in states[0]


@pytest.mark.asyncio
async def test_multi_servers():
    config, servers, tasks = await _start_servers(3)
    async with await Client.create(config) as client:
        await client.disseminate("hello")
        await client.disseminate("world")
    await asyncio.sleep(0.2)
    states = await _terminate_and_collect(config, servers, tasks)
    assert all("hello" in s for s in states)
    assert all("world" in s for s in states)
    assert all(len(s) == 2 for s in states)


@pytest.mark.asyncio
async def test_client_wire_format():
    receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    receiver.bind(("127.0.0.1", 0))
    receiver.settimeout(5)
    try:
        config = Configuration([receiver.getsockname()])
        async with await Client.create(config) as client:
            await client.disseminate("hello")
            first, _ = await asyncio.to_thread(receiver.recvfrom, 1500)
            await client.terminate(0)
            second, _ = await asyncio.to_thread(receiver.recvfrom, 1500)
    finally:
        receiver.close()
    assert first == b'{"FromClient":{"item":"hello"}}'
    assert second == b'"Terminate"'


@pytest.mark.asyncio
async def test_server_broadcasts_new_state():
    peer = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    peer.bind(("127.0.0.1", 0))
    peer.settimeout(5)
    try:
        (server_port,) = _free_ports(1)
        config = Configuration([("127.0.0.1", server_port), peer.getsockname()])
        server = await Server.create(config, 0)
        task = asyncio.create_task(server.run())
        async with await Client.create(config) as client:
            await client.disseminate("hello")
            data, _ = await asyncio.to_thread(peer.recvfrom, 1500)
            await client.terminate(0)
        await asyncio.wait_for(task, timeout=5)
        server.close()
    finally:
        peer.close()
    message = json.loads(data)
    assert message == {
        "FromServer": {
            "state": {"clock": {"values": {"0": 1}}, "id": 0, "items": ["hello"]}
        }
    }


@pytest.mark.asyncio
async def test_malformed_datagram_stops_server():
    config, servers, tasks = await _start_servers(1)
    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sender.sendto(b"not json", config.server_addrs[0])
        with pytest.raises(ValueError):
            await asyncio.wait_for(tasks[0], timeout=5)
    finally:
        sender.close()
        servers[0].close()
    assert tasks[0].done()
    assert servers[0].state.items == set()
    assert servers[0].state.clock.values == {}


@pytest.mark.asyncio
async def test_unknown_message_rejected():
    config, servers, tasks = await _start_servers(1)
    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sender.sendto(b'{"Other":{}}', config.server_addrs[0])
        with pytest.raises(ValueError):
            await asyncio.wait_for(tasks[0], timeout=5)
    finally:
        sender.close()
        servers[0].close()
    assert tasks[0].done()
    assert servers[0].state.items == set()
    assert servers[0].state.clock.values == {}


@pytest.mark.asyncio
async def test_server_index_out_of_range():
    config = Configuration([("127.0.0.1", 9)])
    with pytest.raises(IndexError):
        await Server.create(config, 1)


def test_state_add_new_items():
    state = ServerState(0)
    assert state.add(["a"]) is True
    assert state.items == {"a"}
    assert state.clock.values == {0: 1}


def test_state_add_subset_is_noop():
    state = ServerState(0)
    state.add(["a", "b"])
    assert state.add(["a"]) is False
    assert state.clock.values == {0: 1}


def test_merge_adopts_newer_state():
    mine = ServerState(0)
    other = ServerState(1, VectorClock({1: 2}), {"x", "y"})
    assert mine.merge(other) is False
    assert mine.items == {"x", "y"}
    assert mine.clock == VectorClock({1: 2})
    other.clock.inc(1)
    assert mine.clock == VectorClock({1: 2})


def test_merge_ignores_older_or_equal_state():
    mine = ServerState(0, VectorClock({0: 2}), {"a"})
    older = ServerState(1, VectorClock({0: 1}), {"z"})
    assert mine.merge(older) is False
    assert mine.items == {"a"}
    same = ServerState(1, VectorClock({0: 2}), {"q"})
    assert mine.merge(same) is False
    assert mine.items == {"a"}


def test_merge_concurrent_states():
    mine = ServerState(0, VectorClock({0: 1}), {"a"})
    other = ServerState(1, VectorClock({1: 1}), {"b"})
    assert mine.merge(other) is True
    assert mine.items == {"a", "b"}
    assert mine.clock == VectorClock({0: 2, 1: 1})


def test_merge_concurrent_without_new_items():
    mine = ServerState(0, VectorClock({0: 1}), {"a", "b"})
    other = ServerState(1, VectorClock({1: 1}), {"b"})
    assert mine.merge(other) is False
    assert mine.clock == VectorClock({0: 1, 1: 1})


def test_configuration_from_file(tmp_path):
    path = tmp_path / "config"
    path.write_text("127.0.0.1:8000\n[::1]:9000\n")
    config = Configuration.from_file(path)
    assert config.server_addrs == (("127.0.0.1", 8000), ("::1", 9000))


@pytest.mark.parametrize("line", ["localhost:8000", "127.0.0.1", "127.0.0.1:70000", ""])
def test_configuration_rejects_bad_lines(tmp_path, line):
    path = tmp_path / "config"
    path.write_text(f"127.0.0.1:8000\n{line}\n")
    with pytest.raises(ValueError):
        Configuration.from_file(path)