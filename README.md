# vlckit

Logical clocks for ordering events between nodes, plus two small networked
services built on them with asyncio and UDP.

The package has no runtime dependencies beyond the standard library.

## What is inside

| Module | Contents |
| --- | --- |
| `vlckit.vector_clock` | `VectorClock`: a mutable vector clock with `inc`, `get`, `clear`, `merge`, `diff`, `base_common`, `index_key`, `is_genesis` and `partial_cmp` |
| `vlckit.ordinary_clock` | `OrdinaryClock`: an immutable, key-ordered vector clock with `merge`, `update`, `base`, `dep_cmp`, `reduce` and a deterministic SHA-256 digest |
| `vlckit.hvlc` | `HVLCClock`: a vector clock carrying a nanosecond timestamp that breaks ties between concurrent clocks |
| `vlckit.hlc` | `HLTimespec` and `HybridLogicalClock`: a hybrid logical clock (wall time plus logical counter) |
| `vlckit.bincode` | `encode_varint` and `encode_u64_map`: the compact binary encoding hashed by the clock digests |
| `vlckit.payload` | `Payload`: `bytes` with a readable `repr`; constants `DEFAULT_MAX_DATAGRAM_SIZE` and `GENESIS_ROUND` |
| `vlckit.traffic` | `TrafficMonitor` and `PeerManager`: per-peer byte counts and a ban list |
| `vlckit.accumulator` | A UDP network of nodes that converge on a shared set of strings |
| `vlckit.accumulator_cli` | `client_main` and `server_main`, the two accumulator commands |
| `vlckit.cops` | A causally consistent key-value store over UDP |

## Installing

```
pip install vlckit
```

## Vector clocks

```python
from vlckit.vector_clock import VectorClock

a = VectorClock()
a.inc(0)
b = a.copy()
b.inc(0)

a.partial_cmp(b)   # -1: a happened before b
c = VectorClock()
c.inc(1)
a.partial_cmp(c)   # None: a and c are concurrent

a.merge([b, c])    # a now dominates both b and c
```

`partial_cmp` returns `-1`, `0` or `1`, or `None` when neither clock happened
before the other; the `<`, `<=`, `>` and `>=` operators follow it. `to_dict`
and `VectorClock.from_dict` turn a clock into JSON-compatible data and back.

## Ordinary and hybrid vector clocks

`OrdinaryClock` is a read-only mapping of key ids to counters. Its
`update(others, key_id)` returns a new clock merged with its dependencies and
with `key_id` advanced by one; `OrdinaryClock.base(clocks)` takes the
element-wise minimum; `dep_cmp(other, key_id)` compares a single entry;
`reduce()` sums the counters; `calculate_sha256()` hashes the `bincode`
encoding, so equal clocks always give equal digests. Zero entries are ignored
when comparing.

`HVLCClock` offers the same operations and also records a timestamp in
nanoseconds. When the counters do not decide the order, the timestamps do, so
its `partial_cmp` always returns `-1`, `0` or `1`. `update` refreshes the
timestamp to the current time when merging did not change it.

## Hybrid logical clock

```python
from vlckit.hlc import HLTimespec, HybridLogicalClock

clock = HybridLogicalClock()
stamp = clock.get_time()                       # attach to an outgoing event
received = clock.update(HLTimespec(12345, 67, 89))  # a remote event's timestamp
print(received)                                # seconds.nanoseconds+logical
```

`HybridLogicalClock(now=...)` accepts any function returning wall time in
nanoseconds since the Unix epoch, which makes the clock easy to drive in tests.
A lock guards the clock, so one instance may be shared between threads.

## Traffic accounting

`TrafficMonitor(fraction)` records bytes per peer with `record_traffic`;
`top_traffic_peers()` returns the heaviest `fraction` of peers, largest first.
`PeerManager` bundles a monitor with a `peer_ban_list` dictionary. These are
bookkeeping only: the package contains no peer-to-peer network that would act
on them.

## The accumulator network

Each server keeps a set of strings. A client sends a string to the first
server; a server that learns something new sends its whole state to the
others, and the servers merge states until all of them hold the same set.

Write a configuration file with one `host:port` per line, one line per server
(IPv6 addresses are written `[addr]:port`):

```
127.0.0.1:8000
127.0.0.1:8001
127.0.0.1:8002
```

Start each server with its index in that file:

```
vlckit-accumulator-server servers.txt 0
vlckit-accumulator-server servers.txt 1
vlckit-accumulator-server servers.txt 2
```

Then send items:

```
vlckit-accumulator-client servers.txt hello
```

From Python, `Client.create(config)` and `Server.create(config, index)` build
the same nodes, with `Configuration.from_file(path)` reading the file above.
`Server.run()` processes messages until `Client.terminate(index)` asks it to
stop; the finished set is in `server.state.items`. Both classes can be used as
async context managers, which close the socket on exit.

## The causally consistent store

`vlckit.cops` provides `Client`, `Server` and `ServerState` for a key-value
store in which a client never reads a state older than one it has already
seen. It reuses `Configuration` from `vlckit.accumulator`.

```python
from vlckit.accumulator import Configuration
from vlckit import cops

config = Configuration([("127.0.0.1", 8100), ("127.0.0.1", 8101)])
# each server: server = await cops.Server.create(config, i); await server.run()
client = await cops.Client.create(config)
await client.write("k1", "v1")          # goes to the key's home server
ok, value = await client.read("k1", 1)  # (True, "v1") once server 1 has caught up
```

`read(key, index=None)` picks a random server when no index is given and
returns `(False, None)` if that server has not yet caught up with the
client's clock. `write(key, value, index=None)` sends to the key's home server
when no index is given; a write refused by a server that is behind is not
applied, and `write` does not report it. After each accepted write the server
sends its whole state to every other server, where the higher version of each
key wins.

## What the package does not do

- There is no command for the key-value store; its servers and clients are
  started from Python.
- There is no command to stop an accumulator server; use
  `Client.terminate(index)` from Python.
- Clients wait for a reply without a timeout and do not retransmit; a lost
  UDP datagram leaves the call waiting.
- Received datagrams are read up to 1500 bytes; larger messages are cut short
  and fail to decode.
- State lives in memory only; nothing is stored on disk.

## Running the tests

```
pip install "vlckit[test]"
pytest
```