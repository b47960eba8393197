# kadnode

A small Kademlia-style distributed hash table. Each node has a random
256-bit identifier, keeps a routing table of 256 buckets of up to 20 peers,
and stores key/value pairs locally while replicating them to the closest peers
it knows. Nodes talk to each other over TCP with one JSON message per line.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Running a node

Start a first node listening on `127.0.0.1:4000`:

```
kadnode 4000
```

Start a second node and join the network through the first one:

```
kadnode 4001 127.0.0.1:4000
```

Run without arguments, `kadnode` prints its usage line and exits. A node
always listens on `127.0.0.1`. The bootstrap address must be a literal IP
address with a port (`1.2.3.4:5000` or `[::1]:5000`); a bad port or address
is reported as `Error: ...` on standard error with exit status 1.

Every node runs a maintenance task once an hour that looks up a random key,
pings the peers it finds and drops peers that no longer answer.

## Using it from Python

```python
import asyncio

from kadnode.keys import DhtKey
from kadnode.node import DhtNode
from kadnode.server import RpcServer
from kadnode.utils import parse_addr


async def demo():
    node = DhtNode(parse_addr("127.0.0.1:4002"))
    server = RpcServer(node)
    serving = asyncio.create_task(server.start())
    await server.listening.wait()

    await node.bootstrap(parse_addr("127.0.0.1:4000"))
    key = DhtKey.from_str("hello")
    await node.store(key, b"world")
    print(await node.find_value(key))

    server.stop()
    await serving


asyncio.run(demo())
```

The modules:

- `kadnode.keys` — `DhtKey` (random keys, SHA-256 keys from strings, XOR
  `distance`), `NodeInfo`, and the constants `K`, `ALPHA` and `KEY_SIZE`.
- `kadnode.routing` — `Bucket` and `RoutingTable` with `update`, `remove`,
  `find_closest` and `bucket_index`.
- `kadnode.storage` — `Storage`, an in-memory store whose entries may carry a
  time-to-live in seconds; `cleanup` drops expired entries.
- `kadnode.protocol` — the request and response messages, their JSON
  encoding (`encode_request`, `decode_request`, `encode_response`,
  `decode_response`), `RpcClient`, and the errors `RpcError`, `RpcIoError`,
  `SerializationError`, `RpcConnectionError` and `StorageError`.
- `kadnode.node` — `DhtNode` with `bootstrap`, `find_node`, `store`,
  `find_value`, `ping_node`, `start_maintenance`, `stop_maintenance`,
  `check_node_health` and `remove_failed_nodes`.
- `kadnode.server` — `RpcServer`, which serves requests on the node's
  address until `stop` is called. If the node's port is 0, the port actually
  bound is written back to `node.addr` before `listening` is set.
- `kadnode.utils` — `parse_addr`, `format_addr`, `format_node_id`,
  `random_port` and `key_from_str`.

`DhtNode.store` raises `StorageError` when it found remote nodes but none of
them accepted the value. Progress is reported through the `logging` module.

## Wire protocol

Requests and responses are JSON values, one per line:

| Request                              | Response                |
|--------------------------------------|-------------------------|
| `"Ping"`                             | `"Pong"`                |
| `{"FindNode": key}`                  | `{"Nodes": [...]}`      |
| `{"Store": [key, value]}`            | `"Ok"`                  |
| `{"FindValue": key}`                 | `{"Value": [...]}` or `"NotFound"` |
| `{"GetNodeId": [key, "host:port"]}`  | `{"NodeId": key}`       |

A key is either a list of 32 byte values or a plain string, which is hashed
with SHA-256. A value is either a list of byte values or a plain string,
taken as its UTF-8 bytes. So a request can be typed by hand:

```
{"Store": ["greeting", "hello there"]}
```

## What it does not do

- Values live in memory only; nothing is written to disk, and a node that
  stops loses what it held.
- The `kadnode` command only runs a node. Storing and fetching values is done
  from Python or by sending protocol messages to a running node.