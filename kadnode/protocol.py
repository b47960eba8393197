"""Wire messages of the node protocol, their JSON encoding and the client."""

from __future__ import annotations

import asyncio
import contextlib
import json
from dataclasses import dataclass
from typing import Any, Union

from kadnode.keys import DhtKey, NodeInfo
from kadnode.utils import Address, format_addr, parse_addr

LINE_LIMIT = 256 * 1024 * 1024
"""Largest message line, in bytes, that a stream reader will accept."""


class RpcError(Exception):
    """Base class of every protocol failure."""

    prefix = "RPC error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"


class RpcIoError(RpcError):
    """A socket or stream operation failed."""

    prefix = "IO error"


class SerializationError(RpcError):
    """A message could not be encoded or decoded."""

    prefix = "Serialization error"


class RpcConnectionError(RpcError):
    """A peer could not be reached or answered unexpectedly."""

    prefix = "Connection error"


class StorageError(RpcError):
    """A value could not be stored on the network."""

    prefix = "Storage error"


# Requests


@dataclass(frozen=True)
class Ping:
    """Liveness check; answered with ``Pong``."""


@dataclass(frozen=True)
class FindNode:
    """Ask for the known nodes closest to ``target``."""

    target: DhtKey


@dataclass(frozen=True)
class Store:
    """Store ``value`` under ``key``."""

    key: DhtKey
    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))


@dataclass(frozen=True)
class FindValue:
    """Ask for the value stored under ``key``."""

    key: DhtKey


@dataclass(frozen=True)
class GetNodeId:
    """Introduce the sender and ask for the receiver's identifier."""

    sender_id: DhtKey
    sender_addr: Address


Request = Union[Ping, FindNode, Store, FindValue, GetNodeId]


# Responses


@dataclass(frozen=True)
class Pong:
    """Answer to ``Ping``."""


@dataclass(frozen=True)
class Nodes:
    """A list of node descriptors."""

    nodes: tuple[NodeInfo, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))


@dataclass(frozen=True)
class Value:
    """A stored value."""

    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class NotFound:
    """No value is stored under the requested key."""


@dataclass(frozen=True)
class Ok:
    """The request succeeded."""


@dataclass(frozen=True)
class NodeId:
    """The identifier of the answering node."""

    id: DhtKey


Response = Union[Pong, Nodes, Value, NotFound, Ok, NodeId]


_UNIT = object()


def _byte_list(data: Any) -> bytes:
    if not isinstance(data, list):
        raise ValueError("expected a list of byte values")
    if not all(
        isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 0xFF for b in data
    ):
        raise ValueError("byte values must be integers in 0..255")
    return bytes(data)


def key_from_wire(data: Any) -> DhtKey:
    """Accept a key as a string (hashed with SHA-256) or as its 32 byte values."""
    if isinstance(data, str):
        return DhtKey.from_str(data)
    if isinstance(data, list):
        try:
            return DhtKey.from_json(data)
        except ValueError as exc:
            raise ValueError(f"data did not match any key form: {exc}") from exc
    raise ValueError("data did not match any key form")


def value_from_wire(data: Any) -> bytes:
    """Accept a value as a string (UTF-8 encoded) or as a list of byte values."""
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, list):
        try:
            return _byte_list(data)
        except ValueError as exc:
            raise ValueError(f"data did not match any value form: {exc}") from exc
    raise ValueError("data did not match any value form")


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"))


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as exc:
        raise SerializationError(str(exc)) from exc


def _variant(data: Any) -> tuple[str, Any]:
    if isinstance(data, str):
        return data, _UNIT
    if isinstance(data, dict) and len(data) == 1:
        ((name, payload),) = data.items()
        return name, payload
    raise SerializationError("expected a variant name or a single-entry object")


def _unit(payload: Any) -> None:
    if payload is not _UNIT and payload is not None:
        raise ValueError("invalid type, expected unit variant")


def _newtype(payload: Any) -> Any:
    if payload is _UNIT:
        raise ValueError("invalid type: unit variant, expected newtype variant")
    return payload


def _pair(payload: Any) -> tuple[Any, Any]:
    if not isinstance(payload, list) or len(payload) != 2:
        raise ValueError("expected a tuple variant with 2 elements")
    return payload[0], payload[1]


def encode_request(request: Request) -> str:
    """Render a request as one line of JSON, without the trailing newline."""
    match request:
        case Ping():
            obj: Any = "Ping"
        case FindNode(target=target):
            obj = {"FindNode": target.to_json()}
        case Store(key=key, value=value):
            obj = {"Store": [key.to_json(), list(value)]}
        case FindValue(key=key):
            obj = {"FindValue": key.to_json()}
        case GetNodeId(sender_id=sender_id, sender_addr=sender_addr):
            obj = {"GetNodeId": [sender_id.to_json(), format_addr(sender_addr)]}
        case _:
            raise SerializationError(f"not a request: {request!r}")
    return _dumps(obj)


def decode_request(text: str) -> Request:
    """Parse a request line; keys and values may also be given as strings."""
    name, payload = _variant(_loads(text))
    try:
        if name == "Ping":
            _unit(payload)
            return Ping()
        if name == "FindNode":
            return FindNode(key_from_wire(_newtype(payload)))
        if name == "Store":
            key, value = _pair(_newtype(payload))
            return Store(key_from_wire(key), value_from_wire(value))
        if name == "FindValue":
            return FindValue(key_from_wire(_newtype(payload)))
        if name == "GetNodeId":
            key, addr = _pair(_newtype(payload))
            if not isinstance(addr, str):
                raise ValueError("socket address must be a string")
            return GetNodeId(key_from_wire(key), parse_addr(addr))
    except (ValueError, TypeError) as exc:
        raise SerializationError(str(exc)) from exc
    raise SerializationError(f"unknown variant `{name}`")


def encode_response(response: Response) -> str:
    """Render a response as one line of JSON, without the trailing newline."""
    match response:
        case Pong():
            obj: Any = "Pong"
        case Nodes(nodes=nodes):
            obj = {"Nodes": [node.to_json() for node in nodes]}
        case Value(data=data):
            obj = {"Value": list(data)}
        case NotFound():
            obj = "NotFound"
        case Ok():
            obj = "Ok"
        case NodeId(id=node_id):
            obj = {"NodeId": node_id.to_json()}
        case _:
            raise SerializationError(f"not a response: {response!r}")
    return _dumps(obj)


def decode_response(text: str) -> Response:
    """Parse a response line."""
    name, payload = _variant(_loads(text))
    try:
        if name == "Pong":
            _unit(payload)
            return Pong()
        if name == "NotFound":
            _unit(payload)
            return NotFound()
        if name == "Ok":
            _unit(payload)
            return Ok()
        if name == "Nodes":
            items = _newtype(payload)
            if not isinstance(items, list):
                raise ValueError("expected a list of nodes")
            return Nodes(tuple(NodeInfo.from_json(item) for item in items))
        if name == "Value":
            return Value(_byte_list(_newtype(payload)))
        if name == "NodeId":
            return NodeId(DhtKey.from_json(_newtype(payload)))
    except (ValueError, TypeError) as exc:
        raise SerializationError(str(exc)) from exc
    raise SerializationError(f"unknown variant `{name}`")


@dataclass(frozen=True)
class RpcClient:
    """Sends one request per connection to the node listening at ``addr``."""

    addr: Address

    async def send_request(self, request: Request) -> Response:
        """Send ``request`` and wait for the single-line response."""
        line_out = (encode_request(request) + "\n").encode("utf-8")
        host, port = self.addr
        try:
            reader, writer = await asyncio.open_connection(host, port, limit=LINE_LIMIT)
        except OSError as exc:
            raise RpcIoError(str(exc)) from exc
        try:
            writer.write(line_out)
            await writer.drain()
            raw = await reader.readline()
            line_in = raw.decode("utf-8")
        except (OSError, ValueError) as exc:
            raise RpcIoError(str(exc)) from exc
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
        return decode_response(line_in)