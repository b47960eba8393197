"""The listening side of the node protocol."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from kadnode.keys import ALPHA, NodeInfo
from kadnode.node import DhtNode
from kadnode.protocol import (
    LINE_LIMIT,
    FindNode,
    FindValue,
    GetNodeId,
    NodeId,
    Nodes,
    NotFound,
    Ok,
    Ping,
    Pong,
    Request,
    Response,
    RpcError,
    RpcIoError,
    SerializationError,
    Store,
    Value,
    decode_request,
    encode_response,
)
from kadnode.utils import Address, format_addr

logger = logging.getLogger(__name__)


class RpcServer:
    """Serves line-delimited JSON requests on the node's address.

    If the node's port is 0 the port actually bound is written back to
    ``node.addr`` before ``listening`` is set.
    """

    def __init__(self, node: DhtNode) -> None:
        self.node = node
        self.listening = asyncio.Event()
        self._stop_requested = asyncio.Event()

    async def start(self) -> None:
        """Bind and serve until ``stop`` is called; raises ``RpcIoError`` if binding fails."""
        self._stop_requested.clear()
        host, port = self.node.addr
        try:
            server = await asyncio.start_server(
                self._handle_connection, host, port, limit=LINE_LIMIT
            )
        except OSError as exc:
            raise RpcIoError(str(exc)) from exc

        if port == 0 and server.sockets:
            self.node.addr = (host, server.sockets[0].getsockname()[1])
        logger.info("RPC server listening on %s", format_addr(self.node.addr))
        self.listening.set()
        try:
            async with server:
                await self._stop_requested.wait()
        finally:
            self.listening.clear()

    def stop(self) -> None:
        """Ask a running ``start`` to close the listener and return."""
        self._stop_requested.set()

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        sender: Address = (str(peer[0]), int(peer[1])) if peer else ("0.0.0.0", 0)
        try:
            while line := await reader.readline():
                text = line.decode("utf-8")
                logger.debug("Received raw request = %s", text.rstrip("\n"))
                request = decode_request(text)
                logger.debug("Parsed request = %r", request)
                response = await self.handle_request(request, sender)
                writer.write((encode_response(response) + "\n").encode("utf-8"))
                await writer.drain()
        except (RpcError, OSError, ValueError) as exc:
            logger.error("Error handling connection: %s", exc)
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def handle_request(self, request: Request, sender_addr: Address) -> Response:
        """Answer one request on behalf of the node."""
        node = self.node
        match request:
            case Ping():
                return Pong()
            case FindNode(target=target):
                return Nodes(tuple(node.routing_table.find_closest(target, ALPHA)))
            case Store(key=key, value=value):
                await node.store(key, value)
                return Ok()
            case FindValue(key=key):
                stored = node.storage.get(key)
                return NotFound() if stored is None else Value(stored)
            case GetNodeId(sender_id=sender_id, sender_addr=listening_addr):
                node.routing_table.update(NodeInfo(sender_id, listening_addr))
                return NodeId(node.id)
        raise SerializationError(f"not a request: {request!r}")