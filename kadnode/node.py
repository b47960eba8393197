"""A participating node: lookups, replication and routing-table maintenance."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from kadnode.keys import ALPHA, DhtKey, NodeInfo
from kadnode.protocol import (
    FindNode,
    FindValue,
    GetNodeId,
    NodeId,
    Nodes,
    NotFound,
    Ping,
    Pong,
    RpcClient,
    RpcConnectionError,
    RpcError,
    StorageError,
    Store,
    Value,
)
from kadnode.routing import RoutingTable
from kadnode.storage import Storage
from kadnode.utils import Address, format_addr

logger = logging.getLogger(__name__)

MIN_VALUE_REPLICATION_TO_NODES = 3
"""Number of remote nodes a stored value should reach."""
MAINTENANCE_INTERVAL_SECONDS = 3600
"""Pause between two rounds of routing-table maintenance."""
MAX_EMPTY_RESPONSES = 3
"""Lookup rounds without new nodes after which a lookup gives up."""


class DhtNode:
    """A node with its own identifier, routing table and local storage."""

    def __init__(self, addr: Address, node_id: DhtKey | None = None) -> None:
        self.id = node_id if node_id is not None else DhtKey.random()
        self.addr = addr
        self.routing_table = RoutingTable(self.id)
        self.storage = Storage()
        self._maintenance_task: asyncio.Task[None] | None = None

    def as_info(self) -> NodeInfo:
        return NodeInfo(self.id, self.addr)

    def _by_distance(self, target: DhtKey, nodes: list[NodeInfo]) -> list[NodeInfo]:
        return sorted(nodes, key=lambda n: target.distance(n.id))

    async def bootstrap(self, bootstrap_addr: Address) -> None:
        """Join the network through the node listening at ``bootstrap_addr``."""
        client = RpcClient(bootstrap_addr)
        response = await client.send_request(GetNodeId(self.id, self.addr))
        if not isinstance(response, NodeId):
            raise RpcConnectionError("Failed to get bootstrap node ID")

        self.routing_table.update(NodeInfo(response.id, bootstrap_addr))

        response = await client.send_request(FindNode(self.id))
        if isinstance(response, Nodes):
            logger.info(
                "Found %d nodes: [%s]",
                len(response.nodes),
                ", ".join(str(n) for n in response.nodes),
            )
            for node in response.nodes:
                await self.ping_node(node)

    async def find_node(self, target: DhtKey) -> list[NodeInfo]:
        """Look up to ``ALPHA`` nodes closest to ``target``, nearest first."""
        current = self.routing_table.find_closest(target, ALPHA)
        if not current:
            return []

        queried: set[DhtKey] = set()
        found: set[DhtKey] = {node.id for node in current}
        all_found = list(current)
        empty_rounds = 0

        while current and len(all_found) < ALPHA:
            new_closest: list[NodeInfo] = []
            for node in current:
                if node.id in queried:
                    continue
                queried.add(node.id)
                try:
                    response = await RpcClient(node.addr).send_request(FindNode(target))
                except RpcError:
                    continue
                if not isinstance(response, Nodes):
                    continue
                for new_node in response.nodes:
                    if new_node.id in found:
                        continue
                    found.add(new_node.id)
                    all_found.append(new_node)
                    new_closest.append(new_node)
                    await self.ping_node(new_node)

            if new_closest:
                empty_rounds = 0
            else:
                empty_rounds += 1
                if empty_rounds >= MAX_EMPTY_RESPONSES:
                    break
                break

            current = self._by_distance(target, new_closest)[:ALPHA]

        return self._by_distance(target, all_found)[:ALPHA]

    async def store(self, key: DhtKey, value: bytes) -> None:
        """Store ``value`` locally and replicate it to the closest nodes.

        Raises ``StorageError`` if remote nodes were found but none accepted it.
        """
        value = bytes(value)
        if self.storage.get(key) == value:
            return
        self.storage.store(key, value)

        closest = await self.find_node(key)
        if not closest:
            logger.info("No extra nodes found to store value, storing locally only")
            return
        logger.info("Found %s nodes to store value on", [str(n) for n in closest])

        success_count = 0
        errors: list[RpcError] = []
        for node in closest:
            try:
                await RpcClient(node.addr).send_request(Store(key, value))
            except RpcError as exc:
                errors.append(exc)
                continue
            success_count += 1
            if success_count >= MIN_VALUE_REPLICATION_TO_NODES:
                return

        if success_count == 0:
            raise StorageError(
                "Failed to store value on any remote nodes. "
                f"Errors: {[str(e) for e in errors]}"
            )
        logger.warning(
            "Only stored value on %d/%d nodes. Errors: %s",
            success_count,
            MIN_VALUE_REPLICATION_TO_NODES,
            [str(e) for e in errors],
        )

    async def find_value(self, key: DhtKey) -> bytes | None:
        """Return the value for ``key`` from local storage or the network."""
        local = self.storage.get(key)
        if local is not None:
            return local

        closest = await self.find_node(key)
        errors: list[RpcError] = []
        for node in closest:
            try:
                response = await RpcClient(node.addr).send_request(FindValue(key))
            except RpcError as exc:
                errors.append(exc)
                continue
            if isinstance(response, Value):
                self.storage.store(key, response.data)
                return response.data
            if isinstance(response, NotFound):
                continue

        if errors:
            logger.warning("Errors while finding value: %s", [str(e) for e in errors])
        return None

    async def ping_node(self, node: NodeInfo) -> None:
        """Ping ``node`` and record it in the routing table if it answers."""
        try:
            await RpcClient(node.addr).send_request(Ping())
        except RpcError:
            logger.info("Failed to ping node: %s", node)
            return
        self.routing_table.update(node)
        logger.info("Pinged node successfully: %s", node)

    async def start_maintenance(self) -> asyncio.Task[None]:
        """Start the periodic refresh-and-evict loop in the background."""
        if self._maintenance_task is not None and not self._maintenance_task.done():
            return self._maintenance_task
        self._maintenance_task = asyncio.create_task(self._maintain())
        return self._maintenance_task

    async def stop_maintenance(self) -> None:
        """Cancel the maintenance loop, if it is running, and wait for it."""
        task, self._maintenance_task = self._maintenance_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _maintain(self) -> None:
        while True:
            try:
                nodes = await self.find_node(DhtKey.random())
            except RpcError:
                nodes = []
            for node in nodes:
                await self.ping_node(node)
            await self.remove_failed_nodes()
            await asyncio.sleep(MAINTENANCE_INTERVAL_SECONDS)

    async def check_node_health(self, node: NodeInfo) -> bool:
        """True if ``node`` answers a ping with ``Pong``."""
        try:
            response = await RpcClient(node.addr).send_request(Ping())
        except RpcError:
            return False
        return isinstance(response, Pong)

    async def remove_failed_nodes(self) -> None:
        """Drop every routing-table entry that fails a health check."""
        nodes = [node for bucket in self.routing_table.buckets for node in bucket.nodes]
        failed = [node.id for node in nodes if not await self.check_node_health(node)]
        for node_id in failed:
            self.routing_table.remove(node_id)

    def __repr__(self) -> str:
        return f"DhtNode(id={self.id}, addr={format_addr(self.addr)})"