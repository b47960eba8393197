"""Kademlia k-buckets and the routing table built from them."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from kadnode.keys import KEY_SIZE, K, DhtKey, NodeInfo


@dataclass
class Bucket:
    """Up to ``K`` nodes, most recently seen last."""

    nodes: list[NodeInfo] = field(default_factory=list)
    last_updated: float = field(default_factory=time.monotonic)

    def update(self, node: NodeInfo) -> bool:
        """Add or refresh ``node``; return ``False`` if the bucket is full."""
        self.last_updated = time.monotonic()
        for existing in self.nodes:
            if existing.id == node.id:
                self.nodes.remove(existing)
                self.nodes.append(node)
                return True
        if len(self.nodes) < K:
            self.nodes.append(node)
            return True
        return False

    def remove(self, node_id: DhtKey) -> None:
        for existing in self.nodes:
            if existing.id == node_id:
                self.nodes.remove(existing)
                return


class RoutingTable:
    """``KEY_SIZE`` buckets indexed by the leading zero bits of the XOR distance."""

    def __init__(self, node_id: DhtKey) -> None:
        self.node_id = node_id
        self.buckets: list[Bucket] = [Bucket() for _ in range(KEY_SIZE)]

    def update(self, node: NodeInfo) -> bool:
        index = self.bucket_index(self.node_id.distance(node.id))
        return self.buckets[index].update(node)

    def remove(self, node_id: DhtKey) -> None:
        index = self.bucket_index(self.node_id.distance(node_id))
        self.buckets[index].remove(node_id)

    def find_closest(self, target: DhtKey, count: int) -> list[NodeInfo]:
        """Return up to ``count`` known nodes, nearest to ``target`` first."""
        index = self.bucket_index(self.node_id.distance(target))
        nodes = list(self.buckets[index].nodes)

        for bucket in self.buckets[index + 1 :]:
            if len(nodes) >= count:
                break
            nodes.extend(bucket.nodes)

        for bucket in reversed(self.buckets[:index]):
            if len(nodes) >= count:
                break
            nodes.extend(bucket.nodes)

        nodes.sort(key=lambda n: target.distance(n.id))
        return nodes[:count]

    def bucket_index(self, distance: bytes) -> int:
        """Position of the first set bit of ``distance``; 0 for a zero distance."""
        for i, byte in enumerate(distance):
            if byte:
                return min(i * 8 + (8 - byte.bit_length()), KEY_SIZE - 1)
        return 0