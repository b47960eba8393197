"""Node identifiers, keys and node descriptors."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import Any

from kadnode.utils import Address, format_addr, parse_addr

K = 20
"""Kademlia bucket size."""
ALPHA = 3
"""Lookup concurrency parameter."""
KEY_SIZE = 256
"""Size of keys in bits."""
KEY_BYTES = KEY_SIZE // 8


@dataclass(frozen=True)
class DhtKey:
    """A 256-bit identifier used for both nodes and stored values."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray, memoryview)):
            raise TypeError("DhtKey requires a bytes-like value")
        raw = bytes(self.raw)
        if len(raw) != KEY_BYTES:
            raise ValueError(f"DhtKey requires exactly {KEY_BYTES} bytes, got {len(raw)}")
        object.__setattr__(self, "raw", raw)

    @classmethod
    def random(cls) -> DhtKey:
        """Return a key made of cryptographically random bytes."""
        return cls(secrets.token_bytes(KEY_BYTES))

    @classmethod
    def from_str(cls, s: str) -> DhtKey:
        """Return the SHA-256 hash of ``s`` as a key."""
        return cls(hashlib.sha256(s.encode("utf-8")).digest())

    def distance(self, other: DhtKey) -> bytes:
        """XOR distance between two keys, as 32 big-endian bytes."""
        return bytes(a ^ b for a, b in zip(self.raw, other.raw))

    def to_json(self) -> list[int]:
        """Wire form: a list of 32 byte values."""
        return list(self.raw)

    @classmethod
    def from_json(cls, data: Any) -> DhtKey:
        """Build a key from its wire form, raising ``ValueError`` if malformed."""
        if not isinstance(data, list) or len(data) != KEY_BYTES:
            raise ValueError(f"expected a list of {KEY_BYTES} byte values")
        if not all(
            isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 0xFF for b in data
        ):
            raise ValueError("key bytes must be integers in 0..255")
        return cls(bytes(data))

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.raw[:8].hex()


@dataclass(frozen=True)
class NodeInfo:
    """A node's identifier together with the address it listens on."""

    id: DhtKey
    addr: Address

    def to_json(self) -> dict[str, Any]:
        return {"id": self.id.to_json(), "addr": format_addr(self.addr)}

    @classmethod
    def from_json(cls, data: Any) -> NodeInfo:
        """Build a node descriptor from its wire form."""
        if not isinstance(data, dict) or "id" not in data or "addr" not in data:
            raise ValueError("node info must be an object with 'id' and 'addr'")
        addr = data["addr"]
        if not isinstance(addr, str):
            raise ValueError("node address must be a string")
        return cls(DhtKey.from_json(data["id"]), parse_addr(addr))

    def __str__(self) -> str:
        return f"Node[{self.id}@{format_addr(self.addr)}]"