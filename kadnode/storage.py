"""Local key/value storage with optional expiry."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from kadnode.keys import DhtKey


@dataclass
class StoredValue:
    """A stored payload and the monotonic time at which it expires, if any."""

    data: bytes
    expires_at: float | None = None

    @classmethod
    def with_ttl(cls, data: bytes, ttl: float | None) -> StoredValue:
        expires_at = None if ttl is None else time.monotonic() + ttl
        return cls(bytes(data), expires_at)

    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= time.monotonic()


@dataclass
class Storage:
    """Values keyed by ``DhtKey``; expired entries are invisible to ``get``."""

    _values: dict[DhtKey, StoredValue] = field(default_factory=dict)

    def store(self, key: DhtKey, value: bytes, ttl: float | None = None) -> None:
        """Store ``value`` under ``key``; ``ttl`` is in seconds, ``None`` for no expiry."""
        self._values[key] = StoredValue.with_ttl(value, ttl)

    def get(self, key: DhtKey) -> bytes | None:
        entry = self._values.get(key)
        if entry is None or entry.is_expired():
            return None
        return entry.data

    def remove(self, key: DhtKey) -> None:
        self._values.pop(key, None)

    def cleanup(self) -> None:
        """Drop every expired entry."""
        self._values = {k: v for k, v in self._values.items() if not v.is_expired()}

    def __len__(self) -> int:
        return len(self._values)