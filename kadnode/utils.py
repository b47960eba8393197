"""Small helpers for addresses, node identifiers and ports."""

from __future__ import annotations

import ipaddress
import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kadnode.keys import DhtKey

Address = tuple[str, int]


def parse_addr(addr_str: str) -> Address:
    """Parse ``ip:port`` (or ``[ipv6]:port``) into a ``(host, port)`` tuple.

    Only literal IP addresses are accepted; host names raise ``ValueError``.
    """
    if addr_str.startswith("["):
        host_part, sep, port_text = addr_str[1:].partition("]:")
        if not sep:
            raise ValueError(f"invalid socket address syntax: {addr_str!r}")
        try:
            ip = ipaddress.IPv6Address(host_part)
        except ValueError as exc:
            raise ValueError(f"invalid socket address syntax: {addr_str!r}") from exc
    else:
        host_part, sep, port_text = addr_str.rpartition(":")
        if not sep:
            raise ValueError(f"invalid socket address syntax: {addr_str!r}")
        try:
            ip = ipaddress.IPv4Address(host_part)
        except ValueError as exc:
            raise ValueError(f"invalid socket address syntax: {addr_str!r}") from exc

    if not (port_text.isascii() and port_text.isdecimal()):
        raise ValueError(f"invalid socket address syntax: {addr_str!r}")
    port = int(port_text)
    if port > 0xFFFF:
        raise ValueError(f"invalid socket address syntax: {addr_str!r}")
    return str(ip), port


def format_addr(addr: Address) -> str:
    """Render a ``(host, port)`` tuple as ``ip:port`` or ``[ipv6]:port``."""
    host, port = addr
    if ipaddress.ip_address(host).version == 6:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def format_node_id(node_id: DhtKey) -> str:
    """Return the full lower-case hex form of a node identifier."""
    return node_id.raw.hex()


def random_port(low: int, high: int) -> int:
    """Pick a port uniformly from ``[low, high)``."""
    return random.randrange(low, high)


def key_from_str(s: str) -> DhtKey:
    """Derive a key from a string by hashing it with SHA-256."""
    from kadnode.keys import DhtKey

    return DhtKey.from_str(s)