"""Command-line entry point: run a node, optionally joining an existing network."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence

from kadnode.node import DhtNode
from kadnode.protocol import RpcConnectionError, RpcError
from kadnode.server import RpcServer
from kadnode.utils import format_addr, format_node_id, parse_addr

PROG = "kadnode"
LISTEN_HOST = "127.0.0.1"


def _parse_port(text: str) -> int:
    if not text:
        raise RpcConnectionError("cannot parse integer from empty string")
    digits = text[1:] if text.startswith("+") else text
    if not digits or not (digits.isascii() and digits.isdecimal()):
        raise RpcConnectionError("invalid digit found in string")
    port = int(digits)
    if port > 0xFFFF:
        raise RpcConnectionError("number too large to fit in target type")
    return port


async def run(port: int, bootstrap_addr: str | None = None) -> None:
    """Start a node on ``127.0.0.1:port``, bootstrap it if asked, and serve forever."""
    addr = (LISTEN_HOST, port)
    node = DhtNode(addr)
    print(f"Starting DHT node {format_node_id(node.id)} on {format_addr(addr)}", flush=True)

    await node.start_maintenance()
    try:
        if bootstrap_addr is not None:
            try:
                target = parse_addr(bootstrap_addr)
            except ValueError as exc:
                raise RpcConnectionError(str(exc)) from exc
            print(f"Bootstrapping from {format_addr(target)}", flush=True)
            await node.bootstrap(target)

        print("Starting RPC server", flush=True)
        await RpcServer(node).start()
    finally:
        await node.stop_maintenance()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(f"Usage: {PROG} <port> [bootstrap_addr]")
        return 0

    logging.basicConfig(level=logging.WARNING)
    try:
        port = _parse_port(args[0])
        asyncio.run(run(port, args[1] if len(args) > 1 else None))
    except RpcError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())