"""Command-line entry points for the accumulator client and server."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from typing import Optional

from vlckit.accumulator import Client, Configuration, Server


async def _disseminate(config: Configuration, message: str) -> None:
    async with await Client.create(config) as client:
        await client.disseminate(message)


async def _serve(config: Configuration, index: int) -> None:
    async with await Server.create(config, index) as server:
        await server.run()


def client_main(argv: Optional[Sequence[str]] = None) -> int:
    """Send one message to the accumulator network."""
    parser = argparse.ArgumentParser(
        prog="accumulator-client", description="Send a string to the accumulator network."
    )
    parser.add_argument("config_path", help="file with one server address per line")
    parser.add_argument("message", help="string to add")
    args = parser.parse_args(argv)
    config = Configuration.from_file(args.config_path)
    asyncio.run(_disseminate(config, args.message))
    return 0


def server_main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one accumulator server until it is told to terminate."""
    parser = argparse.ArgumentParser(
        prog="accumulator-server", description="Run an accumulator server node."
    )
    parser.add_argument("config_path", help="file with one server address per line")
    parser.add_argument("index", type=int, help="position of this server in the file")
    args = parser.parse_args(argv)
    config = Configuration.from_file(args.config_path)
    asyncio.run(_serve(config, args.index))
    return 0