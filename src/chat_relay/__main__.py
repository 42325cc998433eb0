"""Entry point for the chat relay."""

import asyncio
import contextlib

from chat_relay.server import run_server


def main() -> None:
    """Start the chat relay server."""
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_server())


if __name__ == "__main__":
    main()
