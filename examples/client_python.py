"""Python client for a real-time update channel.

Connects to a server, keeps the connection alive across drops,
and prints incoming updates.

    pip install realtime-client

    # All messages
    python examples/client_python.py --url ws://localhost:8080/ws

    # Only snapshot and corridor updates
    python examples/client_python.py --types snapshot_update,corridor_update
"""

import argparse
import asyncio
import logging
import signal

from realtime_client import WebSocketTransport, connect


async def main(url: str, message_types: list[str], attempts: int):
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    transport = WebSocketTransport(url)
    async with connect(
        transport,
        message_types=message_types or None,
        max_reconnect_attempts=attempts,
        on_connect=lambda: print(f"Connected to {url}"),
        on_state_change=lambda state: print(f"-- {state.value}"),
        on_error=lambda text: print(f"Server error: {text}"),
        on_message=lambda msg: print(f"[{msg.type}] {msg.payload}"),
    ):
        print("Listening for updates... (Ctrl+C to stop)\n")
        await stop.wait()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Realtime channel client")
    parser.add_argument("--url", default="ws://localhost:8080/ws")
    parser.add_argument(
        "--types",
        default="",
        help="Comma-separated message types (default: all)",
    )
    parser.add_argument("--attempts", type=int, default=5, help="Reconnect budget")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    message_types = [t.strip() for t in args.types.split(",") if t.strip()]
    asyncio.run(main(args.url, message_types, args.attempts))
