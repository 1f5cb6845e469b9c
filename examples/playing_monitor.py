"""Print filtered playback changes from a Plex Media Server.

Reads server settings and filters from a JSON config (see
``plex_notify.config``), connects to the notification socket and prints
every playback state change that passes the filter chain.

    pip install plex-notify

    PLEX_TOKEN=<token> python examples/playing_monitor.py --host 10.0.0.5
    python examples/playing_monitor.py --config ./config.json --verbose
"""

import argparse
import asyncio
import dataclasses
import logging
import signal

from plex_notify import (
    HttpSessionStore,
    NotificationTransport,
    PlayingMessage,
    PlayingStreamProcessor,
    load_config,
)


def print_message(message: PlayingMessage) -> None:
    session = message.session
    title = session.get("title", "?")
    player = (session.get("Player") or {}).get("title", "?")
    key = message.plex.get("sessionKey")
    print(f"[{message.payload}] {title} on {player} (session {key})")


async def main(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    server = config.server
    if args.host:
        server = dataclasses.replace(server, host=args.host)
    if args.port:
        server = dataclasses.replace(server, port=args.port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    sessions = HttpSessionStore(server.http_base_url, server.token)
    transport = NotificationTransport(server)
    transport.on("unauthorized", lambda response: print("Token rejected (401)"))
    processor = PlayingStreamProcessor(
        transport, sessions, print_message, filters=config.filters
    )
    processor.start()

    print(f"Listening on {transport.build_address()} with {len(processor.filters)} filters")
    print("Waiting for playback changes... (Ctrl+C to stop)\n")
    try:
        await stop.wait()
    finally:
        await processor.close()
        await transport.close()
        await sessions.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Plex playback monitor")
    parser.add_argument("--config", default=None, help="Path to config.json")
    parser.add_argument("--host", default=None, help="Override server.host")
    parser.add_argument("--port", type=int, default=None, help="Override server.port")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(main(args))
