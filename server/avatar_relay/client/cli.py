"""Terminal client for talking to the mentor avatar through the relay.

Connects a session, prints status/speaking/transcript updates and sends each
typed line to the avatar. The received video is recorded to a file when
`--record` is given, otherwise discarded.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Optional

from ..config import settings
from .coordinator import PeerConnectionCoordinator
from .events import SpeakingChanged, StatusChanged, TranscriptEntry
from .media import VideoSurface
from .orchestrator import SessionOrchestrator
from .relay_client import RelayClient

logger = logging.getLogger(__name__)

HELP_TEXT = """
Commands:
  /interrupt - Stop the avatar mid-sentence
  /quit      - End the session and exit
  /help      - Show this help

Anything else is sent to the mentor.
"""


def render_update(update: Any) -> Optional[str]:
    """Format an orchestrator update as one terminal line."""

    if isinstance(update, StatusChanged):
        return f"[status] {update.status.value}"
    if isinstance(update, SpeakingChanged):
        return "[avatar speaking]" if update.speaking else "[avatar idle]"
    if isinstance(update, TranscriptEntry):
        label = {"user": "You", "avatar": "Mentor", "system": "System"}.get(update.role, update.role)
        return f"{label}: {update.text}"
    return None


async def print_updates(updates: asyncio.Queue) -> None:
    while True:
        line = render_update(await updates.get())
        if line:
            print(line, flush=True)


async def input_loop(orchestrator: SessionOrchestrator, stop: asyncio.Event) -> None:
    print(HELP_TEXT)
    loop = asyncio.get_running_loop()

    while not stop.is_set():
        try:
            text = await loop.run_in_executor(None, input, "")
        except EOFError:
            break
        text = text.strip()
        if not text:
            continue

        if text.startswith("/"):
            command = text[1:].lower()
            if command == "quit":
                break
            elif command == "interrupt":
                await orchestrator.interrupt()
            elif command == "help":
                print(HELP_TEXT)
            else:
                print(f"Unknown command: {command}")
            continue

        if await orchestrator.send_message(text) is None:
            print("(message not sent: not connected or still answering)")
    stop.set()


async def run_client(relay_url: str, record_path: Optional[str] = None) -> bool:
    async with RelayClient(relay_url) as relay:
        coordinator = PeerConnectionCoordinator(relay, surface=VideoSurface(record_path))
        async with SessionOrchestrator(coordinator) as orchestrator:
            printer = asyncio.ensure_future(print_updates(orchestrator.updates))
            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop.set)
            try:
                if not await orchestrator.connect():
                    return False
                reader = asyncio.ensure_future(input_loop(orchestrator, stop))
                await stop.wait()
                reader.cancel()
                await orchestrator.disconnect()
                return True
            finally:
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)
                # Flush the last transcript lines before exiting
                await asyncio.sleep(0)
                printer.cancel()


def main() -> None:
    parser = argparse.ArgumentParser(description="Terminal client for the mentor avatar relay")
    parser.add_argument(
        "--relay-url",
        type=str,
        default=f"http://localhost:{settings.port}",
        help="Base URL of the relay server (default: %(default)s)",
    )
    parser.add_argument("--record", type=str, default=None, help="Record the avatar video to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(levelname)-8s | %(message)s",
    )
    try:
        ok = asyncio.run(run_client(args.relay_url, args.record))
    except KeyboardInterrupt:
        print("\nExiting...")
        ok = True
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
