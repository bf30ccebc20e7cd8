"""Session lifecycle orchestration: UI actions in, observable updates out."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..errors import AvatarRelayError
from .coordinator import PeerConnectionCoordinator
from .events import ConnectionStatus, ErrorRaised, SpeakingChanged, StatusChanged, TranscriptEntry
from .responders import WELCOME_MESSAGE, generate_mentor_response

logger = logging.getLogger(__name__)

Responder = Callable[[str], Awaitable[str]]

CONNECT_FAILED_MESSAGE = "Failed to connect. Please check your connection and try again."
SEND_FAILED_MESSAGE = "Failed to send message. Please try again."
SESSION_ENDED_MESSAGE = "Session ended. Click Connect to start a new mentoring session."


class SessionOrchestrator:
    """Sequences connect/send/interrupt/disconnect against one coordinator.

    Coordinator events are turned into `StatusChanged`, `SpeakingChanged` and
    `TranscriptEntry` updates on `self.updates`. Rendering them is up to the
    caller.
    """

    def __init__(
        self,
        coordinator: PeerConnectionCoordinator,
        *,
        responder: Responder = generate_mentor_response,
        welcome_message: str = WELCOME_MESSAGE,
        updates: Optional[asyncio.Queue] = None,
    ):
        self._coordinator = coordinator
        self._responder = responder
        self._welcome_message = welcome_message
        self.updates: asyncio.Queue = updates if updates is not None else asyncio.Queue()
        self._processing = False
        self._pump: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()

    @property
    def processing(self) -> bool:
        return self._processing

    async def __aenter__(self) -> "SessionOrchestrator":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    def start(self) -> None:
        """Begin consuming coordinator events in the background."""

        if self._pump is None:
            self._pump = asyncio.ensure_future(self._pump_events())

    async def _pump_events(self) -> None:
        while True:
            event = await self._coordinator.events.get()
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception("Failed handling coordinator event %r", event)

    async def drain(self) -> None:
        """Handle every coordinator event queued so far."""

        events = self._coordinator.events
        while not events.empty():
            await self.handle_event(events.get_nowait())

    async def handle_event(self, event: Any) -> None:
        if isinstance(event, StatusChanged):
            self.updates.put_nowait(event)
            if event.status is ConnectionStatus.CONNECTED:
                self._add_message("avatar", self._welcome_message)
                self._spawn(self._speak_welcome())
        elif isinstance(event, SpeakingChanged):
            self.updates.put_nowait(event)
        elif isinstance(event, ErrorRaised):
            self._add_message("system", f"Connection error: {event.error}. Please try again.")

    async def _speak_welcome(self) -> None:
        try:
            await self._coordinator.speak(self._welcome_message)
        except AvatarRelayError as exc:
            logger.error("Welcome message failed: %s", exc)

    async def connect(self) -> bool:
        ok = await self._coordinator.connect()
        if not ok:
            self._add_message("system", CONNECT_FAILED_MESSAGE)
        return ok

    async def send_message(self, text: str) -> Optional[str]:
        """Reply to a user message through the avatar.

        Returns the avatar's reply, or None when the message was ignored
        (blank, not connected, or another message still in flight).
        """

        text = (text or "").strip()
        if not text or not self._coordinator.is_connected() or self._processing:
            return None

        self._processing = True
        self._add_message("user", text)
        try:
            response = await self._responder(text)
            self._add_message("avatar", response)
            await self._coordinator.speak(response)
            return response
        except Exception:
            logger.exception("Send message error")
            self._add_message("system", SEND_FAILED_MESSAGE)
            return None
        finally:
            self._processing = False

    async def interrupt(self) -> None:
        await self._coordinator.interrupt()

    async def disconnect(self) -> None:
        await self._coordinator.disconnect()
        self._add_message("system", SESSION_ENDED_MESSAGE)

    async def shutdown(self) -> None:
        """Exit hook: end an active session and stop background work."""

        if self._coordinator.session_id is not None:
            logger.info("[Session %s] Tearing down on exit", self._coordinator.session_id)
            await self._coordinator.disconnect()
        if self._pump is not None:
            self._pump.cancel()
            self._pump = None
        for task in list(self._background):
            task.cancel()

    def _add_message(self, role: str, text: str) -> None:
        self.updates.put_nowait(TranscriptEntry(role=role, text=text))

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
