"""Client-side WebRTC negotiation and speech coordination for one avatar session."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from aiortc import RTCPeerConnection, RTCSessionDescription
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from ..config import settings
from ..errors import AvatarRelayError, NegotiationFailure, NoActiveSession, ValidationError
from ..models.schemas import NewSessionData, StartSessionData
from .events import ConnectionStatus, ErrorRaised, SpeakingChanged, StatusChanged
from .media import VideoSurface
from .peer import PeerFactory, build_rtc_configuration, candidate_to_json, candidates_from_sdp, create_peer_connection
from .relay_client import RelayClient

logger = logging.getLogger(__name__)

_DROPPED_STATES = {"disconnected", "failed", "closed"}


def estimate_speech_duration_ms(text: str, min_ms: float = 2000.0, ms_per_char: float = 80.0) -> float:
    """Heuristic speaking time; the provider does not report task completion."""

    return max(min_ms, len(text) * ms_per_char)


@dataclass
class ActiveSession:
    """A provider session and the one peer connection bound to it."""

    session_id: str
    peer: Optional[RTCPeerConnection] = None
    sent_candidates: set[tuple[Optional[str], str]] = field(default_factory=set)
    ice_tasks: set[asyncio.Task] = field(default_factory=set)
    # Transport dropped; the session can only be closed now
    dropped: bool = False


def _parse_data(model: type[BaseModel], payload: Any, message: str) -> Any:
    data = payload.get("data") if isinstance(payload, dict) else None
    try:
        return model.model_validate(data)
    except SchemaError as exc:
        raise NegotiationFailure(message) from exc


class PeerConnectionCoordinator:
    """Drives offer/answer/ICE exchange through the relay and tracks speaking state.

    Status, speaking and error changes are published as typed events on
    `self.events`; callers consume the queue instead of registering callbacks.
    """

    def __init__(
        self,
        relay: RelayClient,
        *,
        surface: Optional[VideoSurface] = None,
        peer_factory: PeerFactory = create_peer_connection,
        events: Optional[asyncio.Queue] = None,
        min_speech_ms: Optional[float] = None,
        ms_per_char: Optional[float] = None,
    ):
        self._relay = relay
        self._surface = surface
        self._peer_factory = peer_factory
        self.events: asyncio.Queue = events if events is not None else asyncio.Queue()
        self._min_speech_ms = settings.speaking_min_ms if min_speech_ms is None else min_speech_ms
        self._ms_per_char = settings.speaking_ms_per_char if ms_per_char is None else ms_per_char

        self._session: Optional[ActiveSession] = None
        self._status = ConnectionStatus.DISCONNECTED
        self._speaking = False
        self._speech_generation = 0
        self._speech_timer: Optional[asyncio.TimerHandle] = None
        self.last_error: Optional[AvatarRelayError] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id if self._session else None

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def speaking(self) -> bool:
        return self._speaking

    def is_connected(self) -> bool:
        session = self._session
        return session is not None and session.peer is not None and session.peer.connectionState == "connected"

    async def connect(self) -> bool:
        """Create a session and negotiate the peer connection.

        Returns True once the remote answer is committed. On failure every
        partial resource is released, an ErrorRaised event is published and
        the status falls back to disconnected.
        """

        if self._session is not None:
            logger.info("[Session %s] Replacing live session before reconnecting", self._session.session_id)
            await self.disconnect()

        self.last_error = None
        self._set_status(ConnectionStatus.CONNECTING)
        session: Optional[ActiveSession] = None
        try:
            session, data = await self._open_session()
            await self._negotiate(session, data)
        except Exception as exc:
            error = exc if isinstance(exc, AvatarRelayError) else NegotiationFailure(str(exc))
            logger.error("Connection error: %s", error)
            await self._abandon(session)
            self.last_error = error
            self._publish(ErrorRaised(error))
            # A newer connect() may own the coordinator by now
            if self._session is None:
                self._set_status(ConnectionStatus.DISCONNECTED)
            return False

        logger.info("[Session %s] Remote description committed", session.session_id)
        return True

    async def _open_session(self) -> tuple[ActiveSession, NewSessionData]:
        payload = await self._relay.create_session()
        data = _parse_data(NewSessionData, payload, "Invalid session response from HeyGen")
        session = ActiveSession(session_id=data.session_id)
        self._session = session
        logger.info("[Session %s] Created", session.session_id)
        return session, data

    async def _negotiate(self, session: ActiveSession, data: NewSessionData) -> None:
        peer = self._peer_factory(build_rtc_configuration(data.resolved_ice_servers()))
        session.peer = peer
        self._register_handlers(session, peer)

        try:
            peer.addTransceiver("video", direction="recvonly")
            peer.addTransceiver("audio", direction="recvonly")
            offer = await peer.createOffer()
            await peer.setLocalDescription(offer)
        except Exception as exc:
            raise NegotiationFailure(f"Could not create local offer: {exc}") from exc

        local = peer.localDescription
        for candidate in candidates_from_sdp(local.sdp):
            self._relay_candidate(session, candidate)

        logger.info("[Session %s] Local description set, sending offer", session.session_id)
        answer_payload = await self._relay.start_session(session.session_id, {"type": local.type, "sdp": local.sdp})
        answer = _parse_data(StartSessionData, answer_payload, "Invalid start response from HeyGen").sdp

        try:
            await peer.setRemoteDescription(RTCSessionDescription(sdp=answer.sdp, type=answer.type))
        except Exception as exc:
            raise NegotiationFailure(f"Could not apply remote answer: {exc}") from exc

    def _register_handlers(self, session: ActiveSession, peer: RTCPeerConnection) -> None:
        @peer.on("track")
        async def on_track(track) -> None:
            logger.info("[Session %s] Received track: %s", session.session_id, track.kind)
            if track.kind != "video" or self._surface is None or session is not self._session:
                return
            try:
                await self._surface.attach(track)
            except Exception:
                logger.exception("[Session %s] Could not attach video track", session.session_id)

        @peer.on("icecandidate")
        def on_icecandidate(candidate) -> None:
            if candidate is not None and session is self._session:
                self._relay_candidate(session, candidate_to_json(candidate))

        @peer.on("connectionstatechange")
        def on_connectionstatechange() -> None:
            self._on_connection_state(session, peer.connectionState)

    def _on_connection_state(self, session: ActiveSession, state: str) -> None:
        if session is not self._session:
            return
        logger.info("[Session %s] Connection state: %s", session.session_id, state)
        if state == "connected":
            self._set_status(ConnectionStatus.CONNECTED)
        elif state in _DROPPED_STATES:
            session.dropped = True
            self._end_speech()
            self._set_status(ConnectionStatus.DISCONNECTED)

    def _relay_candidate(self, session: ActiveSession, candidate: dict[str, Any]) -> None:
        line = candidate.get("candidate")
        key = (candidate.get("sdpMid"), line)
        if not line or key in session.sent_candidates:
            return
        session.sent_candidates.add(key)
        task = asyncio.ensure_future(self._send_candidate(session.session_id, candidate))
        session.ice_tasks.add(task)
        task.add_done_callback(session.ice_tasks.discard)

    async def _send_candidate(self, session_id: str, candidate: dict[str, Any]) -> None:
        try:
            await self._relay.send_ice_candidate(session_id, candidate)
        except AvatarRelayError as exc:
            logger.warning("[Session %s] Error sending ICE candidate: %s", session_id, exc)

    async def speak(self, text: str) -> Any:
        """Ask the avatar to speak `text` and return the provider's task ack."""

        session = self._session
        if session is None or session.dropped:
            raise NoActiveSession()
        if not text or not text.strip():
            raise ValidationError("text required")

        generation = self._begin_speech()
        try:
            ack = await self._relay.speak(session.session_id, text)
        except AvatarRelayError as exc:
            logger.error("[Session %s] Speak error: %s", session.session_id, exc)
            if generation == self._speech_generation:
                self._end_speech()
            self._publish(ErrorRaised(exc))
            raise

        if generation == self._speech_generation:
            delay_ms = estimate_speech_duration_ms(text, self._min_speech_ms, self._ms_per_char)
            loop = asyncio.get_running_loop()
            self._speech_timer = loop.call_later(delay_ms / 1000.0, self._finish_speech, generation)
        return ack

    async def interrupt(self) -> None:
        """Stop speech locally at once; the provider is told best-effort."""

        session = self._session
        if session is None:
            return
        self._end_speech()
        try:
            await self._relay.interrupt(session.session_id)
        except AvatarRelayError as exc:
            logger.warning("[Session %s] Interrupt error: %s", session.session_id, exc)

    async def disconnect(self) -> None:
        """Close the provider session and release local resources; no-op when idle."""

        session = self._session
        if session is None:
            return
        self._session = None
        try:
            await self._relay.close(session.session_id)
        except AvatarRelayError as exc:
            logger.warning("[Session %s] Error closing session: %s", session.session_id, exc)
        await self._release(session)
        self._set_status(ConnectionStatus.DISCONNECTED)
        self._end_speech()

    async def _abandon(self, session: Optional[ActiveSession]) -> None:
        """Tear down the half-negotiated `session` of a failed connect().

        The coordinator's current session is only cleared when it is still
        this one.
        """

        if session is None:
            return
        if session is self._session:
            self._session = None
            self._end_speech()
        await self._release(session)
        try:
            await self._relay.close(session.session_id)
        except AvatarRelayError as exc:
            logger.debug("[Session %s] Close after failed connect: %s", session.session_id, exc)

    async def _release(self, session: ActiveSession) -> None:
        for task in list(session.ice_tasks):
            task.cancel()
        peer, session.peer = session.peer, None
        if peer is not None:
            try:
                await peer.close()
            except Exception:
                logger.exception("[Session %s] Error closing peer connection", session.session_id)
        if self._surface is not None and self._session is None:
            try:
                await self._surface.detach()
            except Exception:
                logger.exception("[Session %s] Error detaching video surface", session.session_id)

    def _begin_speech(self) -> int:
        self._cancel_speech_timer()
        self._speech_generation += 1
        self._set_speaking(True)
        return self._speech_generation

    def _finish_speech(self, generation: int) -> None:
        if generation != self._speech_generation:
            return
        self._speech_timer = None
        self._set_speaking(False)

    def _end_speech(self) -> None:
        self._cancel_speech_timer()
        self._speech_generation += 1
        self._set_speaking(False)

    def _cancel_speech_timer(self) -> None:
        if self._speech_timer is not None:
            self._speech_timer.cancel()
            self._speech_timer = None

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        self._status = status
        self._publish(StatusChanged(status))

    def _set_speaking(self, speaking: bool) -> None:
        if speaking == self._speaking:
            return
        self._speaking = speaking
        self._publish(SpeakingChanged(speaking))

    def _publish(self, event: Any) -> None:
        self.events.put_nowait(event)
