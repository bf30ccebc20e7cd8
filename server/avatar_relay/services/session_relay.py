"""Session-scoped operations exposed to clients, forwarded to the provider."""
from __future__ import annotations

from typing import Any, Optional

from ..errors import ValidationError
from .streaming_provider import StreamingProviderGateway


def _require(**fields: Any) -> None:
    """Raise a ValidationError naming every required field when any is empty."""

    if all(value not in (None, "", {}, []) for value in fields.values()):
        return
    names = list(fields)
    label = names[0] if len(names) == 1 else f"{', '.join(names[:-1])} and {names[-1]}"
    raise ValidationError(f"{label} required")


class SessionRelayService:
    """Validates client payloads and forwards them to the gateway verbatim.

    No state is kept between calls, so requests for different sessions never
    wait on each other.
    """

    def __init__(self, gateway: StreamingProviderGateway):
        self._gateway = gateway

    async def create_session(self) -> Any:
        return await self._gateway.create_session()

    async def start_session(self, session_id: Optional[str], sdp: Any) -> Any:
        _require(session_id=session_id, sdp=sdp)
        return await self._gateway.start_session(session_id, sdp)

    async def send_ice_candidate(self, session_id: Optional[str], candidate: Any) -> Any:
        _require(session_id=session_id, candidate=candidate)
        return await self._gateway.send_ice_candidate(session_id, candidate)

    async def speak(self, session_id: Optional[str], text: Optional[str]) -> Any:
        _require(session_id=session_id, text=text)
        return await self._gateway.send_text(session_id, text)

    async def interrupt(self, session_id: Optional[str]) -> Any:
        _require(session_id=session_id)
        return await self._gateway.interrupt_session(session_id)

    async def close(self, session_id: Optional[str]) -> Any:
        _require(session_id=session_id)
        return await self._gateway.close_session(session_id)
