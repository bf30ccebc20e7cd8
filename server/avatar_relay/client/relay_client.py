"""HTTP client for the session relay endpoints."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..config import settings
from ..errors import ProviderError, ProviderUnreachable, ValidationError

logger = logging.getLogger(__name__)


class RelayClient:
    """Calls the relay the way the browser client does, one POST per operation.

    4xx answers become ValidationError, 5xx answers ProviderError carrying the
    relay's `details`, and transport failures ProviderUnreachable.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        prefix = settings.api_prefix if api_prefix is None else api_prefix
        self._timeout = timeout or settings.relay_timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + prefix.rstrip("/"),
            timeout=self._timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _post(self, path: str, payload: Optional[dict[str, Any]], fallback: str) -> Any:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderUnreachable(f"Relay did not answer {path} within {self._timeout:g}s") from exc
        except httpx.TransportError as exc:
            raise ProviderUnreachable(f"Relay unreachable: {exc}") from exc

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text
        if response.is_success:
            return body

        if not isinstance(body, dict):
            body = {}
        if 400 <= response.status_code < 500:
            raise ValidationError(str(body.get("error") or fallback))
        raise ProviderError(str(body.get("details") or body.get("error") or fallback), status_code=response.status_code)

    async def create_session(self) -> Any:
        return await self._post("/session/new", None, "Failed to create session")

    async def start_session(self, session_id: str, sdp: dict[str, str]) -> Any:
        return await self._post("/session/start", {"session_id": session_id, "sdp": sdp}, "Failed to start session")

    async def send_ice_candidate(self, session_id: str, candidate: dict[str, Any]) -> Any:
        return await self._post(
            "/session/ice", {"session_id": session_id, "candidate": candidate}, "Failed to send ICE candidate"
        )

    async def speak(self, session_id: str, text: str) -> Any:
        return await self._post("/session/speak", {"session_id": session_id, "text": text}, "Failed to send text")

    async def interrupt(self, session_id: str) -> Any:
        return await self._post("/session/interrupt", {"session_id": session_id}, "Failed to interrupt session")

    async def close(self, session_id: str) -> Any:
        return await self._post("/session/close", {"session_id": session_id}, "Failed to close session")
