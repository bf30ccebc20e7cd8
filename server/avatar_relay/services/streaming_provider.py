"""Thin async wrapper around the HeyGen streaming avatar API."""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional, Union

import httpx

from ..config import ProviderConfig
from ..errors import ProviderError, ProviderUnreachable

logger = logging.getLogger(__name__)

ResponseBody = Union[str, dict[str, Any], list[Any], None]


def _string_body(status_code: int, body: ResponseBody) -> Optional[str]:
    if isinstance(body, str) and body:
        return body
    return None


def _message_field(status_code: int, body: ResponseBody) -> Optional[str]:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


def _error_field(status_code: int, body: ResponseBody) -> Optional[str]:
    if not isinstance(body, dict) or not body.get("error"):
        return None
    error = body["error"]
    return error if isinstance(error, str) else json.dumps(error)


def _detail_field(status_code: int, body: ResponseBody) -> Optional[str]:
    if isinstance(body, dict) and body.get("detail"):
        detail = body["detail"]
        return detail if isinstance(detail, str) else json.dumps(detail)
    return None


def _status_dump(status_code: int, body: ResponseBody) -> Optional[str]:
    return f"HeyGen API error ({status_code}): {json.dumps(body)}"


# Tried in order; the first rule returning a message wins.
ERROR_MESSAGE_RULES: tuple[Callable[[int, ResponseBody], Optional[str]], ...] = (
    _string_body,
    _message_field,
    _error_field,
    _detail_field,
    _status_dump,
)


def extract_error_message(status_code: int, body: ResponseBody) -> str:
    """Return a human-readable message for a failed provider response."""

    for rule in ERROR_MESSAGE_RULES:
        message = rule(status_code, body)
        if message:
            return message
    return f"HeyGen API error ({status_code})"


def _decode_body(response: httpx.Response) -> ResponseBody:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class StreamingProviderGateway:
    """One request per operation against the HeyGen streaming endpoints.

    Holds no session state; the only thing kept between calls is the pooled
    HTTP client.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config.validate()
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"x-api-key": config.api_key or "", "Content-Type": "application/json"},
            timeout=config.timeout,
            transport=transport,
        )
        logger.info("HeyGen gateway configured: %s", config.describe())

    @property
    def config(self) -> ProviderConfig:
        return self._config

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            logger.error("HeyGen %s timed out after %.1fs", path, self._config.timeout)
            raise ProviderUnreachable(
                f"No response from HeyGen API within {self._config.timeout:g}s."
            ) from exc
        except httpx.TransportError as exc:
            logger.error("HeyGen %s unreachable: %s", path, exc)
            raise ProviderUnreachable("No response from HeyGen API. Check your network connection.") from exc

        body = _decode_body(response)
        if response.is_success:
            return body

        message = extract_error_message(response.status_code, body)
        logger.error("HeyGen %s failed (%s): %s", path, response.status_code, message)
        raise ProviderError(message, status_code=response.status_code)

    async def create_session(self) -> Any:
        """Create a streaming session; the payload carries session_id and ICE servers."""

        logger.info("Creating streaming session for avatar %s", self._config.avatar_id)
        data = await self._post(
            "/v1/streaming.new",
            {
                "quality": self._config.quality,
                "avatar_name": self._config.avatar_id,
                "voice": {"voice_id": self._config.voice_id, "rate": self._config.voice_rate},
            },
        )
        payload = data.get("data") if isinstance(data, dict) else None
        if isinstance(payload, dict):
            logger.info("[Session %s] Created", payload.get("session_id"))
        return data

    async def start_session(self, session_id: str, sdp: Any) -> Any:
        logger.info("[Session %s] Starting with local SDP", session_id)
        return await self._post("/v1/streaming.start", {"session_id": session_id, "sdp": sdp})

    async def send_ice_candidate(self, session_id: str, candidate: Any) -> Any:
        return await self._post("/v1/streaming.ice", {"session_id": session_id, "candidate": candidate})

    async def send_text(self, session_id: str, text: str) -> Any:
        logger.info("[Session %s] Sending text to avatar: %s...", session_id, text[:50])
        return await self._post(
            "/v1/streaming.task",
            {"session_id": session_id, "text": text, "task_type": "talk"},
        )

    async def interrupt_session(self, session_id: str) -> Any:
        logger.info("[Session %s] Interrupting", session_id)
        return await self._post("/v1/streaming.interrupt", {"session_id": session_id})

    async def close_session(self, session_id: str) -> Any:
        logger.info("[Session %s] Closing", session_id)
        return await self._post("/v1/streaming.stop", {"session_id": session_id})
