"""Session relay endpoints consumed by the avatar client."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..errors import ProviderError, ProviderUnreachable, ValidationError
from ..models import schemas
from ..services.session_relay import SessionRelayService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


def get_relay(request: Request) -> SessionRelayService:
    return request.app.state.relay


def _error(status_code: int, error: str, details: Any = None) -> JSONResponse:
    body = schemas.ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _forward(summary: str, call: Callable[[], Awaitable[Any]]) -> Any:
    """Run a relay call and map failures onto the `{error, details}` shape."""

    try:
        return await call()
    except ValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except ProviderError as exc:
        logger.warning("%s: %s", summary, exc.message)
        return _error(status.HTTP_502_BAD_GATEWAY, summary, exc.message)
    except ProviderUnreachable as exc:
        logger.warning("%s: %s", summary, exc)
        return _error(status.HTTP_504_GATEWAY_TIMEOUT, summary, str(exc))


@router.post("/new")
async def create_session(relay: SessionRelayService = Depends(get_relay)) -> Any:
    """Create a provider session; the payload includes session_id and ICE servers."""

    return await _forward("Failed to create session", relay.create_session)


@router.post("/start")
async def start_session(
    payload: schemas.SessionRequest, relay: SessionRelayService = Depends(get_relay)
) -> Any:
    """Forward the local SDP offer and return the provider's answer."""

    return await _forward(
        "Failed to start session", lambda: relay.start_session(payload.session_id, payload.sdp)
    )


@router.post("/speak")
async def speak(payload: schemas.SessionRequest, relay: SessionRelayService = Depends(get_relay)) -> Any:
    return await _forward("Failed to send text", lambda: relay.speak(payload.session_id, payload.text))


@router.post("/ice")
async def send_ice_candidate(
    payload: schemas.SessionRequest, relay: SessionRelayService = Depends(get_relay)
) -> Any:
    return await _forward(
        "Failed to send ICE candidate",
        lambda: relay.send_ice_candidate(payload.session_id, payload.candidate),
    )


@router.post("/close")
async def close_session(
    payload: schemas.SessionRequest, relay: SessionRelayService = Depends(get_relay)
) -> Any:
    return await _forward("Failed to close session", lambda: relay.close(payload.session_id))


@router.post("/interrupt")
async def interrupt_session(
    payload: schemas.SessionRequest, relay: SessionRelayService = Depends(get_relay)
) -> Any:
    """Stop the avatar's current speech."""

    return await _forward("Failed to interrupt session", lambda: relay.interrupt(payload.session_id))
