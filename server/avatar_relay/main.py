"""FastAPI application entrypoint for the avatar session relay."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ProviderConfig, settings
from .models import schemas
from .routers import sessions
from .services.session_relay import SessionRelayService
from .services.streaming_provider import StreamingProviderGateway

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
    )


def create_app(
    provider_config: Optional[ProviderConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Instantiate the relay application.

    The gateway is built in the lifespan hook, so missing HeyGen credentials
    stop the server at startup rather than on the first request.
    """

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        config = provider_config or ProviderConfig.from_env()
        gateway = StreamingProviderGateway(config, transport=transport)
        application.state.relay = SessionRelayService(gateway)
        logger.info("%s relay ready on prefix %s", settings.service_name, settings.api_prefix)
        try:
            yield
        finally:
            await gateway.aclose()

    application = FastAPI(
        title=settings.service_name,
        description="Relays session, SDP, ICE and speech requests to the HeyGen streaming API.",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(sessions.router, prefix=settings.api_prefix)

    @application.get("/health", response_model=schemas.HealthResponse)
    @application.get("/api/health", response_model=schemas.HealthResponse)
    async def health() -> schemas.HealthResponse:
        return schemas.HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            service=settings.service_name,
        )

    @application.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Missing or unparsable bodies keep the relay's {error, details} shape
        logger.warning("Rejected body on %s: %s", request.url.path, exc.errors())
        body = schemas.ErrorResponse(error="Invalid request body", details=jsonable_encoder(exc.errors()))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())

    @application.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Server error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return application


app = create_app()


def main() -> None:  # pragma: no cover - manual entrypoint
    configure_logging()
    uvicorn.run("avatar_relay.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":  # pragma: no cover - manual entrypoint
    main()
