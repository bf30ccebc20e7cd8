"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SessionRequest(BaseModel):
    """Body accepted by every session endpoint.

    Fields are optional here so the relay can answer missing ones with its own
    `{error, details}` shape instead of the framework's validation response.
    """

    model_config = ConfigDict(extra="allow")

    session_id: Optional[str] = Field(default=None, description="Provider-issued session identifier")
    sdp: Optional[Any] = Field(default=None, description="Local SDP offer as {type, sdp}")
    candidate: Optional[Any] = Field(default=None, description="Browser-style ICE candidate object")
    text: Optional[str] = Field(default=None, description="Text the avatar should speak")


class ErrorResponse(BaseModel):
    """Shape of every error returned by the relay."""

    error: str
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str


class IceServerDescriptor(BaseModel):
    """One ICE server entry from the provider's session payload."""

    model_config = ConfigDict(extra="ignore")

    urls: Union[str, List[str]]
    username: Optional[str] = None
    credential: Optional[str] = None


class SessionDescription(BaseModel):
    """SDP offer or answer as exchanged with the provider."""

    model_config = ConfigDict(extra="ignore")

    type: str
    sdp: str


class NewSessionData(BaseModel):
    """The `data` object of the provider's streaming.new response.

    The provider has been observed to send ICE servers under both
    `ice_servers2` and `ice_servers`; the first non-empty one wins.
    """

    model_config = ConfigDict(extra="allow")

    session_id: str = Field(min_length=1)
    ice_servers2: Optional[List[IceServerDescriptor]] = None
    ice_servers: Optional[List[IceServerDescriptor]] = None

    def resolved_ice_servers(self) -> List[IceServerDescriptor]:
        return list(self.ice_servers2 or self.ice_servers or [])


class StartSessionData(BaseModel):
    """The `data` object of the provider's streaming.start response."""

    model_config = ConfigDict(extra="allow")

    sdp: SessionDescription
