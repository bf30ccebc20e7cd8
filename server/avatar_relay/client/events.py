"""Typed events published by the coordinator and the orchestrator."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ConnectionStatus(str, Enum):
    """Connection status as seen by the UI.

    disconnected -> connecting -> connected -> disconnected; there is no
    reconnecting state.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class StatusChanged:
    status: ConnectionStatus


@dataclass(frozen=True)
class SpeakingChanged:
    speaking: bool


@dataclass(frozen=True)
class ErrorRaised:
    error: Exception


@dataclass(frozen=True)
class TranscriptEntry:
    """A line of the chat transcript: role is user, avatar or system."""

    role: str
    text: str


CoordinatorEvent = Union[StatusChanged, SpeakingChanged, ErrorRaised]
SessionUpdate = Union[StatusChanged, SpeakingChanged, TranscriptEntry]
