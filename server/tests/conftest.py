from __future__ import annotations

import json
from typing import Any, Callable, Optional

import httpx
import pytest
from aiortc import RTCSessionDescription
from pyee.asyncio import AsyncIOEventEmitter

from avatar_relay.client.relay_client import RelayClient
from avatar_relay.config import ProviderConfig

OFFER_SDP = (
    "v=0\r\n"
    "o=- 1 1 IN IP4 0.0.0.0\r\n"
    "s=-\r\n"
    "t=0 0\r\n"
    "m=video 9 UDP/TLS/RTP/SAVPF 96\r\n"
    "a=recvonly\r\n"
    "a=mid:0\r\n"
    "a=candidate:1 1 udp 2130706431 192.168.1.5 50000 typ host\r\n"
    "a=candidate:2 1 udp 1694498815 203.0.113.7 50000 typ srflx raddr 192.168.1.5 rport 50000\r\n"
    "m=audio 9 UDP/TLS/RTP/SAVPF 111\r\n"
    "a=recvonly\r\n"
    "a=mid:1\r\n"
    "a=candidate:1 1 udp 2130706431 192.168.1.5 50000 typ host\r\n"
)
ANSWER_SDP = "v=0\r\no=- 2 2 IN IP4 0.0.0.0\r\ns=-\r\nt=0 0\r\n"


class FakePeerConnection(AsyncIOEventEmitter):
    """Stands in for aiortc's RTCPeerConnection: same events, no network."""

    def __init__(self, configuration: Any = None) -> None:
        super().__init__()
        self.configuration = configuration
        self.connectionState = "new"
        self.transceivers: list[tuple[str, str]] = []
        self.localDescription: Optional[RTCSessionDescription] = None
        self.remoteDescription: Optional[RTCSessionDescription] = None
        self.closed = False

    def addTransceiver(self, kind: str, direction: str = "sendrecv") -> None:
        self.transceivers.append((kind, direction))

    async def createOffer(self) -> RTCSessionDescription:
        return RTCSessionDescription(sdp=OFFER_SDP, type="offer")

    async def setLocalDescription(self, description: RTCSessionDescription) -> None:
        self.localDescription = description

    async def setRemoteDescription(self, description: RTCSessionDescription) -> None:
        if not description.sdp.startswith("v=0"):
            raise ValueError("SDP does not start with v=0")
        self.remoteDescription = description

    def set_state(self, state: str) -> None:
        self.connectionState = state
        self.emit("connectionstatechange")

    async def close(self) -> None:
        self.closed = True
        self.set_state("closed")


class FakeRelayBackend:
    """httpx handler answering relay routes with canned payloads and recording calls."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, Any]] = []
        self.responses: dict[str, Callable[[Any], httpx.Response]] = {
            "/session/new": lambda body: httpx.Response(
                200, json={"code": 100, "data": {"session_id": "s1", "ice_servers": []}}
            ),
            "/session/start": lambda body: httpx.Response(
                200, json={"code": 100, "data": {"sdp": {"type": "answer", "sdp": ANSWER_SDP}}}
            ),
            "/session/ice": lambda body: httpx.Response(200, json={"code": 100}),
            "/session/speak": lambda body: httpx.Response(200, json={"code": 100, "data": {"task_id": "t1"}}),
            "/session/interrupt": lambda body: httpx.Response(200, json={"code": 100}),
            "/session/close": lambda body: httpx.Response(200, json={"code": 100}),
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/heygen")
        body = json.loads(request.content) if request.content else None
        self.requests.append((path, body))
        return self.responses[path](body)

    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]

    def fail(self, path: str, status_code: int = 502, details: str = "boom") -> None:
        self.responses[path] = lambda body: httpx.Response(
            status_code, json={"error": "Request failed", "details": details}
        )


@pytest.fixture
def backend() -> FakeRelayBackend:
    return FakeRelayBackend()


@pytest.fixture
def relay_factory(backend: FakeRelayBackend) -> Callable[[], RelayClient]:
    def _make() -> RelayClient:
        return RelayClient("http://relay.test", api_prefix="/api/heygen", transport=httpx.MockTransport(backend))

    return _make


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        api_key="test-key-123456789",
        avatar_id="avatar-1",
        voice_id="voice-1",
        base_url="https://heygen.test",
        timeout=5.0,
    )


def drain(queue: Any) -> list[Any]:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items
