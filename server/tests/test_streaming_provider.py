from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from avatar_relay.config import ProviderConfig
from avatar_relay.errors import MissingConfiguration, ProviderError, ProviderUnreachable
from avatar_relay.services.streaming_provider import StreamingProviderGateway, extract_error_message


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def _gateway(config, handler):  # noqa: ANN001
    return StreamingProviderGateway(config, transport=httpx.MockTransport(handler))


def test_extract_error_message_prefers_string_body():
    assert extract_error_message(400, "plain failure") == "plain failure"


def test_extract_error_message_checks_fields_in_order():
    assert extract_error_message(400, {"message": "m", "error": "e", "detail": "d"}) == "m"
    assert extract_error_message(400, {"error": "e", "detail": "d"}) == "e"
    assert extract_error_message(400, {"detail": "d"}) == "d"


def test_extract_error_message_encodes_structured_error():
    message = extract_error_message(400, {"error": {"code": 10001, "reason": "bad avatar"}})

    assert json.loads(message) == {"code": 10001, "reason": "bad avatar"}


def test_extract_error_message_falls_back_to_status_dump():
    assert extract_error_message(503, {"code": 1}) == 'HeyGen API error (503): {"code": 1}'
    assert extract_error_message(500, None) == "HeyGen API error (500): null"


def test_create_session_posts_avatar_and_voice(provider_config):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"session_id": "s1", "ice_servers2": []}})

    async def scenario():
        gateway = _gateway(provider_config, handler)
        try:
            return await gateway.create_session()
        finally:
            await gateway.aclose()

    payload = _run(scenario())

    assert payload["data"]["session_id"] == "s1"
    request = seen[0]
    assert request.url == "https://heygen.test/v1/streaming.new"
    assert request.headers["x-api-key"] == "test-key-123456789"
    assert json.loads(request.content) == {
        "quality": "high",
        "avatar_name": "avatar-1",
        "voice": {"voice_id": "voice-1", "rate": 1.0},
    }


@pytest.mark.parametrize(
    "method, args, path, body",
    [
        ("start_session", ("s1", {"type": "offer", "sdp": "v=0"}), "/v1/streaming.start",
         {"session_id": "s1", "sdp": {"type": "offer", "sdp": "v=0"}}),
        ("send_ice_candidate", ("s1", {"candidate": "candidate:1"}), "/v1/streaming.ice",
         {"session_id": "s1", "candidate": {"candidate": "candidate:1"}}),
        ("send_text", ("s1", "Hello"), "/v1/streaming.task",
         {"session_id": "s1", "text": "Hello", "task_type": "talk"}),
        ("interrupt_session", ("s1",), "/v1/streaming.interrupt", {"session_id": "s1"}),
        ("close_session", ("s1",), "/v1/streaming.stop", {"session_id": "s1"}),
    ],
)
def test_session_operations_hit_provider_paths(provider_config, method, args, path, body):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"code": 100, "message": "success"})

    async def scenario():
        gateway = _gateway(provider_config, handler)
        try:
            return await getattr(gateway, method)(*args)
        finally:
            await gateway.aclose()

    assert _run(scenario()) == {"code": 100, "message": "success"}
    assert seen == [(path, body)]


def test_non_success_raises_provider_error_with_extracted_message(provider_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": 10005, "message": "Session not found"})

    async def scenario():
        gateway = _gateway(provider_config, handler)
        try:
            await gateway.send_text("gone", "Hello")
        finally:
            await gateway.aclose()

    with pytest.raises(ProviderError) as excinfo:
        _run(scenario())

    assert excinfo.value.message == "Session not found"
    assert excinfo.value.status_code == 400


def test_plain_text_error_body_is_used_verbatim(provider_config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="Unauthorized")

    async def scenario():
        gateway = _gateway(provider_config, handler)
        try:
            await gateway.create_session()
        finally:
            await gateway.aclose()

    with pytest.raises(ProviderError, match="^Unauthorized$"):
        _run(scenario())


@pytest.mark.parametrize("exc", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")])
def test_network_failure_raises_provider_unreachable(provider_config, exc):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    async def scenario():
        gateway = _gateway(provider_config, handler)
        try:
            await gateway.interrupt_session("s1")
        finally:
            await gateway.aclose()

    with pytest.raises(ProviderUnreachable):
        _run(scenario())


def test_missing_configuration_fails_before_any_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    config = ProviderConfig(api_key=None, avatar_id="avatar-1", voice_id=None)

    with pytest.raises(MissingConfiguration) as excinfo:
        StreamingProviderGateway(config, transport=httpx.MockTransport(handler))

    assert excinfo.value.missing == ["HEYGEN_API_KEY", "HEYGEN_VOICE_ID"]
    assert calls == []
