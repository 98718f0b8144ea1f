"""Tests for the registry service client."""

import json

import httpx
import pytest

from meetapp_api.errors import RegistryRequestError
from meetapp_api.registry.client import RegistryClient

MESSAGES = [{"message_id": 1, "message_uuid": "uuid-1"}]


def _client(handler, api_key="registry-key"):
    return RegistryClient(
        base_url="https://registry.example/",
        api_key=api_key,
        app_url="https://app.example",
        transport=httpx.MockTransport(handler),
    )


def test_posts_batch_with_callback_url():
    captured = {}

    def handler(request: httpx.Request):
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "queued": 1})

    result = _client(handler).request_bodies(MESSAGES, application_id=42)

    assert result == {"success": True, "queued": 1}
    assert captured["url"] == "https://registry.example/api/fedresurs/enqueue/message-tables"
    assert captured["auth"] == "Bearer registry-key"
    assert captured["body"] == {
        "messages": MESSAGES,
        "meeting_application_id": 42,
        "callback_url": "https://app.example/api/registry-message/callback",
    }


def test_missing_api_key_raises():
    client = _client(lambda request: httpx.Response(200, json={"success": True}), api_key=None)
    with pytest.raises(RegistryRequestError):
        client.request_bodies(MESSAGES)


def test_http_error_status_raises():
    client = _client(lambda request: httpx.Response(503, text="down"))
    with pytest.raises(RegistryRequestError, match="503"):
        client.request_bodies(MESSAGES)


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RegistryRequestError):
        _client(handler).request_bodies(MESSAGES)


def test_empty_batch_raises():
    with pytest.raises(RegistryRequestError):
        _client(lambda request: httpx.Response(200)).request_bodies([])
