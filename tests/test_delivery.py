from __future__ import annotations

import json
from urllib.parse import unquote

import httpx
import pytest

from conftest import SERVICE_URL
from connectors.delivery import (
    BODY_SNIPPET_LIMIT,
    DeliveryClient,
    DeliveryFailureKind,
    DeliveryRequest,
    build_activities_url,
)
from connectors.errors import DeliveryError


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_trailing_slash_is_normalized():
    with_slash = build_activities_url("https://smba.trafficmanager.net/emea/", "c1")
    without = build_activities_url("https://smba.trafficmanager.net/emea", "c1")
    assert with_slash == without == "https://smba.trafficmanager.net/emea/v3/conversations/c1/activities"


def test_regional_service_url_is_kept():
    url = build_activities_url("https://smba.trafficmanager.net/amer/", "c1")
    assert url.startswith("https://smba.trafficmanager.net/amer/v3/")


def test_conversation_id_is_escaped_and_round_trips():
    conv_id = "a:1Xyz/conv#1;messageid=12 3"
    url = build_activities_url(SERVICE_URL, conv_id)
    segment = url[len("https://smba.trafficmanager.net/amer/v3/conversations/"):-len("/activities")]

    assert "/" not in segment and "#" not in segment and " " not in segment
    assert unquote(segment) == conv_id


@pytest.mark.parametrize("base, conv", [("", "c1"), (SERVICE_URL, "")])
def test_requires_destination(base, conv):
    with pytest.raises(ValueError):
        build_activities_url(base, conv)


@pytest.mark.asyncio
async def test_successful_delivery():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"id": "reply-1"})

    payload = {"type": "message", "text": "hola", "attachments": [{"contentType": "x", "content": {"a": 1}}]}
    async with _client(handler) as http:
        result = await DeliveryClient(http).deliver(DeliveryRequest(SERVICE_URL, "c1", payload), "tok")

    assert result.success
    assert result.http_status == 201
    req = seen[0]
    assert str(req.url) == "https://smba.trafficmanager.net/amer/v3/conversations/c1/activities"
    assert req.headers["authorization"] == "Bearer tok"
    assert req.headers["content-type"] == "application/json"
    assert json.loads(req.content) == payload


@pytest.mark.asyncio
async def test_auth_challenge_is_captured_verbatim():
    challenge = 'Bearer error="invalid_token"'

    def handler(request):
        return httpx.Response(401, headers={"WWW-Authenticate": challenge}, text='{"message":"Authorization has been denied"}')

    async with _client(handler) as http:
        result = await DeliveryClient(http).deliver(DeliveryRequest(SERVICE_URL, "c1", {}), "tok")

    assert not result.success
    assert result.kind is DeliveryFailureKind.HTTP_STATUS
    assert result.http_status == 401
    assert result.auth_challenge == challenge
    assert "Authorization has been denied" in result.body_snippet
    with pytest.raises(DeliveryError) as ei:
        result.raise_for_failure()
    assert ei.value.result is result


@pytest.mark.asyncio
async def test_failure_without_challenge_header():
    async with _client(lambda r: httpx.Response(503, text="x" * (BODY_SNIPPET_LIMIT + 50))) as http:
        result = await DeliveryClient(http).deliver(DeliveryRequest(SERVICE_URL, "c1", {}), "tok")

    assert result.http_status == 503
    assert result.auth_challenge is None
    assert len(result.body_snippet) == BODY_SNIPPET_LIMIT


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [httpx.ConnectError, httpx.ReadTimeout])
async def test_no_response_is_its_own_failure_kind(exc):
    def handler(request):
        raise exc("gone", request=request)

    async with _client(handler) as http:
        result = await DeliveryClient(http, timeout=0.5).deliver(DeliveryRequest(SERVICE_URL, "c1", {}), "tok")

    assert not result.success
    assert result.kind is DeliveryFailureKind.NO_RESPONSE
    assert result.http_status is None
    assert "gone" in result.detail


@pytest.mark.asyncio
async def test_does_not_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    async with _client(handler) as http:
        await DeliveryClient(http).deliver(DeliveryRequest(SERVICE_URL, "c1", {}), "tok")
    assert len(calls) == 1
