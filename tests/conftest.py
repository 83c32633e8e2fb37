from __future__ import annotations

import base64
import json

import pytest

from settings import GatewaySettings

NOW_S = 1_700_000_000
CLIENT_ID = "00000000-aaaa-bbbb-cccc-000000000001"
CLIENT_SECRET = "s3cr3t"
TENANT_ID = "11111111-2222-3333-4444-555555555555"
SERVICE_URL = "https://smba.trafficmanager.net/amer/"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def build_jwt(claims: dict) -> str:
    header = _b64url(json.dumps({"alg": "RS256", "typ": "JWT"}).encode())
    payload = _b64url(json.dumps(claims, separators=(",", ":")).encode())
    return f"{header}.{payload}.c2lnbmF0dXJl"


class FakeClock:
    def __init__(self, now_ms: float = NOW_S * 1000):
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += seconds * 1000


@pytest.fixture
def make_jwt():
    return build_jwt


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def good_token():
    return build_jwt({
        "aud": "https://api.botframework.com",
        "iss": f"https://sts.windows.net/{TENANT_ID}/",
        "tid": TENANT_ID,
        "appid": CLIENT_ID,
        "exp": NOW_S + 3600,
    })


@pytest.fixture
def settings():
    return GatewaySettings(client_id=CLIENT_ID, client_secret=CLIENT_SECRET)


@pytest.fixture
def inbound_body():
    return {
        "type": "message",
        "id": "1700000000000",
        "text": "hi",
        "channelId": "msteams",
        "serviceUrl": SERVICE_URL,
        "from": {"id": "29:user-1", "name": "Ana"},
        "recipient": {"id": "28:bot-1", "name": "Hoogah"},
        "conversation": {"id": "a:1Xyz/conv#1", "conversationType": "personal", "tenantId": TENANT_ID},
        "channelData": {"tenant": {"id": TENANT_ID}},
    }
