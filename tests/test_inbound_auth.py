from __future__ import annotations

import pytest
from botframework.connector.auth import ClaimsIdentity, JwtTokenValidation

from conftest import SERVICE_URL
from connectors import InboundAuthenticator, InboundAuthError
from settings import GatewaySettings


@pytest.mark.asyncio
async def test_missing_header_is_rejected(settings, inbound_body):
    with pytest.raises(InboundAuthError):
        await InboundAuthenticator(settings).authenticate(inbound_body, "")


@pytest.mark.asyncio
async def test_garbage_bearer_is_rejected(settings, inbound_body):
    with pytest.raises(InboundAuthError):
        await InboundAuthenticator(settings).authenticate(inbound_body, "Bearer not-a-jwt")


@pytest.mark.asyncio
async def test_no_app_id_allows_anonymous(inbound_body):
    identity = await InboundAuthenticator(GatewaySettings()).authenticate(inbound_body, "")
    assert identity.is_authenticated


@pytest.mark.asyncio
async def test_validated_identity_is_returned(monkeypatch, settings, inbound_body):
    seen = {}

    async def fake_authenticate(activity, auth_header, credentials, *args, **kwargs):
        seen["service_url"] = activity.service_url
        seen["header"] = auth_header
        seen["app_id"] = credentials.app_id
        return ClaimsIdentity({"serviceurl": activity.service_url}, True)

    monkeypatch.setattr(JwtTokenValidation, "authenticate_request", staticmethod(fake_authenticate))
    identity = await InboundAuthenticator(settings).authenticate(inbound_body, "Bearer x.y.z")

    assert identity.claims["serviceurl"] == SERVICE_URL
    assert seen == {"service_url": SERVICE_URL, "header": "Bearer x.y.z", "app_id": settings.client_id}


@pytest.mark.asyncio
async def test_unauthenticated_identity_is_rejected(monkeypatch, settings, inbound_body):
    async def fake_authenticate(activity, auth_header, credentials, *args, **kwargs):
        return ClaimsIdentity({}, False)

    monkeypatch.setattr(JwtTokenValidation, "authenticate_request", staticmethod(fake_authenticate))
    with pytest.raises(InboundAuthError):
        await InboundAuthenticator(settings).authenticate(inbound_body, "Bearer x.y.z")
