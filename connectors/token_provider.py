# connectors/token_provider.py: client-credentials tokens for the Bot Connector, per tenant
import asyncio
import logging
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from settings import DEFAULT_AUTHORITY_HOST, DEFAULT_BOT_AUDIENCE

from .errors import (
    ConfigurationError,
    IssuerRejectedError,
    IssuerUnreachableError,
    MissingAccessTokenError,
)
from .jwt_claims import MalformedTokenError, TokenClaims, decode_jwt_claims
from .token_cache import TokenCache

log = logging.getLogger("teams-gateway.token")


def _bare_host(url: str) -> str:
    return url.split("://", 1)[-1].rstrip("/")


def check_claims(claims: TokenClaims, *, audience: str, client_id: str, tenant_id: str) -> List[str]:
    """Return one message per claim that does not match what we asked for."""
    problems = []
    if claims.audience is None or _bare_host(claims.audience) != _bare_host(audience):
        problems.append(f"audience mismatch: expected {audience}, got {claims.audience}")
    if claims.tenant_id != tenant_id:
        problems.append(f"tenant mismatch: expected {tenant_id}, got {claims.tenant_id}")
    if claims.app_id != client_id:
        problems.append(f"app id mismatch: expected {client_id}, got {claims.app_id}")
    return problems


class TokenProvider:
    def __init__(
        self,
        cache: TokenCache,
        http_client: httpx.AsyncClient,
        *,
        authority_host: str = DEFAULT_AUTHORITY_HOST,
        audience: str = DEFAULT_BOT_AUDIENCE,
        timeout: float = 15.0,
    ):
        self.cache = cache
        self._http = http_client
        self.authority_host = authority_host.rstrip("/")
        self.audience = audience.rstrip("/")
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def scope(self) -> str:
        return f"{self.audience}/.default"

    def token_url(self, tenant_id: str) -> str:
        return f"{self.authority_host}/{quote(tenant_id, safe='')}/oauth2/v2.0/token"

    async def get_token(self, client_id: Optional[str], client_secret: Optional[str], tenant_id: Optional[str]) -> str:
        if not client_id:
            raise ConfigurationError("client_id", "set CLIENT_ID or MICROSOFT_APP_ID")
        if not client_secret:
            raise ConfigurationError("client_secret", "set CLIENT_SECRET or MICROSOFT_APP_PASSWORD")
        if not tenant_id:
            raise ConfigurationError("tenant_id", "no tenant in the activity and MS_TENANT_ID unset")

        cached = self.cache.get(tenant_id)
        if cached:
            log.debug("using cached token for tenant=%s", tenant_id)
            return cached.token

        # Concurrent refreshes for one tenant wait on the first one.
        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            cached = self.cache.get(tenant_id)
            if cached:
                return cached.token
            return await self._fetch(client_id, client_secret, tenant_id)

    async def _fetch(self, client_id: str, client_secret: str, tenant_id: str) -> str:
        url = self.token_url(tenant_id)
        form = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": self.scope,
        }
        log.info("requesting token tenant=%s url=%s", tenant_id, url)

        try:
            resp = await self._http.post(url, data=form, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise IssuerUnreachableError(
                f"token request to {url} got no response: {e!r}", tenant_id=tenant_id
            ) from e

        if not resp.is_success:
            raise IssuerRejectedError(
                f"issuer rejected client credentials for tenant {tenant_id}",
                tenant_id=tenant_id, status_code=resp.status_code, body=resp.text,
            )

        try:
            data = resp.json()
        except ValueError:
            data = None
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise MissingAccessTokenError(
                f"issuer response for tenant {tenant_id} has no access_token",
                tenant_id=tenant_id, status_code=resp.status_code, body=resp.text,
            )

        claims: Optional[TokenClaims] = None
        try:
            claims = decode_jwt_claims(token)
        except MalformedTokenError as e:
            log.warning("could not decode token claims tenant=%s: %s", tenant_id, e)

        if claims is not None:
            log.info("token claims tenant=%s %s", tenant_id, claims.summary())
            for problem in check_claims(claims, audience=self.audience, client_id=client_id, tenant_id=tenant_id):
                log.warning("token for tenant=%s: %s", tenant_id, problem)

        expires_at_ms = claims.expires_at_ms if claims is not None else None
        if expires_at_ms is None:
            expires_in = data.get("expires_in")
            try:
                expires_at_ms = self.cache.now_ms() + int(expires_in) * 1000
            except (TypeError, ValueError):
                log.warning("token for tenant=%s has no expiry, not caching", tenant_id)
                return token

        self.cache.put(tenant_id, token, expires_at_ms)
        return token
