# app.py: Teams gateway (aiohttp). Acks /api/messages right away and replies from a background task.
import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Dict, Optional, Set

import httpx
import msal
from aiohttp import web

from bot import QuestionnaireBot
from bot_backend.activities import InvalidActivityError, TypedActivity, parse_activity
from connectors import (
    ConfigurationError,
    DeliveryClient,
    InboundAuthenticator,
    InboundAuthError,
    MalformedTokenError,
    ReplySender,
    TokenAcquisitionError,
    TokenCache,
    TokenProvider,
    decode_jwt_claims,
)
from connectors.token_provider import check_claims
from presenters import text_message
from settings import GatewaySettings, configure_logging, load_settings, public_env_snapshot

log = logging.getLogger("teams-gateway")

ERROR_REPLY = "Oops, something went wrong."
CHAT_SERVICE_URL = "https://smba.trafficmanager.net/amer/"


# ==========================
# Background work
# ==========================
class BackgroundTasks:
    """Tracks the reply tasks spawned after the webhook has been acknowledged."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.warning("[TASK] %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            log.error("[TASK] %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def drain(self, timeout: Optional[float] = None) -> None:
        if self._tasks:
            await asyncio.wait(set(self._tasks), timeout=timeout)

    def __len__(self) -> int:
        return len(self._tasks)


SETTINGS_KEY = web.AppKey("settings", GatewaySettings)
BOT_KEY = web.AppKey("bot", QuestionnaireBot)
CACHE_KEY = web.AppKey("token_cache", TokenCache)
TASKS_KEY = web.AppKey("tasks", BackgroundTasks)
PROVIDER_KEY = web.AppKey("token_provider", TokenProvider)
SENDER_KEY = web.AppKey("reply_sender", ReplySender)
AUTH_KEY = web.AppKey("authenticator", InboundAuthenticator)


async def process_activity(app: web.Application, activity: TypedActivity) -> None:
    sender = app[SENDER_KEY]

    async def send(payload: Dict[str, Any]):
        return await sender.send(activity, payload)

    try:
        await app[BOT_KEY].on_activity(activity, send)
    except Exception as e:
        log.error("[BOT ERROR] %s", e, exc_info=True)
        await sender.send(activity, text_message(ERROR_REPLY))


def _log_inbound_claims(auth_header: str) -> None:
    # Claims of the Bot Service token we received; signature is not checked here.
    if not auth_header.startswith("Bearer "):
        return
    try:
        claims = decode_jwt_claims(auth_header.split(" ", 1)[1])
    except MalformedTokenError as e:
        log.warning("[JWT] could not decode inbound claims: %s", e)
        return
    log.info("[JWT] iss=%s | aud=%s | appid=%s | tid=%s",
             claims.issuer, claims.audience, claims.app_id, claims.tenant_id)


# ==========
# Handlers
# ==========
async def messages(req: web.Request) -> web.Response:
    if "application/json" not in req.headers.get("Content-Type", ""):
        return web.Response(status=415, text="Content-Type must be application/json")

    try:
        body = await req.json()
        activity = parse_activity(body)
    except json.JSONDecodeError:
        return web.json_response({"error": "body is not valid JSON"}, status=400)
    except InvalidActivityError as e:
        return web.json_response({"error": str(e)}, status=400)

    log.info("[DIAG] type=%s | recipient.id=%s | channel=%s | serviceUrl=%s",
             activity.type, activity.recipient_id, activity.channel_id, activity.service_url)
    auth_header = req.headers.get("Authorization", "")
    _log_inbound_claims(auth_header)
    try:
        await req.app[AUTH_KEY].authenticate(body, auth_header)
    except InboundAuthError as e:
        log.warning("[AUTH] rejected activity id=%s serviceUrl=%s: %s", activity.id, activity.service_url, e)
        return web.json_response({"error": "unauthorized"}, status=401)

    req.app[TASKS_KEY].spawn(process_activity(req.app, activity), name=f"activity-{activity.id}")
    return web.Response(status=200, text="OK")


async def chat(req: web.Request) -> web.Response:
    """Local test endpoint: runs the bot on a synthetic activity and returns the replies."""
    try:
        body = await req.json() if req.can_read_body else {}
    except json.JSONDecodeError:
        return web.json_response({"error": "body is not valid JSON"}, status=400)
    if not isinstance(body, dict):
        body = {}

    text = body.get("text") or body.get("message") or "hi"
    raw = {
        "type": "message",
        "id": f"test-{int(time.time() * 1000)}",
        "text": text,
        "from": {"id": "test-user", "name": "Test User"},
        "recipient": {"id": "test-bot", "name": "Hoogah"},
        "conversation": {"id": body.get("conversationId") or "test-conversation", "conversationType": "personal"},
        "channelId": "msteams",
        "serviceUrl": CHAT_SERVICE_URL,
    }
    if body.get("value") is not None:
        raw["value"] = body["value"]

    replies = []

    async def capture(payload: Dict[str, Any]):
        replies.append(payload)

    await req.app[BOT_KEY].on_activity(parse_activity(raw), capture)
    return web.json_response({"success": True, "messages": replies, "received": text})


async def health(_: web.Request) -> web.Response:
    return web.json_response({"ok": True})


async def root(_: web.Request) -> web.Response:
    return web.Response(text="Bot is running!")


async def diag_env(req: web.Request) -> web.Response:
    snapshot = public_env_snapshot(req.app[SETTINGS_KEY])
    snapshot["cached_tenants"] = req.app[CACHE_KEY].tenants()
    snapshot["conversations"] = req.app[BOT_KEY].store.snapshot()
    snapshot["pending_tasks"] = len(req.app[TASKS_KEY])
    return web.json_response(snapshot)


async def diag_msal(req: web.Request) -> web.Response:
    """Validates the credential pair with MSAL, independently of our own token code."""
    s = req.app[SETTINGS_KEY]
    if not s.client_id or not s.client_secret:
        return web.json_response({"ok": False, "error": "CLIENT_ID/CLIENT_SECRET not set"}, status=500)

    authority = f"{s.authority_host}/{s.tenant_id or 'organizations'}"
    log.info("Initializing with Entra authority: %s", authority)
    try:
        cca = msal.ConfidentialClientApplication(
            client_id=s.client_id, client_credential=s.client_secret, authority=authority
        )
        res = await asyncio.to_thread(cca.acquire_token_for_client, scopes=[s.scope])
    except Exception as e:
        return web.json_response({"ok": False, "authority": authority, "exception": str(e)}, status=500)

    ok = "access_token" in res
    payload = {"ok": ok, "authority": authority, "keys": sorted(k for k in res if k != "access_token")}
    if ok:
        payload["expires_in"] = res.get("expires_in")
    else:
        payload["aad_error"] = res.get("error")
        payload["aad_error_description"] = res.get("error_description")
    return web.json_response(payload, status=200 if ok else 500)


async def diag_token(req: web.Request) -> web.Response:
    """Acquires (or reuses) a connector token and reports its claims, never the token."""
    s = req.app[SETTINGS_KEY]
    tenant = req.query.get("tenant") or s.tenant_id
    provider = req.app[PROVIDER_KEY]
    try:
        token = await provider.get_token(s.client_id, s.client_secret, tenant)
    except ConfigurationError as e:
        return web.json_response({"ok": False, "missing": e.field, "error": str(e)}, status=400)
    except TokenAcquisitionError as e:
        return web.json_response({
            "ok": False,
            "error": type(e).__name__,
            "status": e.status_code,
            "body": e.body,
        }, status=502)

    out: Dict[str, Any] = {"ok": True, "tenant": tenant, "cached_tenants": req.app[CACHE_KEY].tenants()}
    try:
        claims = decode_jwt_claims(token)
    except MalformedTokenError as e:
        out["claims_error"] = str(e)
        return web.json_response(out)
    out["claims"] = claims.summary()
    out["problems"] = check_claims(claims, audience=provider.audience, client_id=s.client_id, tenant_id=tenant)
    return web.json_response(out)


# ==========
# App AIOHTTP
# ==========
def create_app(
    settings: Optional[GatewaySettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    bot: Optional[QuestionnaireBot] = None,
    token_cache: Optional[TokenCache] = None,
    authenticator: Optional[InboundAuthenticator] = None,
) -> web.Application:
    settings = settings or load_settings()

    app = web.Application()
    app[SETTINGS_KEY] = settings
    app[BOT_KEY] = bot or QuestionnaireBot()
    app[CACHE_KEY] = token_cache or TokenCache()
    app[TASKS_KEY] = BackgroundTasks()
    app[AUTH_KEY] = authenticator or InboundAuthenticator(settings)

    async def outbound(app: web.Application):
        log.info("credentials check: CLIENT_ID present=%s | CLIENT_SECRET present=%s | MS_TENANT_ID=%s",
                 bool(settings.client_id), bool(settings.client_secret), settings.tenant_id or "(from activity)")
        async with httpx.AsyncClient(transport=transport) as client:
            provider = TokenProvider(
                app[CACHE_KEY], client,
                authority_host=settings.authority_host,
                audience=settings.audience,
                timeout=settings.token_timeout_s,
            )
            app[PROVIDER_KEY] = provider
            app[SENDER_KEY] = ReplySender(settings, provider, DeliveryClient(client, timeout=settings.delivery_timeout_s))
            yield
            await app[TASKS_KEY].drain(timeout=settings.token_timeout_s + settings.delivery_timeout_s)

    app.cleanup_ctx.append(outbound)

    app.router.add_post("/api/messages", messages)
    app.router.add_post("/chat", chat)
    app.router.add_get("/", root)
    app.router.add_get("/health", health)
    app.router.add_get("/diag/env", diag_env)
    app.router.add_get("/diag/msal", diag_msal)
    app.router.add_get("/diag/token", diag_token)
    return app


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    web.run_app(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
