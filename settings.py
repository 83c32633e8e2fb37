import logging
import os
from dataclasses import dataclass

# Each setting accepts several names: the Teams toolkit, Azure Bot Service and
# Render/Vercel dashboards all use their own spelling.
_ALIASES = {
    "CLIENT_ID": ("CLIENT_ID", "BOT_ID", "MICROSOFT_APP_ID", "MicrosoftAppId"),
    "CLIENT_SECRET": (
        "CLIENT_SECRET", "BOT_PASSWORD", "CLIENT_PASSWORD", "SECRET_BOT_PASSWORD",
        "MICROSOFT_APP_PASSWORD", "MicrosoftAppPassword",
    ),
    "MS_TENANT_ID": ("MS_TENANT_ID", "MICROSOFT_APP_TENANT_ID", "MicrosoftAppTenantId"),
}

DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_BOT_AUDIENCE = "https://api.botframework.com"


def _get_env(name: str, fallback: str = "") -> str:
    for key in _ALIASES.get(name, (name,)):
        val = os.getenv(key)
        if val:
            return val
    return fallback


def _get_float(name: str, fallback: float) -> float:
    raw = _get_env(name)
    if not raw:
        return fallback
    try:
        return float(raw)
    except ValueError:
        logging.getLogger("teams-gateway").warning("%s=%r is not a number, using %s", name, raw, fallback)
        return fallback


@dataclass(frozen=True)
class GatewaySettings:
    client_id: str = ""
    client_secret: str = ""
    tenant_id: str = ""
    authority_host: str = DEFAULT_AUTHORITY_HOST
    audience: str = DEFAULT_BOT_AUDIENCE
    delivery_timeout_s: float = 10.0
    token_timeout_s: float = 15.0
    log_level: str = "INFO"
    port: int = 3978

    @property
    def scope(self) -> str:
        return f"{self.audience.rstrip('/')}/.default"


def load_settings() -> GatewaySettings:
    return GatewaySettings(
        client_id=_get_env("CLIENT_ID"),
        client_secret=_get_env("CLIENT_SECRET"),
        tenant_id=_get_env("MS_TENANT_ID"),
        authority_host=_get_env("AUTHORITY_HOST", DEFAULT_AUTHORITY_HOST).rstrip("/"),
        audience=_get_env("BOT_AUDIENCE", DEFAULT_BOT_AUDIENCE),
        delivery_timeout_s=_get_float("DELIVERY_TIMEOUT_S", 10.0),
        token_timeout_s=_get_float("TOKEN_TIMEOUT_S", 15.0),
        log_level=_get_env("LOG_LEVEL", "INFO").upper(),
        port=int(_get_env("PORT", "3978")),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def public_env_snapshot(settings: GatewaySettings) -> dict:
    def masked(v: str) -> str:
        return "SET(***masked***)" if v else "MISSING"

    return {
        "CLIENT_ID": settings.client_id or "MISSING",
        "CLIENT_SECRET": masked(settings.client_secret),
        "CLIENT_SECRET_LEN": len(settings.client_secret),
        "MS_TENANT_ID": settings.tenant_id or "(from activity)",
        "AUTHORITY_HOST": settings.authority_host,
        "BOT_AUDIENCE": settings.audience,
        "DELIVERY_TIMEOUT_S": settings.delivery_timeout_s,
        "LOG_LEVEL": settings.log_level,
    }
