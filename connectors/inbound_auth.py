# connectors/inbound_auth.py: validates the Bot Service token on /api/messages
import logging
from typing import Any, Dict

from botbuilder.schema import Activity
from botframework.connector.auth import ClaimsIdentity, JwtTokenValidation, SimpleCredentialProvider

from settings import GatewaySettings

log = logging.getLogger("teams-gateway.auth")


class InboundAuthError(Exception):
    pass


class InboundAuthenticator:
    """
    Checks the inbound Authorization header with the Bot Framework SDK.

    For channel tokens the SDK also checks the token's serviceUrl claim against
    activity.serviceUrl, so a reply (and our bearer token) only goes to the
    service url the Bot Service itself vouched for.
    """

    def __init__(self, settings: GatewaySettings):
        # With no app id the SDK allows anonymous requests (emulator); replies
        # then fail anyway because no token can be minted without credentials.
        self.credentials = SimpleCredentialProvider(settings.client_id, settings.client_secret)

    async def authenticate(self, body: Dict[str, Any], auth_header: str) -> ClaimsIdentity:
        activity: Activity = Activity().deserialize(body)
        try:
            identity = await JwtTokenValidation.authenticate_request(activity, auth_header or "", self.credentials)
        except Exception as e:
            # PermissionError for bad tokens, but also jwt decode errors for garbage headers
            raise InboundAuthError(f"{type(e).__name__}: {e}") from e
        if identity is None or not identity.is_authenticated:
            raise InboundAuthError("request is not authenticated")
        log.debug("inbound activity authenticated appid=%s", (identity.claims or {}).get("appid"))
        return identity
