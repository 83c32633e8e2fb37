# connectors/reply_sender.py: tenant -> token -> POST, for replies to one inbound activity
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from settings import GatewaySettings

from .delivery import DeliveryClient, DeliveryRequest, DeliveryResult
from .errors import ConfigurationError, TokenAcquisitionError
from .jwt_claims import MalformedTokenError, decode_jwt_claims
from .token_provider import TokenProvider

log = logging.getLogger("teams-gateway.delivery")


@dataclass(frozen=True)
class SendOutcome:
    ok: bool
    error_kind: Optional[str] = None  # "configuration" | "token" | "delivery"
    detail: str = ""
    delivery: Optional[DeliveryResult] = None


class ReplySender:
    def __init__(self, settings: GatewaySettings, token_provider: TokenProvider, delivery_client: DeliveryClient):
        self.settings = settings
        self.tokens = token_provider
        self.delivery = delivery_client

    def resolve_tenant(self, activity) -> str:
        tenant = activity.tenant_id or self.settings.tenant_id
        if not tenant:
            raise ConfigurationError(
                "tenant_id", "not in channelData.tenant.id / conversation.tenantId and MS_TENANT_ID unset"
            )
        return tenant

    @staticmethod
    def build_reply(activity, payload: Dict[str, Any]) -> Dict[str, Any]:
        raw = activity.raw
        reply: Dict[str, Any] = {
            "type": "message",
            "conversation": raw.get("conversation"),
            "from": raw.get("recipient"),  # bot
            "recipient": raw.get("from"),  # user
        }
        if activity.id:
            reply["replyToId"] = activity.id
        reply.update(payload)
        return reply

    async def send(self, activity, payload: Dict[str, Any]) -> SendOutcome:
        try:
            request = DeliveryRequest(
                destination_base_url=activity.service_url or "",
                conversation_id=activity.conversation_id or "",
                payload=self.build_reply(activity, payload),
            )
            url = request.url  # ValueError on missing serviceUrl / conversation id
            tenant_id = self.resolve_tenant(activity)
            log.info("using tenant=%s url=%s", tenant_id, url)
            token = await self.tokens.get_token(self.settings.client_id, self.settings.client_secret, tenant_id)
            result = await self.delivery.deliver(request, token)
        except ConfigurationError as e:
            log.error("[config] cannot reply: %s", e)
            return SendOutcome(ok=False, error_kind="configuration", detail=str(e))
        except TokenAcquisitionError as e:
            log.error("[token] %s: %s", type(e).__name__, e)
            return SendOutcome(ok=False, error_kind="token", detail=str(e))
        except ValueError as e:
            # missing serviceUrl / conversation id in the inbound activity
            log.error("[delivery] bad destination: %s", e)
            return SendOutcome(ok=False, error_kind="delivery", detail=str(e))

        if not result.success:
            log.error(
                "[delivery] failed status=%s www-authenticate=%s body=%s",
                result.http_status, result.auth_challenge, result.body_snippet or result.detail,
            )
            try:
                log.error("[delivery] token claims used: %s", decode_jwt_claims(token).summary())
            except MalformedTokenError as e:
                log.error("[delivery] token claims unreadable: %s", e)
            return SendOutcome(ok=False, error_kind="delivery", detail=result.describe(), delivery=result)

        log.info("reply delivered conversation=%s", activity.conversation_id)
        return SendOutcome(ok=True, delivery=result)
