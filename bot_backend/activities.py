# bot_backend/activities.py: typed view over inbound Bot Framework activities
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from botbuilder.schema import Activity, ActivityTypes

ADAPTIVE_CARD_ACTION = "adaptiveCard/action"

_MENTION_RE = re.compile(r"<at[^>]*>.*?</at>", re.IGNORECASE | re.DOTALL)


class InvalidActivityError(ValueError):
    pass


@dataclass(frozen=True)
class InboundActivity:
    type: str
    id: Optional[str]
    conversation_id: Optional[str]
    service_url: Optional[str]
    channel_id: Optional[str]
    tenant_id: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def recipient_id(self) -> Optional[str]:
        return (self.raw.get("recipient") or {}).get("id")


@dataclass(frozen=True)
class MessageActivity(InboundActivity):
    text: str = ""
    value: Optional[Any] = None


@dataclass(frozen=True)
class InvokeActivity(InboundActivity):
    name: str = ""
    value: Optional[Any] = None


@dataclass(frozen=True)
class UnsupportedActivity(InboundActivity):
    pass


TypedActivity = Union[MessageActivity, InvokeActivity, UnsupportedActivity]


def _tenant_from(act: Activity, body: Dict[str, Any]) -> Optional[str]:
    channel_data = act.channel_data if isinstance(act.channel_data, dict) else {}
    tenant = channel_data.get("tenant") or {}
    if isinstance(tenant, dict) and tenant.get("id"):
        return tenant["id"]
    # botbuilder-schema maps ConversationAccount.tenant_id to "tenantID", so Teams'
    # "tenantId" never reaches the model; read the raw conversation instead.
    conv = body.get("conversation")
    if not isinstance(conv, dict):
        return None
    return conv.get("tenantId") or conv.get("tenantID")


def parse_activity(body: Any) -> TypedActivity:
    if not isinstance(body, dict):
        raise InvalidActivityError("activity must be a JSON object")
    if not body.get("type"):
        raise InvalidActivityError("activity has no type")

    try:
        act: Activity = Activity().deserialize(body)
    except Exception as e:
        raise InvalidActivityError(f"activity does not match the Bot Framework schema: {e}") from e

    conv = act.conversation
    common = dict(
        type=act.type,
        id=act.id,
        conversation_id=getattr(conv, "id", None) if conv else None,
        service_url=act.service_url,
        channel_id=act.channel_id,
        tenant_id=_tenant_from(act, body),
        raw=body,
    )
    if act.type == ActivityTypes.message:
        return MessageActivity(text=act.text or "", value=act.value, **common)
    if act.type == ActivityTypes.invoke:
        return InvokeActivity(name=act.name or "", value=act.value, **common)
    return UnsupportedActivity(**common)


def submitted_action(activity: TypedActivity) -> Optional[Dict[str, Any]]:
    """Card submit data, whether it came as a message value or an Action.Submit invoke."""
    if isinstance(activity, MessageActivity):
        return activity.value if isinstance(activity.value, dict) else None
    if isinstance(activity, InvokeActivity) and activity.name == ADAPTIVE_CARD_ACTION:
        action = (activity.value or {}).get("action") if isinstance(activity.value, dict) else None
        if isinstance(action, dict) and action.get("type") == "Action.Submit":
            data = action.get("data")
            return data if isinstance(data, dict) else None
    return None


def strip_mentions(text: str) -> str:
    return _MENTION_RE.sub("", text or "").strip()
