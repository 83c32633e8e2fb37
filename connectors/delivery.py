# connectors/delivery.py: POST one activity to the Bot Connector (no retries)
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .errors import DeliveryError

log = logging.getLogger("teams-gateway.delivery")

BODY_SNIPPET_LIMIT = 2000


def build_activities_url(base_url: str, conversation_id: str) -> str:
    # serviceUrl is regional (smba.trafficmanager.net/amer/, /emea/, ...): use it as-is
    if not base_url:
        raise ValueError("destination base url is required")
    if not conversation_id:
        raise ValueError("conversation id is required")
    base = base_url[:-1] if base_url.endswith("/") else base_url
    return f"{base}/v3/conversations/{quote(conversation_id, safe='')}/activities"


class DeliveryFailureKind(str, enum.Enum):
    HTTP_STATUS = "http_status"
    NO_RESPONSE = "no_response"


@dataclass(frozen=True)
class DeliveryRequest:
    destination_base_url: str
    conversation_id: str
    payload: Dict[str, Any]

    @property
    def url(self) -> str:
        return build_activities_url(self.destination_base_url, self.conversation_id)


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    url: str = ""
    kind: Optional[DeliveryFailureKind] = None
    http_status: Optional[int] = None
    auth_challenge: Optional[str] = None
    body_snippet: str = ""
    detail: str = ""

    def describe(self) -> str:
        if self.success:
            return f"delivered to {self.url} [status={self.http_status}]"
        if self.kind is DeliveryFailureKind.NO_RESPONSE:
            return f"no response from {self.url}: {self.detail}"
        return (
            f"connector returned status {self.http_status} for {self.url}"
            f" www-authenticate={self.auth_challenge!r} body={self.body_snippet!r}"
        )

    def raise_for_failure(self) -> None:
        if not self.success:
            raise DeliveryError(self)


class DeliveryClient:
    def __init__(self, http_client: httpx.AsyncClient, *, timeout: float = 10.0):
        self._http = http_client
        self.timeout = timeout

    async def deliver(self, request: DeliveryRequest, token: str) -> DeliveryResult:
        url = request.url
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        log.info("sending to %s", url)
        try:
            resp = await self._http.post(url, json=request.payload, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            log.error("no response from connector url=%s error=%r", url, e)
            return DeliveryResult(
                success=False, url=url, kind=DeliveryFailureKind.NO_RESPONSE, detail=repr(e)
            )

        if resp.is_success:
            return DeliveryResult(success=True, url=url, http_status=resp.status_code)

        result = DeliveryResult(
            success=False,
            url=url,
            kind=DeliveryFailureKind.HTTP_STATUS,
            http_status=resp.status_code,
            auth_challenge=resp.headers.get("WWW-Authenticate"),
            body_snippet=resp.text[:BODY_SNIPPET_LIMIT],
        )
        log.error("non-2xx from connector: %s", result.describe())
        return result
