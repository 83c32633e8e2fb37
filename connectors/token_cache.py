import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

log = logging.getLogger("teams-gateway.token")

# Tokens are refreshed this long before their claimed expiry.
REFRESH_SKEW_MS = 5 * 60 * 1000


def _now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class CachedToken:
    tenant_id: str
    token: str
    expires_at_ms: int

    def is_valid(self, now_ms: float, skew_ms: int = REFRESH_SKEW_MS) -> bool:
        return now_ms < self.expires_at_ms - skew_ms


class TokenCache:
    """Bearer tokens per tenant. One instance per process, shared by reference."""

    def __init__(self, clock: Callable[[], float] = _now_ms, skew_ms: int = REFRESH_SKEW_MS):
        self._clock = clock
        self._skew_ms = skew_ms
        self._entries: Dict[str, CachedToken] = {}
        self._lock = threading.Lock()

    def get(self, tenant_id: str) -> Optional[CachedToken]:
        with self._lock:
            entry = self._entries.get(tenant_id)
        if entry is None or not entry.is_valid(self._clock(), self._skew_ms):
            return None
        return entry

    def put(self, tenant_id: str, token: str, expires_at_ms: int) -> CachedToken:
        entry = CachedToken(tenant_id=tenant_id, token=token, expires_at_ms=int(expires_at_ms))
        with self._lock:
            self._entries[tenant_id] = entry
        log.debug("cached token for tenant=%s until_ms=%s", tenant_id, entry.expires_at_ms)
        return entry

    def now_ms(self) -> float:
        return self._clock()

    def tenants(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
