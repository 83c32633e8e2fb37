"""
Decoding of the claims segment of an access token.

Only the payload is read; the signature is not verified. The issuer already
accepted our credentials, so the claims are used for diagnostics (audience,
tenant and app id mismatches) and to learn the expiry.
"""
import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class MalformedTokenError(ValueError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    audience: Optional[str] = None
    tenant_id: Optional[str] = None
    app_id: Optional[str] = None
    issuer: Optional[str] = None
    expires_at: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def expires_at_ms(self) -> Optional[int]:
        if self.expires_at is None:
            return None
        return self.expires_at * 1000

    def summary(self) -> Dict[str, Any]:
        return {
            "aud": self.audience,
            "tid": self.tenant_id,
            "appid": self.app_id,
            "iss": self.issuer,
            "exp": self.expires_at,
        }


def b64url_decode(segment: str) -> bytes:
    """Decode a base64url segment whose '=' padding was stripped."""
    if len(segment) % 4 == 1:
        raise MalformedTokenError(f"invalid base64url length {len(segment)}")
    padded = segment + "=" * (-len(segment) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise MalformedTokenError(f"invalid base64url segment: {e}") from e


def decode_jwt_claims(token: str) -> TokenClaims:
    parts = (token or "").split(".")
    if len(parts) != 3:
        raise MalformedTokenError(f"expected 3 segments, got {len(parts)}")
    if not parts[1]:
        raise MalformedTokenError("empty claims segment")

    raw = b64url_decode(parts[1])
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedTokenError(f"claims segment is not JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedTokenError("claims segment is not a JSON object")

    exp = payload.get("exp")
    if exp is not None:
        try:
            exp = int(exp)
        except (TypeError, ValueError) as e:
            raise MalformedTokenError(f"non-numeric exp claim: {exp!r}") from e

    return TokenClaims(
        audience=payload.get("aud"),
        tenant_id=payload.get("tid"),
        app_id=payload.get("appid") or payload.get("azp"),
        issuer=payload.get("iss"),
        expires_at=exp,
        raw=payload,
    )
