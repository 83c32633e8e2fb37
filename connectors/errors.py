from typing import Any, Optional


class ConfigurationError(Exception):
    """A credential or the tenant needed for an outbound call is missing."""

    def __init__(self, field: str, detail: str = ""):
        self.field = field
        msg = f"missing required setting: {field}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class TokenAcquisitionError(Exception):
    """The client-credentials exchange against the tenant's issuer failed."""

    def __init__(self, message: str, *, tenant_id: str, status_code: Optional[int] = None, body: str = ""):
        self.tenant_id = tenant_id
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            base = f"{base} [status={self.status_code}]"
        if self.body:
            base = f"{base} body={self.body}"
        return base


class IssuerUnreachableError(TokenAcquisitionError):
    """No response from the issuer (DNS, connect, timeout)."""


class IssuerRejectedError(TokenAcquisitionError):
    """The issuer answered with a non-2xx status, usually a bad secret or tenant."""


class MissingAccessTokenError(TokenAcquisitionError):
    """2xx from the issuer but no usable access_token in the body."""


class DeliveryError(Exception):
    """Raised by DeliveryResult.raise_for_failure()."""

    def __init__(self, result: Any):
        self.result = result
        super().__init__(result.describe())
