# connectors: tokens for the Bot Connector and delivery of replies
from .delivery import DeliveryClient, DeliveryFailureKind, DeliveryRequest, DeliveryResult
from .errors import (
    ConfigurationError,
    DeliveryError,
    IssuerRejectedError,
    IssuerUnreachableError,
    MissingAccessTokenError,
    TokenAcquisitionError,
)
from .inbound_auth import InboundAuthenticator, InboundAuthError
from .jwt_claims import MalformedTokenError, TokenClaims, decode_jwt_claims
from .reply_sender import ReplySender, SendOutcome
from .token_cache import CachedToken, TokenCache
from .token_provider import TokenProvider

__all__ = [
    "CachedToken",
    "ConfigurationError",
    "DeliveryClient",
    "DeliveryError",
    "DeliveryFailureKind",
    "DeliveryRequest",
    "DeliveryResult",
    "InboundAuthError",
    "InboundAuthenticator",
    "IssuerRejectedError",
    "IssuerUnreachableError",
    "MalformedTokenError",
    "MissingAccessTokenError",
    "ReplySender",
    "SendOutcome",
    "TokenAcquisitionError",
    "TokenCache",
    "TokenClaims",
    "TokenProvider",
    "decode_jwt_claims",
]
