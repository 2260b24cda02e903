"""Token acquisition and caching."""

from .tokens import (
    CredentialSet,
    MsalClientCredentialsEndpoint,
    RefreshTokenEndpoint,
    TokenCache,
    TokenRecord,
    TokenResponse,
)

__all__ = [
    "CredentialSet",
    "MsalClientCredentialsEndpoint",
    "RefreshTokenEndpoint",
    "TokenCache",
    "TokenRecord",
    "TokenResponse",
]
