"""
gcontact_bridge.auth - OAuth2 authorization and API key handling
"""

from gcontact_bridge.auth.google_auth import (
    AuthError,
    AuthorizedClient,
    GoogleAuth,
    ValidationError,
    decode_api_key,
    encode_api_key,
)

__all__ = [
    "AuthError",
    "AuthorizedClient",
    "GoogleAuth",
    "ValidationError",
    "decode_api_key",
    "encode_api_key",
]
