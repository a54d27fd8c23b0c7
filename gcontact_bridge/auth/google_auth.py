"""
OAuth2 authorization module for the Google Contacts bridge.

Provides:
- Encoding and decoding of the opaque API key (access/refresh token pair)
- Authorizing a fresh, immutable client per call by forcing a token refresh
- Driving the Google authorization endpoint (redirect URL, code exchange)
"""

import logging
from dataclasses import dataclass
from typing import Any

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from gcontact_bridge.utils.anonymize import anonymize_key

# OAuth2 scopes required for reading and writing contacts
SCOPES = ["https://www.googleapis.com/auth/contacts"]

# Google OAuth2 endpoints
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

# Separator between access and refresh token inside an API key
API_KEY_SEPARATOR = ":"

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when credentials are expired, invalid or rejected upstream."""

    pass


class ValidationError(ValueError):
    """Raised when an API key is malformed."""

    pass


def encode_api_key(access_token: str, refresh_token: str) -> str:
    """
    Encode a token pair into an API key.

    Args:
        access_token: Short-lived OAuth2 access token
        refresh_token: Long-lived OAuth2 refresh token

    Returns:
        API key in the form "access:refresh"

    Raises:
        ValidationError: If a token is empty or the access token contains
            the separator (the key would not decode back to the same pair)
    """
    if not access_token or not refresh_token:
        raise ValidationError("Both access and refresh token are required")
    if API_KEY_SEPARATOR in access_token:
        raise ValidationError(
            f"Access token must not contain {API_KEY_SEPARATOR!r}"
        )
    return f"{access_token}{API_KEY_SEPARATOR}{refresh_token}"


def decode_api_key(api_key: str) -> tuple[str, str]:
    """
    Decode an API key into its token pair.

    Splits on the first separator only, refresh tokens may contain it.

    Args:
        api_key: Key produced by encode_api_key

    Returns:
        Tuple of (access_token, refresh_token)

    Raises:
        ValidationError: If the key cannot be split into two non-empty tokens
    """
    if not api_key or API_KEY_SEPARATOR not in api_key:
        raise ValidationError("Malformed API key: missing token separator")

    access_token, refresh_token = api_key.split(API_KEY_SEPARATOR, 1)
    if not access_token or not refresh_token:
        raise ValidationError("Malformed API key: empty access or refresh token")
    return access_token, refresh_token


@dataclass(frozen=True)
class AuthorizedClient:
    """
    Credentials validated for a single inbound operation.

    Created fresh by GoogleAuth.authorize() and never reused across calls.

    Attributes:
        credentials: Refreshed Google OAuth2 credentials
    """

    credentials: Credentials


class GoogleAuth:
    """
    OAuth2 helper bound to one Google OAuth client.

    Attributes:
        client_id: OAuth client id
        client_secret: OAuth client secret
        redirect_url: Callback URL registered for the OAuth client

    Usage:
        auth = GoogleAuth(client_id, client_secret, redirect_url)

        # Redirect the user to Google
        url = auth.get_authorization_url()

        # Turn the callback code into an API key
        api_key = auth.exchange_code(code)

        # Authorize a client for one operation
        client = auth.authorize(api_key)
    """

    def __init__(self, client_id: str, client_secret: str, redirect_url: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url

    def _client_config(self) -> dict[str, Any]:
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_url],
            }
        }

    def _create_flow(self) -> Flow:
        # URL generation and code exchange happen in separate requests,
        # so no PKCE verifier can be carried between them
        return Flow.from_client_config(
            self._client_config(),
            scopes=SCOPES,
            redirect_uri=self.redirect_url,
            autogenerate_code_verifier=False,
        )

    def get_authorization_url(self) -> str:
        """
        Build the Google consent URL.

        Requests offline access and forces the consent prompt so that a
        refresh token is always issued.

        Returns:
            Authorization URL to redirect the user to
        """
        url, _state = self._create_flow().authorization_url(
            access_type="offline", prompt="consent"
        )
        return str(url)

    def exchange_code(self, code: str) -> str:
        """
        Exchange an authorization code for an API key.

        Args:
            code: Code received on the OAuth callback

        Returns:
            Encoded API key

        Raises:
            AuthError: If the exchange fails or no refresh token is issued
        """
        if not code:
            raise AuthError("Missing authorization code")

        flow = self._create_flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error(f"Authorization code exchange failed: {e}")
            raise AuthError(f"Failed to exchange authorization code: {e}") from e

        creds = flow.credentials
        if not creds.token or not creds.refresh_token:
            raise AuthError("Token endpoint did not return an access/refresh token pair")

        api_key = encode_api_key(creds.token, creds.refresh_token)
        logger.info(f"Issued API key {anonymize_key(api_key)}")
        return api_key

    def authorize(self, api_key: str) -> AuthorizedClient:
        """
        Authorize a client for a single operation.

        Decodes the API key and forces a refresh round trip so that the
        credentials are known to be valid before any directory call.

        Args:
            api_key: Encoded token pair

        Returns:
            AuthorizedClient holding refreshed credentials

        Raises:
            ValidationError: If the API key is malformed
            AuthError: If the token endpoint rejects the credentials or
                returns an empty token
            RefreshError: Retryable token endpoint failures, unchanged
        """
        access_token, refresh_token = decode_api_key(api_key)

        creds = Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=SCOPES,
        )

        try:
            creds.refresh(Request())
        except RefreshError as e:
            if e.retryable:
                # 5xx or temporarily_unavailable from the token endpoint
                logger.warning(
                    f"Token endpoint unavailable for {anonymize_key(api_key)}: {e}"
                )
                raise
            logger.warning(
                f"Failed to refresh credentials for {anonymize_key(api_key)}: {e}"
            )
            raise AuthError(f"Credentials rejected: {e}") from e

        if not creds.token:
            raise AuthError("Token endpoint returned an empty access token")

        logger.debug(f"Authorized client for {anonymize_key(api_key)}")
        return AuthorizedClient(credentials=creds)
