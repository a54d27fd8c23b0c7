"""
Unit tests for the authentication module.

Tests API key encoding, per-call authorization and the OAuth2 handshake
with mocked Google credentials and flows.
"""

from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import RefreshError

from gcontact_bridge.auth.google_auth import (
    SCOPES,
    TOKEN_URI,
    AuthError,
    AuthorizedClient,
    GoogleAuth,
    ValidationError,
    decode_api_key,
    encode_api_key,
)


@pytest.fixture
def auth():
    return GoogleAuth(
        client_id="client-123.apps.googleusercontent.com",
        client_secret="s3cret",
        redirect_url="https://bridge.example.com/oauth/callback",
    )


class TestApiKeyEncoding:
    """Tests for encode_api_key() and decode_api_key()."""

    def test_encode(self):
        """Test that the pair is joined with the separator."""
        assert encode_api_key("acc1", "ref1") == "acc1:ref1"

    def test_decode(self):
        """Test that a key splits back into its pair."""
        assert decode_api_key(encode_api_key("acc1", "ref1")) == ("acc1", "ref1")

    def test_decode_splits_on_first_separator(self):
        """Test that refresh tokens may contain the separator."""
        assert decode_api_key("acc1:sub:ref1") == ("acc1", "sub:ref1")

    @pytest.mark.parametrize("api_key", ["", "acc1ref1", ":ref1", "acc1:"])
    def test_decode_malformed(self, api_key):
        """Test that malformed keys are rejected."""
        with pytest.raises(ValidationError):
            decode_api_key(api_key)

    def test_encode_rejects_separator_in_access_token(self):
        """Test that keys which would not decode back are refused."""
        with pytest.raises(ValidationError):
            encode_api_key("acc:1", "ref1")

    @pytest.mark.parametrize("access,refresh", [("", "ref1"), ("acc1", "")])
    def test_encode_requires_both_tokens(self, access, refresh):
        """Test that both tokens are required."""
        with pytest.raises(ValidationError):
            encode_api_key(access, refresh)

    def test_validation_error_is_value_error(self):
        """Test the error hierarchy."""
        assert issubclass(ValidationError, ValueError)


class TestAuthorize:
    """Tests for GoogleAuth.authorize()."""

    @patch("gcontact_bridge.auth.google_auth.Request")
    @patch("gcontact_bridge.auth.google_auth.Credentials")
    def test_authorize_refreshes_credentials(self, mock_creds_cls, mock_request, auth):
        """Test that authorization forces a refresh round trip."""
        mock_creds = MagicMock()
        mock_creds.token = "fresh-access"
        mock_creds_cls.return_value = mock_creds

        client = auth.authorize("acc1:ref1")

        mock_creds_cls.assert_called_once_with(
            token="acc1",
            refresh_token="ref1",
            token_uri=TOKEN_URI,
            client_id="client-123.apps.googleusercontent.com",
            client_secret="s3cret",
            scopes=SCOPES,
        )
        mock_creds.refresh.assert_called_once_with(mock_request.return_value)
        assert isinstance(client, AuthorizedClient)
        assert client.credentials is mock_creds
        assert client.credentials.token == "fresh-access"

    @patch("gcontact_bridge.auth.google_auth.Request")
    @patch("gcontact_bridge.auth.google_auth.Credentials")
    def test_authorize_returns_new_client_per_call(
        self, mock_creds_cls, mock_request, auth
    ):
        """Test that clients are never shared between calls."""
        mock_creds_cls.side_effect = lambda **kwargs: MagicMock(token="t")

        first = auth.authorize("acc1:ref1")
        second = auth.authorize("acc1:ref1")

        assert first is not second
        assert mock_creds_cls.call_count == 2

    @patch("gcontact_bridge.auth.google_auth.Request")
    @patch("gcontact_bridge.auth.google_auth.Credentials")
    def test_authorize_rejected_refresh(self, mock_creds_cls, mock_request, auth):
        """Test that a rejected refresh raises AuthError."""
        mock_creds_cls.return_value.refresh.side_effect = RefreshError("invalid_grant")

        with pytest.raises(AuthError, match="invalid_grant"):
            auth.authorize("acc1:ref1")

    @patch("gcontact_bridge.auth.google_auth.Request")
    @patch("gcontact_bridge.auth.google_auth.Credentials")
    def test_authorize_retryable_refresh_failure(
        self, mock_creds_cls, mock_request, auth
    ):
        """Test that token endpoint outages are not reported as rejected credentials."""
        mock_creds_cls.return_value.refresh.side_effect = RefreshError(
            "server_error", retryable=True
        )

        with pytest.raises(RefreshError) as exc_info:
            auth.authorize("acc1:ref1")

        assert not isinstance(exc_info.value, AuthError)
        assert exc_info.value.retryable is True

    @patch("gcontact_bridge.auth.google_auth.Request")
    @patch("gcontact_bridge.auth.google_auth.Credentials")
    def test_authorize_empty_token(self, mock_creds_cls, mock_request, auth):
        """Test that an empty refreshed token raises AuthError."""
        mock_creds_cls.return_value.token = None

        with pytest.raises(AuthError, match="empty access token"):
            auth.authorize("acc1:ref1")

    @patch("gcontact_bridge.auth.google_auth.Credentials")
    def test_authorize_malformed_key(self, mock_creds_cls, auth):
        """Test that malformed keys fail before any network call."""
        with pytest.raises(ValidationError):
            auth.authorize("no-separator")

        mock_creds_cls.assert_not_called()


class TestOAuthHandshake:
    """Tests for the redirect URL and the code exchange."""

    @patch("gcontact_bridge.auth.google_auth.Flow")
    def test_get_authorization_url(self, mock_flow_cls, auth):
        """Test that offline access and consent are requested."""
        mock_flow = mock_flow_cls.from_client_config.return_value
        mock_flow.authorization_url.return_value = ("https://accounts.google.com/x", "st")

        url = auth.get_authorization_url()

        assert url == "https://accounts.google.com/x"
        mock_flow.authorization_url.assert_called_once_with(
            access_type="offline", prompt="consent"
        )
        config = mock_flow_cls.from_client_config.call_args[0][0]
        assert config["web"]["client_id"] == "client-123.apps.googleusercontent.com"
        assert config["web"]["redirect_uris"] == [
            "https://bridge.example.com/oauth/callback"
        ]
        kwargs = mock_flow_cls.from_client_config.call_args[1]
        assert kwargs["scopes"] == SCOPES
        assert kwargs["redirect_uri"] == "https://bridge.example.com/oauth/callback"

    @patch("gcontact_bridge.auth.google_auth.Flow")
    def test_exchange_code(self, mock_flow_cls, auth):
        """Test that the exchanged token pair becomes the API key."""
        mock_flow = mock_flow_cls.from_client_config.return_value
        mock_flow.credentials.token = "acc1"
        mock_flow.credentials.refresh_token = "ref1"

        assert auth.exchange_code("4/0Ab") == "acc1:ref1"
        mock_flow.fetch_token.assert_called_once_with(code="4/0Ab")

    @patch("gcontact_bridge.auth.google_auth.Flow")
    def test_exchange_code_failure(self, mock_flow_cls, auth):
        """Test that exchange failures raise AuthError."""
        mock_flow = mock_flow_cls.from_client_config.return_value
        mock_flow.fetch_token.side_effect = Exception("invalid_grant")

        with pytest.raises(AuthError, match="invalid_grant"):
            auth.exchange_code("4/0Ab")

    @patch("gcontact_bridge.auth.google_auth.Flow")
    def test_exchange_code_without_refresh_token(self, mock_flow_cls, auth):
        """Test that a missing refresh token raises AuthError."""
        mock_flow = mock_flow_cls.from_client_config.return_value
        mock_flow.credentials.token = "acc1"
        mock_flow.credentials.refresh_token = None

        with pytest.raises(AuthError):
            auth.exchange_code("4/0Ab")

    def test_exchange_empty_code(self, auth):
        """Test that an empty code is rejected."""
        with pytest.raises(AuthError, match="Missing authorization code"):
            auth.exchange_code("")
