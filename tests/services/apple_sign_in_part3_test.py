from typing import Callable
from urllib.parse import parse_qs

import httpx
import pytest

from apple_signin.core.constants import AppleEndpoint
from apple_signin.core.exceptions import (
    AppleSignInApiException,
    AppleSignInTransportException,
)
from apple_signin.schemas import AccessTokenResponse, AppleSignInOptions, RefreshTokenResponse
from apple_signin.services.apple_sign_in import AppleSignIn

# ==================== PART 3: Token Exchange, Refresh and Revocation ====================


class RecordingTransport:
    """Mock transport that records requests and answers with a fixed response."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def form(self) -> dict[str, str]:
        body = parse_qs(self.requests[-1].content.decode("utf-8"))
        return {name: values[0] for name, values in body.items()}


def _client(
    options: AppleSignInOptions, key_resolver, transport: RecordingTransport
) -> AppleSignIn:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    return AppleSignIn(options=options, key_resolver=key_resolver, http_client=http_client)


@pytest.fixture
def access_token_payload(faker_instance) -> dict:
    return {
        "access_token": faker_instance.sha256(),
        "expires_in": 3600,
        "id_token": f"eyJraWQ.{faker_instance.sha256()}.{faker_instance.sha256()}",
        "refresh_token": faker_instance.sha256(),
        "token_type": "bearer",
    }


@pytest.mark.anyio
class TestGetAuthorizationToken:
    """Test the authorization code grant."""

    async def test_exchange_posts_form(
        self, apple_sign_in_options, key_resolver, access_token_payload: dict
    ):
        """Test the exchange posts the expected form fields."""
        transport = RecordingTransport(lambda _: httpx.Response(200, json=access_token_payload))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        result = await apple_sign_in.get_authorization_token(
            "client-secret", "auth-code", redirect_uri="https://example.com/callback"
        )

        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == AppleEndpoint.TOKEN
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert transport.form == {
            "client_id": apple_sign_in_options.client_id,
            "client_secret": "client-secret",
            "code": "auth-code",
            "grant_type": "authorization_code",
            "redirect_uri": "https://example.com/callback",
        }
        assert result == AccessTokenResponse(**access_token_payload)

    async def test_exchange_without_redirect_uri(
        self, apple_sign_in_options, key_resolver, access_token_payload: dict
    ):
        """Test redirect_uri is omitted when not given."""
        transport = RecordingTransport(lambda _: httpx.Response(200, json=access_token_payload))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        await apple_sign_in.get_authorization_token("client-secret", "auth-code")

        assert "redirect_uri" not in transport.form

    async def test_exchange_ignores_unknown_response_fields(
        self, apple_sign_in_options, key_resolver, access_token_payload: dict
    ):
        """Test new fields in Apple's response do not break parsing."""
        payload = {**access_token_payload, "scope": "name email"}
        transport = RecordingTransport(lambda _: httpx.Response(200, json=payload))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        result = await apple_sign_in.get_authorization_token("client-secret", "auth-code")

        assert result.access_token == access_token_payload["access_token"]

    async def test_exchange_error_response(self, apple_sign_in_options, key_resolver):
        """Test Apple's error payload is carried by the API exception."""
        transport = RecordingTransport(
            lambda _: httpx.Response(
                400,
                json={
                    "error": "invalid_grant",
                    "error_description": "The code has expired or has been revoked.",
                },
            )
        )
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        with pytest.raises(AppleSignInApiException) as exc_info:
            await apple_sign_in.get_authorization_token("client-secret", "auth-code")

        assert exc_info.value.status_code == 400
        assert exc_info.value.error == "invalid_grant"
        assert exc_info.value.error_description == "The code has expired or has been revoked."
        assert "invalid_grant" in str(exc_info.value)
        assert len(transport.requests) == 1

    async def test_exchange_error_without_json_body(self, apple_sign_in_options, key_resolver):
        """Test non-JSON error bodies still raise the API exception."""
        transport = RecordingTransport(lambda _: httpx.Response(503, text="Service Unavailable"))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        with pytest.raises(AppleSignInApiException) as exc_info:
            await apple_sign_in.get_authorization_token("client-secret", "auth-code")

        assert exc_info.value.status_code == 503
        assert exc_info.value.error is None

    async def test_exchange_unexpected_success_body(self, apple_sign_in_options, key_resolver):
        """Test a 200 response missing token fields raises the API exception."""
        transport = RecordingTransport(lambda _: httpx.Response(200, json={"foo": "bar"}))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        with pytest.raises(AppleSignInApiException):
            await apple_sign_in.get_authorization_token("client-secret", "auth-code")

    async def test_exchange_non_json_success_body(self, apple_sign_in_options, key_resolver):
        """Test a 200 response that is not JSON raises the API exception."""
        transport = RecordingTransport(lambda _: httpx.Response(200, text="<html></html>"))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        with pytest.raises(AppleSignInApiException) as exc_info:
            await apple_sign_in.get_authorization_token("client-secret", "auth-code")

        assert exc_info.value.status_code == 200

    async def test_exchange_connection_error(self, apple_sign_in_options, key_resolver):
        """Test network failures raise the transport exception."""

        def _fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        transport = RecordingTransport(_fail)
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        with pytest.raises(AppleSignInTransportException) as exc_info:
            await apple_sign_in.get_authorization_token("client-secret", "auth-code")

        assert isinstance(exc_info.value.exception, httpx.ConnectError)
        assert len(transport.requests) == 1


@pytest.mark.anyio
class TestRefreshAuthorizationToken:
    """Test the refresh token grant."""

    async def test_refresh_posts_form(self, apple_sign_in_options, key_resolver):
        """Test the refresh posts the expected form fields."""
        payload = {"access_token": "new-access-token", "expires_in": 3600, "token_type": "bearer"}
        transport = RecordingTransport(lambda _: httpx.Response(200, json=payload))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        result = await apple_sign_in.refresh_authorization_token("client-secret", "refresh-token")

        assert str(transport.requests[0].url) == AppleEndpoint.TOKEN
        assert transport.form == {
            "client_id": apple_sign_in_options.client_id,
            "client_secret": "client-secret",
            "grant_type": "refresh_token",
            "refresh_token": "refresh-token",
        }
        assert result == RefreshTokenResponse(**payload)

    async def test_refresh_error_response(self, apple_sign_in_options, key_resolver):
        """Test refresh failures raise the API exception."""
        transport = RecordingTransport(
            lambda _: httpx.Response(400, json={"error": "invalid_client"})
        )
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        with pytest.raises(AppleSignInApiException) as exc_info:
            await apple_sign_in.refresh_authorization_token("client-secret", "refresh-token")

        assert exc_info.value.error == "invalid_client"

    async def test_refresh_timeout(self, apple_sign_in_options, key_resolver):
        """Test timeouts raise the transport exception."""

        def _timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("Timed out", request=request)

        apple_sign_in = _client(apple_sign_in_options, key_resolver, RecordingTransport(_timeout))

        with pytest.raises(AppleSignInTransportException):
            await apple_sign_in.refresh_authorization_token("client-secret", "refresh-token")


@pytest.mark.anyio
class TestRevokeAuthorizationToken:
    """Test token revocation."""

    async def test_revoke_posts_form(self, apple_sign_in_options, key_resolver):
        """Test revocation posts to the revoke endpoint."""
        transport = RecordingTransport(lambda _: httpx.Response(200))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        result = await apple_sign_in.revoke_authorization_token(
            "client-secret", "refresh-token", token_type_hint="refresh_token"
        )

        assert result is None
        assert str(transport.requests[0].url) == AppleEndpoint.REVOKE
        assert transport.form == {
            "client_id": apple_sign_in_options.client_id,
            "client_secret": "client-secret",
            "token": "refresh-token",
            "token_type_hint": "refresh_token",
        }

    async def test_revoke_defaults_to_access_token_hint(self, apple_sign_in_options, key_resolver):
        """Test the token type hint defaults to access_token."""
        transport = RecordingTransport(lambda _: httpx.Response(200))
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        await apple_sign_in.revoke_authorization_token("client-secret", "access-token")

        assert transport.form["token_type_hint"] == "access_token"

    async def test_revoke_error_response(self, apple_sign_in_options, key_resolver):
        """Test revocation failures raise the API exception."""
        transport = RecordingTransport(
            lambda _: httpx.Response(400, json={"error": "unsupported_token_type"})
        )
        apple_sign_in = _client(apple_sign_in_options, key_resolver, transport)

        with pytest.raises(AppleSignInApiException) as exc_info:
            await apple_sign_in.revoke_authorization_token("client-secret", "access-token")

        assert exc_info.value.error == "unsupported_token_type"
