import time
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any, TypeVar
from urllib.parse import quote, urlencode

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_private_key
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError, JWTClaimsError, JWTError
from loguru import logger
from pydantic import ValidationError

from apple_signin.core.config import settings
from apple_signin.core.constants import (
    ID_TOKEN_ALGORITHMS,
    AppleEndpoint,
    AuthorizationRequest,
    ClientSecret,
    GrantType,
    TokenTypeHint,
)
from apple_signin.core.exceptions import (
    AppleIdTokenAudienceMismatchException,
    AppleIdTokenExpiredException,
    AppleIdTokenInvalidSignatureException,
    AppleIdTokenIssuerMismatchException,
    AppleIdTokenMalformedException,
    AppleIdTokenNonceMismatchException,
    AppleIdTokenSubjectMismatchException,
    AppleSignInApiException,
    AppleSignInConfigurationException,
    AppleSignInSigningException,
    AppleSignInTransportException,
)
from apple_signin.core.types import ClientSecretClaimsDict, TokenRequestDict
from apple_signin.schemas import (
    AccessTokenResponse,
    AppleIdTokenClaims,
    AppleSignInCredentials,
    AppleSignInOptions,
    AppleTokenErrorResponse,
    RefreshTokenResponse,
    SigningKey,
)
from apple_signin.services.jwks import AppleKeySetClient, SigningKeyResolver

TokenResponseT = TypeVar("TokenResponseT", AccessTokenResponse, RefreshTokenResponse)


class AppleSignIn:
    """
    Sign in with Apple client.

    Builds authorization URLs, mints client secrets, talks to Apple's
    token endpoint and verifies identity tokens against Apple's
    published signing keys.

    The configuration is resolved once in the constructor and never
    mutated, so a single instance can serve concurrent requests.
    """

    def __init__(
        self,
        options: AppleSignInOptions | None = None,
        key_resolver: SigningKeyResolver | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Sign in with Apple client.

        Args:
            options: Client options, read from settings when omitted
            key_resolver: Resolver of Apple's signing keys, defaults to AppleKeySetClient
            http_client: Optional HTTP client, never closed by this class

        Raises:
            AppleSignInConfigurationException: If the options or private key are invalid
        """
        if options is None:
            options = settings.apple_sign_in_options

        self._credentials = self._load_credentials(options)
        self._http_client = http_client
        self._key_resolver = key_resolver or AppleKeySetClient(http_client=http_client)

        logger.info(f"Sign in with Apple client initialized for {self.client_id}")

    @property
    def credentials(self) -> AppleSignInCredentials:
        return self._credentials

    @property
    def client_id(self) -> str:
        return self._credentials.client_id

    @property
    def team_id(self) -> str:
        return self._credentials.team_id

    @property
    def key_identifier(self) -> str:
        return self._credentials.key_identifier

    @property
    def key_resolver(self) -> SigningKeyResolver:
        return self._key_resolver

    @staticmethod
    def _load_credentials(options: AppleSignInOptions) -> AppleSignInCredentials:
        """
        Read and validate the private key.

        Args:
            options: Client options

        Returns:
            AppleSignInCredentials: The resolved credentials

        Raises:
            AppleSignInConfigurationException: If the private key is missing, unreadable or not ES256
        """
        if options.private_key is not None and options.private_key_path is not None:
            logger.error("Both private_key and private_key_path are set")
            raise AppleSignInConfigurationException(
                "Provide either private_key or private_key_path, not both"
            )

        if options.private_key_path is not None:
            try:
                private_key = options.private_key_path.read_text()
            except OSError as err:
                logger.error("Sign in with Apple private key file could not be read")
                logger.debug(str(err))
                raise AppleSignInConfigurationException(
                    f"Unable to read private key file {options.private_key_path}", err
                ) from err
        elif options.private_key is not None:
            private_key = options.private_key
        else:
            logger.error("Sign in with Apple private key is missing")
            raise AppleSignInConfigurationException(
                "Either private_key or private_key_path is required"
            )

        try:
            key = load_pem_private_key(private_key.encode("utf-8"), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as err:
            logger.error("Sign in with Apple private key is not a valid PEM private key")
            logger.debug(str(err))
            raise AppleSignInConfigurationException(
                "Private key is not a valid PEM private key", err
            ) from err

        if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(
            key.curve, ec.SECP256R1
        ):
            logger.error("Sign in with Apple private key is not a P-256 EC key")
            raise AppleSignInConfigurationException(
                f"Private key must be a P-256 EC key to sign {ClientSecret.ALGORITHM} client secrets"
            )

        return AppleSignInCredentials(
            client_id=options.client_id,
            team_id=options.team_id,
            key_identifier=options.key_identifier,
            private_key=private_key,
        )

    # ==================== Authorization ====================

    def get_authorization_url(
        self,
        redirect_uri: str,
        scope: Iterable[str] | None = None,
        state: str | None = None,
        nonce: str | None = None,
    ) -> str:
        """
        Generate a URL that redirects the user to begin the Sign in with Apple flow.

        Args:
            redirect_uri: The destination URI registered with Apple
            scope: Requested user information, "name" and/or "email"
            state: Unguessable value used to prevent CSRF, usually a UUID
            nonce: Value associating the client session with the identity token

        Returns:
            str: The authorization URL
        """
        params: dict[str, str] = {
            "response_type": AuthorizationRequest.RESPONSE_TYPE,
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
        }

        if state is not None:
            params["state"] = state

        if nonce is not None:
            params["nonce"] = nonce

        scopes = list(scope or [])

        if scopes:
            # Apple requires a form POST callback when user information is requested
            params["response_mode"] = AuthorizationRequest.RESPONSE_MODE_FORM_POST
            params["scope"] = " ".join(scopes)

        # Scopes must be separated by %20, Apple does not accept "+"
        return f"{AppleEndpoint.AUTHORIZE}?{urlencode(params, quote_via=quote)}"

    # ==================== Client secret ====================

    def create_client_secret(
        self,
        expiration_duration: int = ClientSecret.MAX_EXPIRATION_DURATION,
    ) -> str:
        """
        Generate the client secret sent to Apple's token endpoint.

        The secret is a JWT signed with the configured private key.

        Args:
            expiration_duration: Validity in seconds, at most 15777000 (6 months)

        Returns:
            str: The signed client secret

        Raises:
            AppleSignInConfigurationException: If expiration_duration is out of range
            AppleSignInSigningException: If the secret cannot be signed
        """
        if expiration_duration <= 0 or expiration_duration > ClientSecret.MAX_EXPIRATION_DURATION:
            logger.error(f"Invalid client secret expiration duration: {expiration_duration}")
            raise AppleSignInConfigurationException(
                f"expiration_duration must be between 1 and "
                f"{ClientSecret.MAX_EXPIRATION_DURATION} seconds"
            )

        issued_at = int(time.time())
        claims: ClientSecretClaimsDict = {
            "iss": self.team_id,
            "iat": issued_at,
            "exp": issued_at + expiration_duration,
            "aud": ClientSecret.AUDIENCE,
            "sub": self.client_id,
        }

        try:
            return jwt.encode(
                dict(claims),
                self._credentials.private_key,
                algorithm=ClientSecret.ALGORITHM,
                headers={"kid": self.key_identifier},
            )
        except JOSEError as err:
            logger.error("Error signing Sign in with Apple client secret")
            logger.debug(str(err))
            raise AppleSignInSigningException(exception=err) from err

    # ==================== Tokens ====================

    async def get_authorization_token(
        self,
        client_secret: str,
        code: str,
        redirect_uri: str | None = None,
    ) -> AccessTokenResponse:
        """
        Exchange an authorization code for tokens.

        Args:
            client_secret: Secret generated by create_client_secret()
            code: Single-use authorization code, valid for five minutes
            redirect_uri: The destination URI the code was originally sent to

        Returns:
            AccessTokenResponse: Access, refresh and identity tokens

        Raises:
            AppleSignInApiException: If Apple rejects the request
            AppleSignInTransportException: If Apple cannot be reached
        """
        form: TokenRequestDict = {
            "client_id": self.client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": GrantType.AUTHORIZATION_CODE,
        }

        if redirect_uri is not None:
            form["redirect_uri"] = redirect_uri

        payload = await self._post_form(AppleEndpoint.TOKEN, form)
        return self._parse_response(AccessTokenResponse, payload)

    async def refresh_authorization_token(
        self,
        client_secret: str,
        refresh_token: str,
    ) -> RefreshTokenResponse:
        """
        Get a new access token using a refresh token.

        Args:
            client_secret: Secret generated by create_client_secret()
            refresh_token: The refresh token received during the authorization request

        Returns:
            RefreshTokenResponse: The refreshed access token

        Raises:
            AppleSignInApiException: If Apple rejects the request
            AppleSignInTransportException: If Apple cannot be reached
        """
        form: TokenRequestDict = {
            "client_id": self.client_id,
            "client_secret": client_secret,
            "grant_type": GrantType.REFRESH_TOKEN,
            "refresh_token": refresh_token,
        }

        payload = await self._post_form(AppleEndpoint.TOKEN, form)
        return self._parse_response(RefreshTokenResponse, payload)

    async def revoke_authorization_token(
        self,
        client_secret: str,
        token: str,
        token_type_hint: str = TokenTypeHint.ACCESS_TOKEN,
    ) -> None:
        """
        Invalidate an access or refresh token.

        Args:
            client_secret: Secret generated by create_client_secret()
            token: The token to revoke
            token_type_hint: "access_token" or "refresh_token"

        Raises:
            AppleSignInApiException: If Apple rejects the request
            AppleSignInTransportException: If Apple cannot be reached
        """
        form: TokenRequestDict = {
            "client_id": self.client_id,
            "client_secret": client_secret,
            "token": token,
            "token_type_hint": token_type_hint,
        }

        await self._post_form(AppleEndpoint.REVOKE, form, expect_body=False)
        logger.info(f"Revoked Sign in with Apple {token_type_hint}")

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return

        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            yield client

    async def _post_form(
        self,
        url: str,
        form: TokenRequestDict,
        expect_body: bool = True,
    ) -> dict[str, Any]:
        try:
            async with self._session() as client:
                response = await client.post(
                    url,
                    data=dict(form),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as err:
            logger.error(f"Error calling {url}, connection error")
            logger.debug(str(err))
            raise AppleSignInTransportException(exception=err) from err

        if not response.is_success:
            raise self._api_error(url, response)

        if not expect_body:
            return {}

        try:
            payload = response.json()
        except ValueError as err:
            logger.error(f"Error calling {url}, response is not JSON")
            logger.debug(str(err))
            raise AppleSignInApiException(
                "Unexpected response from Apple", err, status_code=response.status_code
            ) from err

        if not isinstance(payload, dict):
            logger.error(f"Error calling {url}, response is not a JSON object")
            raise AppleSignInApiException(
                "Unexpected response from Apple", status_code=response.status_code
            )

        return payload

    @staticmethod
    def _api_error(url: str, response: httpx.Response) -> AppleSignInApiException:
        try:
            error = AppleTokenErrorResponse.model_validate(response.json())
        except ValueError:
            error = AppleTokenErrorResponse()

        logger.error(
            f"Error calling {url}, status {response.status_code}, error {error.error}"
        )
        logger.debug(str(error.error_description))

        message = f"Apple returned HTTP {response.status_code}"

        if error.error:
            message = f"{message}: {error.error}"

        return AppleSignInApiException(
            message,
            status_code=response.status_code,
            error=error.error,
            error_description=error.error_description,
        )

    @staticmethod
    def _parse_response(model: type[TokenResponseT], payload: dict[str, Any]) -> TokenResponseT:
        try:
            return model.model_validate(payload)
        except ValidationError as err:
            logger.error(f"Unexpected {model.__name__} from Apple")
            logger.debug(str(err))
            raise AppleSignInApiException("Unexpected response from Apple", err) from err

    # ==================== Identity token ====================

    async def get_apple_signing_key(self, kid: str) -> SigningKey:
        """
        Get Apple's public key with the given key ID.

        Args:
            kid: Key ID from the identity token header

        Returns:
            SigningKey: The matching signing key

        Raises:
            AppleSignInKeyNotFoundException: If no key matches the kid
            AppleSignInKeyResolutionException: If the key set cannot be fetched
        """
        return await self._key_resolver.get_signing_key(kid)

    async def verify_id_token(
        self,
        id_token: str,
        nonce: str | None = None,
        ignore_expiration: bool = False,
        subject: str | None = None,
    ) -> AppleIdTokenClaims:
        """
        Verify an identity token issued by Apple.

        The token header's kid selects Apple's signing key. The signature,
        expiration, issuer, audience and, when given, subject and nonce are
        checked in that order.

        Args:
            id_token: The identity token JWT
            nonce: Expected nonce, compared exactly with the token's nonce claim
            ignore_expiration: Accept tokens whose exp is in the past
            subject: Expected user identifier (sub claim)

        Returns:
            AppleIdTokenClaims: The verified claims

        Raises:
            AppleIdTokenVerificationException: A subclass naming the failed check
            AppleSignInKeyResolutionException: If the signing key cannot be resolved
        """
        try:
            header = jwt.get_unverified_header(id_token)
            jwt.get_unverified_claims(id_token)
        except JWTError as err:
            logger.warning("Apple identity token could not be decoded")
            logger.debug(str(err))
            raise AppleIdTokenMalformedException(exception=err) from err

        kid = header.get("kid")

        if not isinstance(kid, str) or not kid:
            logger.warning("Apple identity token header has no kid")
            raise AppleIdTokenMalformedException("Apple identity token header is missing 'kid'")

        signing_key = await self.get_apple_signing_key(kid)

        try:
            payload = jwt.decode(
                id_token,
                signing_key.jwk,
                algorithms=list(ID_TOKEN_ALGORITHMS),
                options={
                    "verify_exp": not ignore_expiration,
                    "verify_aud": False,
                    "verify_iss": False,
                    "verify_sub": False,
                    "verify_jti": False,
                    "verify_at_hash": False,
                },
            )
        except ExpiredSignatureError as err:
            logger.warning("Apple identity token has expired")
            raise AppleIdTokenExpiredException(exception=err) from err
        except JWTClaimsError as err:
            logger.warning("Apple identity token has invalid registered claims")
            logger.debug(str(err))
            raise AppleIdTokenMalformedException(exception=err) from err
        except JOSEError as err:
            logger.warning(f"Apple identity token signature verification failed for kid {kid}")
            logger.debug(str(err))
            raise AppleIdTokenInvalidSignatureException(exception=err) from err

        self._validate_claims(payload, nonce=nonce, subject=subject)

        try:
            return AppleIdTokenClaims.model_validate(payload)
        except ValidationError as err:
            logger.warning("Apple identity token is missing required claims")
            logger.debug(str(err))
            raise AppleIdTokenMalformedException(exception=err) from err

    def _validate_claims(
        self,
        payload: dict[str, Any],
        nonce: str | None,
        subject: str | None,
    ) -> None:
        if payload.get("iss") != AppleEndpoint.ISSUER:
            logger.warning(f"Apple identity token issuer mismatch: {payload.get('iss')}")
            raise AppleIdTokenIssuerMismatchException(
                f"Expected issuer {AppleEndpoint.ISSUER}, got {payload.get('iss')}"
            )

        audience = payload.get("aud")
        audiences = audience if isinstance(audience, list) else [audience]

        if self.client_id not in audiences:
            logger.warning(f"Apple identity token audience mismatch: {audience}")
            raise AppleIdTokenAudienceMismatchException(
                f"Expected audience {self.client_id}, got {audience}"
            )

        if subject is not None and payload.get("sub") != subject:
            logger.warning("Apple identity token subject mismatch")
            raise AppleIdTokenSubjectMismatchException()

        if nonce is not None and payload.get("nonce") != nonce:
            logger.warning("Apple identity token nonce mismatch")
            raise AppleIdTokenNonceMismatchException()
