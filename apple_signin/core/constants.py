class AppleEndpoint:
    """
    Registry of Sign in with Apple REST endpoints.

    Example:
        ```python
        from apple_signin.core.constants import AppleEndpoint

        response = await client.post(AppleEndpoint.TOKEN, data=form)
        ```
    """

    ISSUER = "https://appleid.apple.com"

    AUTHORIZE = f"{ISSUER}/auth/authorize"
    TOKEN = f"{ISSUER}/auth/token"
    REVOKE = f"{ISSUER}/auth/revoke"
    KEYS = f"{ISSUER}/auth/keys"


class ClientSecret:
    # Apple rejects client secrets that live longer than 6 months
    MAX_EXPIRATION_DURATION = 15777000

    ALGORITHM = "ES256"
    AUDIENCE = AppleEndpoint.ISSUER


class AuthorizationRequest:
    RESPONSE_TYPE = "code id_token"

    # Required by Apple whenever user information is requested
    RESPONSE_MODE_FORM_POST = "form_post"


class GrantType:
    AUTHORIZATION_CODE = "authorization_code"
    REFRESH_TOKEN = "refresh_token"


class TokenTypeHint:
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"


# Apple publishes RSA keys; ES256 is accepted for EC keys in the same key set
ID_TOKEN_ALGORITHMS = ("RS256", "ES256")
