from typing import TypedDict


class ClientSecretClaimsDict(TypedDict):
    """Claims signed into the client secret sent to Apple."""

    iss: str  # Team ID
    iat: int  # Issued at timestamp
    exp: int  # Expiration timestamp
    aud: str  # Always https://appleid.apple.com
    sub: str  # Service ID (client_id)


class TokenRequestDict(TypedDict, total=False):
    """Form body posted to Apple's token and revoke endpoints."""

    client_id: str
    client_secret: str
    grant_type: str
    code: str
    redirect_uri: str
    refresh_token: str
    token: str
    token_type_hint: str
