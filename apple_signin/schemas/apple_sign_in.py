from pathlib import Path

from pydantic import ConfigDict, Field, field_validator

from apple_signin.schemas.base import BaseResponseSchema, BaseSchema


class AppleSignInOptions(BaseSchema):
    """
    Sign in with Apple client options.

    Exactly one of ``private_key`` and ``private_key_path`` must be set,
    which is checked when the client is constructed.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    client_id: str = Field(
        ...,
        description="Apple Service ID, e.g. com.my-company.my-app",
    )
    team_id: str = Field(
        ...,
        description="Apple Developer Team ID (10-character string)",
    )
    key_identifier: str = Field(
        ...,
        description="Identifier of the private key registered with Apple",
    )
    private_key: str | None = Field(
        default=None,
        description="Content of the .p8 private key, preferred when injected from the environment",
    )
    private_key_path: Path | None = Field(
        default=None,
        description="Path to the .p8 private key file, the extension doesn't matter",
    )


class AppleSignInCredentials(BaseSchema):
    """
    Resolved Sign in with Apple credentials.

    Built once by the client from ``AppleSignInOptions`` after the
    private key has been read and validated.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    client_id: str
    team_id: str
    key_identifier: str
    private_key: str = Field(..., repr=False)


class AccessTokenResponse(BaseResponseSchema):
    """
    Token response returned by Apple for the authorization code grant.

    https://developer.apple.com/documentation/sign_in_with_apple/tokenresponse
    """

    access_token: str  # Reserved for future use by Apple
    expires_in: int  # seconds until the access token expires
    id_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenResponse(BaseResponseSchema):
    """Token response returned by Apple for the refresh token grant"""

    access_token: str
    expires_in: int
    token_type: str = "bearer"


class AppleTokenErrorResponse(BaseResponseSchema):
    """Error body returned by Apple's token and revoke endpoints"""

    error: str | None = None
    error_description: str | None = None


class AppleIdTokenClaims(BaseResponseSchema):
    """
    Decoded and verified payload of an Apple identity token.

    Apple sends ``email_verified`` and ``is_private_email`` either as
    booleans or as the strings "true"/"false". Claims not listed here
    are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    iss: str
    sub: str  # Apple's unique user identifier, stable across devices
    aud: str | list[str]
    exp: int
    iat: int
    c_hash: str | None = None
    at_hash: str | None = None
    nonce: str | None = None
    nonce_supported: bool | None = None
    email: str | None = None  # First login only, may be a private relay address
    email_verified: bool | None = None
    is_private_email: bool | None = None
    auth_time: int | None = None
    real_user_status: int | None = None
    transfer_sub: str | None = None

    @field_validator("email_verified", "is_private_email", "nonce_supported", mode="before")
    @classmethod
    def parse_apple_bool_string(cls, v: str | bool | None) -> bool | None:
        if v is None or isinstance(v, bool):
            return v

        return str(v).lower() == "true"
