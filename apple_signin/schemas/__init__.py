from .base import BaseSchema, BaseResponseSchema
from .apple_sign_in import (
    AccessTokenResponse,
    AppleIdTokenClaims,
    AppleSignInCredentials,
    AppleSignInOptions,
    AppleTokenErrorResponse,
    RefreshTokenResponse,
)
from .jwks import JsonWebKeySet, SigningKey

__all__ = [
    "BaseSchema",
    "BaseResponseSchema",
    "AppleSignInOptions",
    "AppleSignInCredentials",
    "AccessTokenResponse",
    "RefreshTokenResponse",
    "AppleTokenErrorResponse",
    "AppleIdTokenClaims",
    "JsonWebKeySet",
    "SigningKey",
]
