"""Sign in with Apple client."""

from apple_signin.core.exceptions import (
    AppleIdTokenAudienceMismatchException,
    AppleIdTokenExpiredException,
    AppleIdTokenInvalidSignatureException,
    AppleIdTokenIssuerMismatchException,
    AppleIdTokenMalformedException,
    AppleIdTokenNonceMismatchException,
    AppleIdTokenSubjectMismatchException,
    AppleIdTokenVerificationException,
    AppleSignInApiException,
    AppleSignInConfigurationException,
    AppleSignInException,
    AppleSignInKeyNotFoundException,
    AppleSignInKeyResolutionException,
    AppleSignInSigningException,
    AppleSignInTransportException,
    TokenVerificationReason,
)
from apple_signin.schemas import (
    AccessTokenResponse,
    AppleIdTokenClaims,
    AppleSignInOptions,
    RefreshTokenResponse,
    SigningKey,
)
from apple_signin.services import AppleKeySetClient, AppleSignIn, SigningKeyResolver

__version__ = "1.0.0"

__all__ = [
    "AppleSignIn",
    "AppleSignInOptions",
    "AppleKeySetClient",
    "SigningKeyResolver",
    "SigningKey",
    "AccessTokenResponse",
    "RefreshTokenResponse",
    "AppleIdTokenClaims",
    "AppleSignInException",
    "AppleSignInConfigurationException",
    "AppleSignInSigningException",
    "AppleSignInTransportException",
    "AppleSignInApiException",
    "AppleSignInKeyResolutionException",
    "AppleSignInKeyNotFoundException",
    "TokenVerificationReason",
    "AppleIdTokenVerificationException",
    "AppleIdTokenMalformedException",
    "AppleIdTokenInvalidSignatureException",
    "AppleIdTokenExpiredException",
    "AppleIdTokenIssuerMismatchException",
    "AppleIdTokenAudienceMismatchException",
    "AppleIdTokenSubjectMismatchException",
    "AppleIdTokenNonceMismatchException",
]
