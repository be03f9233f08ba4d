from .base import AppException
from .apple_sign_in import (
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

__all__ = [
    "AppException",
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
