from enum import StrEnum

from apple_signin.core.exceptions.base import AppException


class AppleSignInException(AppException):
    """
    Exception related to Sign in with Apple operations
    """

    def __init__(self, message, exception: Exception | None = None):
        super().__init__(message, exception)


class AppleSignInConfigurationException(AppleSignInException):
    """
    Exception raised when the client credentials or private key are missing or invalid
    """

    def __init__(
        self,
        message="Sign in with Apple configuration is missing or invalid",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleSignInSigningException(AppleSignInException):
    """
    Exception raised when the client secret cannot be signed
    """

    def __init__(
        self,
        message="Failed to sign Sign in with Apple client secret",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleSignInTransportException(AppleSignInException):
    """
    Exception raised when Apple cannot be reached
    """

    def __init__(
        self,
        message="Sign in with Apple connection error",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleSignInApiException(AppleSignInException):
    """
    Exception raised when Apple answers with a non-success status or an unexpected body
    """

    def __init__(
        self,
        message="Sign in with Apple request failed",
        exception: Exception | None = None,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ):
        super().__init__(message, exception)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class AppleSignInKeyResolutionException(AppleSignInException):
    """
    Exception raised when Apple's signing keys cannot be fetched or parsed
    """

    def __init__(
        self,
        message="Failed to resolve Apple signing key",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleSignInKeyNotFoundException(AppleSignInKeyResolutionException):
    """
    Exception raised when no Apple signing key matches the token's kid
    """

    def __init__(
        self,
        message="Apple signing key not found",
        exception: Exception | None = None,
        kid: str | None = None,
    ):
        super().__init__(message, exception)
        self.kid = kid


# =============================================================================
# Identity token verification
# =============================================================================


class TokenVerificationReason(StrEnum):
    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature-invalid"
    EXPIRED = "expired"
    ISSUER_MISMATCH = "issuer-mismatch"
    AUDIENCE_MISMATCH = "audience-mismatch"
    SUBJECT_MISMATCH = "subject-mismatch"
    NONCE_MISMATCH = "nonce-mismatch"


class AppleIdTokenVerificationException(AppleSignInException):
    """
    Exception raised when an Apple identity token fails verification
    """

    reason: TokenVerificationReason | None = None

    def __init__(
        self,
        message="Apple identity token verification failed",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleIdTokenMalformedException(AppleIdTokenVerificationException):
    reason = TokenVerificationReason.MALFORMED

    def __init__(
        self,
        message="Apple identity token is malformed",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleIdTokenInvalidSignatureException(AppleIdTokenVerificationException):
    reason = TokenVerificationReason.SIGNATURE_INVALID

    def __init__(
        self,
        message="Apple identity token signature is invalid",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleIdTokenExpiredException(AppleIdTokenVerificationException):
    reason = TokenVerificationReason.EXPIRED

    def __init__(
        self,
        message="Apple identity token has expired",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleIdTokenIssuerMismatchException(AppleIdTokenVerificationException):
    reason = TokenVerificationReason.ISSUER_MISMATCH

    def __init__(
        self,
        message="Apple identity token issuer mismatch",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleIdTokenAudienceMismatchException(AppleIdTokenVerificationException):
    reason = TokenVerificationReason.AUDIENCE_MISMATCH

    def __init__(
        self,
        message="Apple identity token audience mismatch",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleIdTokenSubjectMismatchException(AppleIdTokenVerificationException):
    reason = TokenVerificationReason.SUBJECT_MISMATCH

    def __init__(
        self,
        message="Apple identity token subject mismatch",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)


class AppleIdTokenNonceMismatchException(AppleIdTokenVerificationException):
    reason = TokenVerificationReason.NONCE_MISMATCH

    def __init__(
        self,
        message="Apple identity token nonce mismatch",
        exception: Exception | None = None,
    ):
        super().__init__(message, exception)
