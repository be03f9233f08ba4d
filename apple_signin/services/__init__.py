from .jwks import AppleKeySetClient, SigningKeyResolver
from .apple_sign_in import AppleSignIn

__all__ = [
    "AppleKeySetClient",
    "AppleSignIn",
    "SigningKeyResolver",
]
