from typing import Any

from jose import jwk as jose_jwk
from pydantic import Field

from apple_signin.schemas.base import BaseResponseSchema


class SigningKey(BaseResponseSchema):
    """
    Public signing key published by Apple.

    Wraps one JSON Web Key of Apple's key set, keeping the raw key so it
    can be handed to the JWT library as is.
    """

    kid: str
    alg: str | None = None
    use: str | None = None
    jwk: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_jwk(cls, key: dict[str, Any]) -> "SigningKey":
        """
        Build a signing key from a JSON Web Key dictionary.

        Args:
            key: JWK entry from Apple's key set

        Returns:
            SigningKey: The signing key

        Raises:
            ValueError: If the key has no kid
        """
        if not key.get("kid"):
            raise ValueError("JSON Web Key is missing 'kid'")

        return cls(kid=key["kid"], alg=key.get("alg"), use=key.get("use"), jwk=dict(key))

    def get_public_key(self) -> str:
        """
        Get the PEM encoded public key.

        Returns:
            str: The public key in PEM format

        Raises:
            jose.exceptions.JWKError: If the key cannot be constructed
        """
        key = jose_jwk.construct(self.jwk, self.alg)
        return key.to_pem().decode("utf-8")


class JsonWebKeySet(BaseResponseSchema):
    """JSON Web Key Set as served by https://appleid.apple.com/auth/keys"""

    keys: list[dict[str, Any]]

    def signing_keys(self) -> list[SigningKey]:
        """
        Keys usable to verify signatures.

        Keys flagged for another use or without a kid are skipped.
        """
        return [
            SigningKey.from_jwk(key)
            for key in self.keys
            if key.get("kid") and key.get("use", "sig") == "sig"
        ]
