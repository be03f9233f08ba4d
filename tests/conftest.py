import time
from pathlib import Path
from typing import Any, Callable

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from faker import Faker
from jose import jwk, jwt

from apple_signin.core.constants import AppleEndpoint
from apple_signin.core.exceptions import AppleSignInKeyNotFoundException
from apple_signin.schemas import AppleSignInOptions, SigningKey
from apple_signin.services.apple_sign_in import AppleSignIn


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def faker_instance() -> Faker:
    """Create a Faker instance for test data generation."""
    return Faker()


# ==================== Key Fixtures ====================


def _private_pem(key) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def _public_pem(key) -> str:
    return (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )


@pytest.fixture(scope="session")
def ec_private_key():
    """P-256 key used to sign client secrets."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_private_key_pem(ec_private_key) -> str:
    return _private_pem(ec_private_key)


@pytest.fixture(scope="session")
def ec_public_key_pem(ec_private_key) -> str:
    return _public_pem(ec_private_key)


@pytest.fixture(scope="session")
def apple_rsa_private_key():
    """RSA key standing in for Apple's identity token signing key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def apple_rsa_private_key_pem(apple_rsa_private_key) -> str:
    return _private_pem(apple_rsa_private_key)


@pytest.fixture(scope="session")
def other_rsa_private_key_pem() -> str:
    """RSA key that Apple never published."""
    return _private_pem(rsa.generate_private_key(public_exponent=65537, key_size=2048))


@pytest.fixture(scope="session")
def apple_kid() -> str:
    return "W6WcOKB"


@pytest.fixture(scope="session")
def apple_jwk(apple_rsa_private_key, apple_kid) -> dict[str, Any]:
    """Public JWK as published in Apple's key set."""
    public_jwk = jwk.construct(_public_pem(apple_rsa_private_key), "RS256").to_dict()
    return {**public_jwk, "kid": apple_kid, "use": "sig", "alg": "RS256"}


@pytest.fixture(scope="session")
def apple_key_set(apple_jwk) -> dict[str, Any]:
    return {"keys": [apple_jwk]}


# ==================== Client Fixtures ====================


@pytest.fixture
def apple_sign_in_options(faker_instance: Faker, ec_private_key_pem: str) -> AppleSignInOptions:
    """Create Sign in with Apple options with an inline private key."""
    return AppleSignInOptions(
        client_id=f"com.{faker_instance.word()}.{faker_instance.word()}.web",
        team_id=faker_instance.lexify(text="??????????", letters="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"),
        key_identifier=faker_instance.lexify(
            text="??????????", letters="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
        ),
        private_key=ec_private_key_pem,
    )


@pytest.fixture
def private_key_file(tmp_path: Path, ec_private_key_pem: str) -> Path:
    key_path = tmp_path / "AuthKey_TEST.p8"
    key_path.write_text(ec_private_key_pem)
    return key_path


class StaticKeyResolver:
    """Resolves signing keys from a fixed key set."""

    def __init__(self, keys: list[dict[str, Any]]):
        self.keys = {key["kid"]: SigningKey.from_jwk(key) for key in keys}
        self.requested: list[str] = []

    async def get_signing_key(self, kid: str) -> SigningKey:
        self.requested.append(kid)

        if kid not in self.keys:
            raise AppleSignInKeyNotFoundException(kid=kid)

        return self.keys[kid]


@pytest.fixture
def static_key_resolver() -> type[StaticKeyResolver]:
    return StaticKeyResolver


@pytest.fixture
def key_resolver(apple_jwk) -> StaticKeyResolver:
    return StaticKeyResolver([apple_jwk])


@pytest.fixture
def apple_sign_in(
    apple_sign_in_options: AppleSignInOptions, key_resolver: StaticKeyResolver
) -> AppleSignIn:
    return AppleSignIn(options=apple_sign_in_options, key_resolver=key_resolver)


# ==================== Identity Token Fixtures ====================


@pytest.fixture
def id_token_claims(apple_sign_in_options: AppleSignInOptions, faker_instance: Faker) -> dict:
    now = int(time.time())
    return {
        "iss": AppleEndpoint.ISSUER,
        "aud": apple_sign_in_options.client_id,
        "exp": now + 600,
        "iat": now,
        "sub": f"001999.{faker_instance.md5()}.1909",
        "c_hash": faker_instance.pystr(min_chars=22, max_chars=22),
        "nonce": faker_instance.uuid4(),
        "nonce_supported": True,
        "email": faker_instance.email(),
        "email_verified": "true",
        "is_private_email": "false",
        "auth_time": now,
    }


@pytest.fixture
def make_id_token(
    apple_rsa_private_key_pem: str, apple_kid: str, id_token_claims: dict
) -> Callable[..., str]:
    """Sign identity tokens the way Apple does, with optional claim overrides."""

    def _make(
        key: str | None = None,
        kid: str | None = None,
        algorithm: str = "RS256",
        **overrides: Any,
    ) -> str:
        claims = {**id_token_claims, **overrides}
        claims = {name: value for name, value in claims.items() if value is not None}
        return jwt.encode(
            claims,
            key or apple_rsa_private_key_pem,
            algorithm=algorithm,
            headers={"kid": kid or apple_kid},
        )

    return _make
