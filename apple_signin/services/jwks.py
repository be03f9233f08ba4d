import asyncio
import time
from typing import Protocol, runtime_checkable

import httpx
from loguru import logger
from pydantic import ValidationError

from apple_signin.core.config import settings
from apple_signin.core.exceptions import (
    AppleSignInKeyNotFoundException,
    AppleSignInKeyResolutionException,
)
from apple_signin.schemas import JsonWebKeySet, SigningKey


@runtime_checkable
class SigningKeyResolver(Protocol):
    """
    Resolves the public key Apple used to sign a token.

    Any object with a matching ``get_signing_key`` coroutine can be
    injected into ``AppleSignIn``, e.g. a static key set in tests.
    """

    async def get_signing_key(self, kid: str) -> SigningKey:
        """
        Get the signing key with the given key ID.

        Raises:
            AppleSignInKeyNotFoundException: If no key matches the kid
            AppleSignInKeyResolutionException: If the key set cannot be fetched
        """
        ...


class AppleKeySetClient:
    """
    JSON Web Key Set client for Apple's published signing keys.

    Keys are cached in memory for ``cache_ttl`` seconds. An unknown kid
    triggers one refetch so rotated keys are picked up without waiting
    for the cache to expire.
    """

    def __init__(
        self,
        jwks_uri: str | None = None,
        cache_ttl: int | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize the key set client.

        Args:
            jwks_uri: Key set URL, defaults to settings.jwks_url
            cache_ttl: Cache TTL in seconds, defaults to settings.jwks_cache_ttl
            http_client: Optional HTTP client, never closed by this class
            timeout: Request timeout in seconds when no client is given
        """
        self.jwks_uri = jwks_uri or settings.jwks_url
        self.cache_ttl = settings.jwks_cache_ttl if cache_ttl is None else cache_ttl
        self.timeout = settings.http_timeout if timeout is None else timeout
        self._http_client = http_client
        self._keys: dict[str, SigningKey] = {}
        self._fetched_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def is_cache_fresh(self) -> bool:
        if self._fetched_at is None:
            return False

        return (time.monotonic() - self._fetched_at) < self.cache_ttl

    def clear_cache(self) -> None:
        """Drop all cached keys."""
        self._keys = {}
        self._fetched_at = None

    async def get_signing_keys(self, force_refresh: bool = False) -> list[SigningKey]:
        """
        Get all of Apple's signing keys, using the cache when available.

        Args:
            force_refresh: If True, bypass the cache and fetch fresh keys

        Returns:
            list[SigningKey]: The signing keys

        Raises:
            AppleSignInKeyResolutionException: If the key set cannot be fetched or parsed
        """
        async with self._lock:
            if force_refresh or not self.is_cache_fresh:
                keys = await self._fetch_signing_keys()
                self._keys = {key.kid: key for key in keys}
                self._fetched_at = time.monotonic()
                logger.info(f"Refreshed Apple signing keys, {len(keys)} key(s) available")

            return list(self._keys.values())

    async def get_signing_key(self, kid: str) -> SigningKey:
        """
        Get the signing key with the given key ID.

        Args:
            kid: Key ID from the token header

        Returns:
            SigningKey: The matching signing key

        Raises:
            AppleSignInKeyNotFoundException: If no key matches the kid after a refetch
            AppleSignInKeyResolutionException: If the key set cannot be fetched or parsed
        """
        refreshed = not self.is_cache_fresh
        await self.get_signing_keys()

        if kid not in self._keys and not refreshed:
            logger.debug(f"Apple signing key {kid} not cached, refetching key set")
            await self.get_signing_keys(force_refresh=True)

        signing_key = self._keys.get(kid)

        if signing_key is None:
            logger.error(f"Apple signing key not found for kid: {kid}")
            raise AppleSignInKeyNotFoundException(
                f"Unable to find a signing key that matches '{kid}'", kid=kid
            )

        return signing_key

    async def _fetch_signing_keys(self) -> list[SigningKey]:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(self.jwks_uri)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.jwks_uri)

            response.raise_for_status()
            key_set = JsonWebKeySet.model_validate(response.json())
            return key_set.signing_keys()
        except httpx.HTTPStatusError as err:
            logger.error(
                f"Error fetching Apple signing keys, status {err.response.status_code}"
            )
            logger.debug(str(err))
            raise AppleSignInKeyResolutionException(
                "Apple key set endpoint returned an error", err
            ) from err
        except httpx.HTTPError as err:
            logger.error("Error fetching Apple signing keys, connection error")
            logger.debug(str(err))
            raise AppleSignInKeyResolutionException(
                "Unable to reach Apple key set endpoint", err
            ) from err
        except (ValueError, ValidationError) as err:
            logger.error("Error parsing Apple signing keys")
            logger.debug(str(err))
            raise AppleSignInKeyResolutionException("Invalid Apple key set", err) from err
