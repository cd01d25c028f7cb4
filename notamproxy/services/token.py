"""
TokenProvider - OAuth client-credentials bearer tokens, cached in the KeyValueStore.

A cached token expires 30 seconds before the provider says it does, and
never sooner than 60 seconds after it was obtained.
"""

import hashlib
from dataclasses import dataclass
from typing import Any

from loguru import logger

from notamproxy.services.client import UpstreamClient
from notamproxy.services.deduplicator import SingleFlight
from notamproxy.services.errors import ConfigError, UpstreamError
from notamproxy.services.store import KeyValueStore

DEFAULT_EXPIRES_IN = 1800
EXPIRY_MARGIN_SECONDS = 30
MIN_TOKEN_TTL_SECONDS = 60


@dataclass
class TokenConfig:
    """Credentials for the client-credentials exchange."""

    auth_url: str
    client_id: str
    client_secret: str


def token_cache_key(auth_url: str, client_id: str) -> str:
    digest = hashlib.sha256(f"{auth_url}|{client_id}".encode()).hexdigest()
    return f"token_{digest}"


def token_ttl(expires_in: Any) -> int:
    """Seconds a freshly issued token may be served from the cache."""
    try:
        seconds = int(float(expires_in))
    except (TypeError, ValueError):
        seconds = DEFAULT_EXPIRES_IN
    return max(MIN_TOKEN_TTL_SECONDS, seconds - EXPIRY_MARGIN_SECONDS)


class TokenProvider:
    """
    Acquires bearer tokens and reuses them until shortly before expiry.

    Usage:
        provider = TokenProvider(config, store, client)
        token = await provider.get_token()
    """

    SERVICE_ID = "nms-auth"

    def __init__(
        self,
        config: TokenConfig,
        store: KeyValueStore,
        client: UpstreamClient,
        single_flight: SingleFlight | None = None,
    ):
        self.config = config
        self._store = store
        self._client = client
        self._single_flight = single_flight or SingleFlight()
        self.exchanges = 0

    def is_configured(self) -> bool:
        return bool(
            self.config.auth_url and self.config.client_id and self.config.client_secret
        )

    @property
    def cache_key(self) -> str:
        return token_cache_key(self.config.auth_url, self.config.client_id)

    async def get_token(self) -> str:
        """
        Return a valid bearer token.

        Raises:
            ConfigError: If credentials or the auth URL are missing
            UpstreamError: If the exchange fails or yields no token
        """
        if not self.is_configured():
            raise ConfigError(
                "Missing NMS credentials (auth URL, client id or client secret)",
                service_id=self.SERVICE_ID,
            )

        key = self.cache_key
        cached = await self._store.get(key)
        if cached:
            return cached

        return await self._single_flight.do(key, lambda: self._exchange(key))

    async def _exchange(self, key: str) -> str:
        """Perform one client-credentials exchange and cache the result."""
        self.exchanges += 1
        logger.info(f"Requesting bearer token from {self.config.auth_url}")

        data = await self._client.request(
            service_id=self.SERVICE_ID,
            url=self.config.auth_url,
            method="POST",
            data={"grant_type": "client_credentials"},
            auth=(self.config.client_id, self.config.client_secret),
        )

        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise UpstreamError(
                "Token endpoint returned no access_token", service_id=self.SERVICE_ID
            )

        ttl = token_ttl(data.get("expires_in", DEFAULT_EXPIRES_IN))
        await self._store.set(key, token, ttl)
        logger.debug(f"Cached bearer token for {ttl}s")
        return token
