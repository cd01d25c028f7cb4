"""
NotamService - ResponseCache followed (in delta mode) by the delta computation.
"""

import json
from typing import Any

from loguru import logger

from notamproxy.datasource.base import NotamQuery, UpstreamFetcher
from notamproxy.datasource.faa import FAAConfig, FAANotamFetcher
from notamproxy.datasource.nms import NMSConfig, NMSNotamFetcher
from notamproxy.services import delta
from notamproxy.services.cache import CacheConfig, ResponseCache, serialize
from notamproxy.services.client import UpstreamClient
from notamproxy.services.errors import ConfigError, ProtocolError
from notamproxy.services.maintenance import MaintenanceRunner
from notamproxy.services.store import KeyValueStore
from notamproxy.services.token import TokenConfig, TokenProvider
from notamproxy.settings import Settings

VARIANTS = ("legacy", "nms")


class NotamService:
    """Serves plain and delta NOTAM queries."""

    def __init__(
        self,
        cache: ResponseCache,
        fetcher: UpstreamFetcher,
        client: UpstreamClient,
        maintenance: MaintenanceRunner | None = None,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.client = client
        self.maintenance = maintenance

    @property
    def variant(self) -> str:
        return "nms" if isinstance(self.fetcher, NMSNotamFetcher) else "legacy"

    async def get_notams(self, query: NotamQuery) -> str:
        """Serialized canonical response for the query."""
        return await self.cache.get_or_fetch(query)

    async def get_delta(self, query: NotamQuery, known: dict[str, str]) -> str:
        """Serialized delta response relative to the client's snapshot."""
        raw = await self.cache.get_or_fetch(query)
        try:
            canonical = json.loads(raw)
        except ValueError as e:
            raise ProtocolError("Failed to decode cached response for delta mode") from e

        result = delta.compute(canonical, known)
        logger.debug(
            f"Delta: {result['totalCount']} changed, "
            f"{len(result['removedIds'])} removed of {len(known)} known"
        )
        return serialize(result)

    async def close(self) -> None:
        await self.cache.close()
        if self.maintenance is not None:
            await self.maintenance.wait_pending()
        await self.client.close()


def build_notam_service(
    settings: Settings,
    store: KeyValueStore,
    client: UpstreamClient | None = None,
) -> NotamService:
    """
    Wire fetcher, cache and maintenance from settings.

    Raises:
        ConfigError: For an unknown variant or response format
    """
    variant = settings.api_variant.lower()
    if variant not in VARIANTS:
        raise ConfigError(f"Unknown NOTAM_API_VARIANT: {settings.api_variant}")

    client = client or UpstreamClient(timeout=settings.upstream_timeout)

    fetcher: UpstreamFetcher
    if variant == "nms":
        token_provider = TokenProvider(
            TokenConfig(
                auth_url=settings.nms_auth_url,
                client_id=settings.nms_client_id,
                client_secret=settings.nms_client_secret,
            ),
            store,
            client,
        )
        fetcher = NMSNotamFetcher(
            NMSConfig(
                base_url=settings.nms_api_url,
                response_format=settings.nms_response_format,
            ),
            client,
            token_provider,
        )
    else:
        fetcher = FAANotamFetcher(
            FAAConfig(
                base_url=settings.faa_api_url,
                client_id=settings.faa_client_id,
                client_secret=settings.faa_client_secret,
                max_pages=settings.upstream_max_pages,
            ),
            client,
        )

    if not fetcher.is_configured():
        logger.warning(f"{fetcher.service_id} credentials are not configured")

    maintenance = MaintenanceRunner(
        store,
        retention_days=settings.metrics_retention_days,
        probability=settings.maintenance_probability,
    )
    cache = ResponseCache(
        fetcher,
        store,
        CacheConfig(ttl_seconds=settings.cache_ttl_seconds),
        maintenance=maintenance,
    )
    return NotamService(cache, fetcher, client, maintenance)
