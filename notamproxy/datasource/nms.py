"""
FAA NOTAM Management Service (NMS) API data source.

Authentication: OAuth client credentials (bearer token from TokenProvider).
The whole result set arrives in one envelope:

    {"status": "Success", "data": {"geojson": [...]}}   # or "aixm"
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from notamproxy.datasource.base import (
    CanonicalResponse,
    NotamQuery,
    UpstreamFetcher,
    format_number,
)
from notamproxy.services.client import UpstreamClient
from notamproxy.services.errors import ConfigError, UpstreamError
from notamproxy.services.token import TokenProvider

RESPONSE_FORMATS = ("GEOJSON", "AIXM")


@dataclass
class NMSConfig:
    """Configuration for the NMS NOTAM API."""

    base_url: str = "https://api-nms.aim.faa.gov/nmsapi/v1/notams"
    response_format: str = "GEOJSON"


class NMSNotamFetcher(UpstreamFetcher):
    """
    Single-request NMS fetcher.

    Unwraps data.geojson / data.aixm into canonical items.
    """

    SERVICE_ID = "nms"

    def __init__(
        self,
        config: NMSConfig,
        client: UpstreamClient,
        token_provider: TokenProvider,
    ):
        super().__init__(client)
        self.config = config
        self.token_provider = token_provider
        self.response_format = config.response_format.upper()
        if self.response_format not in RESPONSE_FORMATS:
            raise ConfigError(
                f"Unsupported NMS response format: {config.response_format}",
                service_id=self.SERVICE_ID,
            )

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    @property
    def cache_namespace(self) -> str:
        return f"{self.SERVICE_ID}:{self.response_format}"

    def is_configured(self) -> bool:
        return self.token_provider.is_configured()

    def build_params(self, query: NotamQuery) -> dict[str, str]:
        return {
            "longitude": format_number(query.longitude),
            "latitude": format_number(query.latitude),
            "radius": format_number(query.radius),
        }

    async def fetch_all(self, query: NotamQuery) -> CanonicalResponse:
        """
        Fetch and unwrap the NMS envelope.

        Raises:
            ConfigError: If credentials are missing
            UpstreamError: On HTTP failure, non-Success status or missing payload
        """
        token = await self.token_provider.get_token()

        data = await self.client.request(
            service_id=self.SERVICE_ID,
            url=self.config.base_url,
            params=self.build_params(query),
            headers={
                "Authorization": f"Bearer {token}",
                "nmsResponseFormat": self.response_format,
            },
        )

        items = self._unwrap(data)
        logger.debug(f"{self.SERVICE_ID}: received {len(items)} NOTAMs")
        return CanonicalResponse.from_items(items, page_size=query.page_size)

    def _unwrap(self, data: Any) -> list[Any]:
        if not isinstance(data, dict):
            raise UpstreamError(
                "Unexpected response body from NMS", service_id=self.SERVICE_ID
            )

        status = data.get("status")
        if status != "Success":
            raise UpstreamError(
                f"NMS request failed with status: {status}", service_id=self.SERVICE_ID
            )

        payload = data.get("data")
        items = payload.get(self.response_format.lower()) if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise UpstreamError(
                f"NMS response is missing data.{self.response_format.lower()}",
                service_id=self.SERVICE_ID,
            )
        return list(items)
