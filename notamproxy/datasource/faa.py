"""
FAA NOTAM API (legacy) data source.

API Documentation: https://api.faa.gov/s/
Authentication: static client_id / client_secret request headers.

Results are paginated; every page is fetched and merged into one
canonical response before anything is cached.
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
from notamproxy.services.errors import UpstreamError

DEFAULT_PAGE_SIZE = 1000


@dataclass
class FAAConfig:
    """Configuration for the legacy FAA NOTAM API."""

    base_url: str = "https://external-api.faa.gov/notamapi/v1/notams"
    client_id: str = ""
    client_secret: str = ""
    max_pages: int = 50


def _page_marker(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    # bool is an int subclass but never a page number
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


class FAANotamFetcher(UpstreamFetcher):
    """
    Paginated FAA NOTAM API fetcher.

    Requests page 1, 2, ... until the provider reports the last page.
    Missing or malformed pagination metadata ends the walk and the pages
    received so far are treated as complete. A failing page, or more pages than
    max_pages, aborts the whole aggregation.
    """

    SERVICE_ID = "faa"

    def __init__(self, config: FAAConfig, client: UpstreamClient):
        super().__init__(client)
        self.config = config

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    def is_configured(self) -> bool:
        return bool(self.config.client_id and self.config.client_secret)

    def build_params(self, query: NotamQuery) -> dict[str, str]:
        """Query parameters shared by every page request."""
        return {
            "locationLongitude": format_number(query.longitude),
            "locationLatitude": format_number(query.latitude),
            "locationRadius": format_number(query.radius),
            "pageSize": str(query.page_size or DEFAULT_PAGE_SIZE),
        }

    def _headers(self) -> dict[str, str]:
        return {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }

    async def fetch_all(self, query: NotamQuery) -> CanonicalResponse:
        """
        Fetch every page for the query.

        Returns:
            CanonicalResponse with pageNum=1 and totalPages=1

        Raises:
            UpstreamError: On the first failing page
        """
        params = self.build_params(query)
        headers = self._headers()
        all_items: list[Any] = []
        page_num = 1

        while True:
            data = await self.client.request(
                service_id=self.SERVICE_ID,
                url=self.config.base_url,
                params={**params, "pageNum": str(page_num)},
                headers=headers,
            )

            if not isinstance(data, dict):
                raise UpstreamError(
                    f"Unexpected response body from {self.SERVICE_ID} on page {page_num}",
                    service_id=self.SERVICE_ID,
                )

            items = data.get("items")
            if items is not None:
                if not isinstance(items, list):
                    raise UpstreamError(
                        f"Malformed items on {self.SERVICE_ID} page {page_num}",
                        service_id=self.SERVICE_ID,
                    )
                all_items.extend(items)

            current = _page_marker(data, "pageNum")
            total = _page_marker(data, "totalPages")
            if current is None or total is None or current >= total:
                break

            if page_num >= self.config.max_pages:
                # Partial results are never returned
                logger.warning(
                    f"{self.SERVICE_ID}: giving up after {page_num} pages "
                    f"(provider reports {total})"
                )
                raise UpstreamError(
                    f"{self.SERVICE_ID} reports {total} pages, more than the "
                    f"{self.config.max_pages} page limit",
                    service_id=self.SERVICE_ID,
                )
            page_num += 1

        logger.debug(
            f"{self.SERVICE_ID}: aggregated {len(all_items)} NOTAMs from {page_num} page(s)"
        )
        return CanonicalResponse.from_items(
            all_items, page_size=query.page_size or DEFAULT_PAGE_SIZE
        )
