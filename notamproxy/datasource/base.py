"""
Base upstream fetcher interface and the shapes it produces.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from notamproxy.services.client import UpstreamClient


def format_number(value: float) -> str:
    """Render a query number the same way every time (5.0 -> "5", 8.56 -> "8.56")."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


class NotamQuery(BaseModel):
    """A validated geographic NOTAM query."""

    longitude: float
    latitude: float
    radius: float
    page_size: int | None = None


class CanonicalResponse(BaseModel):
    """
    Fully aggregated upstream result, always presented as page 1 of 1.
    """

    model_config = ConfigDict(populate_by_name=True)

    page_size: int | None = Field(default=None, alias="pageSize")
    page_num: int = Field(default=1, alias="pageNum")
    total_count: int = Field(default=0, alias="totalCount")
    total_pages: int = Field(default=1, alias="totalPages")
    items: list[Any] = Field(default_factory=list)

    @classmethod
    def from_items(
        cls, items: list[Any], page_size: int | None = None
    ) -> "CanonicalResponse":
        return cls(
            page_size=page_size,
            page_num=1,
            total_count=len(items),
            total_pages=1,
            items=items,
        )

    def to_payload(self) -> dict[str, Any]:
        """Wire representation (camelCase keys)."""
        return self.model_dump(by_alias=True)


class UpstreamFetcher(ABC):
    """
    Abstract base class for NOTAM providers.

    All fetchers should:
    - Use UpstreamClient for HTTP requests
    - Return a CanonicalResponse covering every upstream page
    - Raise UpstreamError on any failure, never return partial results
    - Leave caching to ResponseCache
    """

    def __init__(self, client: UpstreamClient):
        self.client = client

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this provider."""
        ...

    @property
    def cache_namespace(self) -> str:
        """Distinguishes cache keys of providers that answer differently."""
        return self.service_id

    @abstractmethod
    async def fetch_all(self, query: NotamQuery) -> CanonicalResponse:
        """Fetch every NOTAM matching the query."""
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the provider credentials are present."""
        ...
