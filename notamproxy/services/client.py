"""
UpstreamClient - async HTTP client for the NOTAM provider and its auth endpoint.

Every failure (non-2xx status, transport error, timeout, undecodable body)
is surfaced as UpstreamError. Nothing is retried; retry policy belongs to
the caller.
"""

from typing import Any

import httpx
from loguru import logger

from notamproxy.services.errors import RequestTimeoutError, UpstreamError


class UpstreamClient:
    """
    Thin wrapper around httpx.AsyncClient with a bounded timeout.

    Usage:
        async with UpstreamClient(timeout=30.0) as client:
            data = await client.request(
                service_id="faa",
                url="https://external-api.faa.gov/notamapi/v1/notams",
                params={"locationLatitude": "50.0379", ...},
            )
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        debug: bool = False,
    ):
        self._timeout = timeout
        self._transport = transport
        self._debug = debug

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    @property
    def timeout(self) -> float:
        return self._timeout

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    async def request(
        self,
        service_id: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        data: dict[str, Any] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> Any:
        """
        Make an HTTP request and return the decoded JSON body.

        Args:
            service_id: Identifier of the remote service (for error messages)
            url: Full URL to request
            params: Query parameters
            headers: Request headers
            method: HTTP method (GET, POST, etc.)
            data: Form body for POST requests
            auth: Basic auth credentials

        Returns:
            Decoded JSON body

        Raises:
            RequestTimeoutError: If request times out
            UpstreamError: For any other failure
        """
        client = await self._get_http_client()
        self._log(f"{method} {url} params={params}")

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                headers=headers,
                data=data,
                auth=auth,
            )
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.warning(f"Request to {service_id} timed out after {self._timeout}s")
            raise RequestTimeoutError(service_id, self._timeout) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code >= 500:
                logger.error(f"Server error when accessing {service_id}: {status_code}")
            elif status_code == 404:
                logger.error(f"Resource not found on {service_id}: {url}")
            raise UpstreamError(
                f"Failed to get data from {service_id}. Status code: {status_code}",
                service_id=service_id,
                upstream_status=status_code,
            ) from e

        except httpx.RequestError as e:
            logger.warning(f"Transport error talking to {service_id}: {e}")
            raise UpstreamError(
                f"Failed to reach {service_id}: {e}", service_id=service_id
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Failed to decode JSON response from {service_id}",
                service_id=service_id,
                upstream_status=response.status_code,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("UpstreamClient closed")

    async def __aenter__(self) -> "UpstreamClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[UpstreamClient] {message}")
