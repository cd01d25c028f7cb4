"""
Service layer exceptions.

Every error carries the HTTP status the boundary layer answers with.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    status_code: int = 500

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class ValidationError(ServiceError):
    """Bad or missing client input."""

    status_code = 400


class ConfigError(ServiceError):
    """Required configuration (credentials, URLs) is missing."""

    status_code = 500


class UpstreamError(ServiceError):
    """The NOTAM provider or its auth endpoint failed."""

    status_code = 502

    def __init__(
        self,
        message: str,
        service_id: str | None = None,
        upstream_status: int | None = None,
    ):
        self.upstream_status = upstream_status
        super().__init__(message, service_id=service_id)


class RequestTimeoutError(UpstreamError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class ProtocolError(ServiceError):
    """An internal response shape was violated."""

    status_code = 500


class StoreError(ServiceError):
    """Cache backend operation failed."""

    status_code = 500
