"""
Service layer - caching, token handling and delta computation for NOTAM queries.

Provides:
- KeyValueStore: expiring storage (SQL table or in-memory)
- TokenProvider: cached OAuth bearer tokens
- SingleFlight: one in-flight fetch per key
- MaintenanceRunner: expired-row reclamation and metric roll-up
- UpstreamClient: httpx client mapping failures to UpstreamError
"""

from notamproxy.services.errors import (
    ServiceError,
    ValidationError,
    ConfigError,
    UpstreamError,
    RequestTimeoutError,
    ProtocolError,
    StoreError,
)
from notamproxy.services.client import UpstreamClient
from notamproxy.services.store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SQLKeyValueStore,
)
from notamproxy.services.deduplicator import SingleFlight
from notamproxy.services.token import TokenConfig, TokenProvider
from notamproxy.services.maintenance import MaintenanceRunner, MaintenanceScheduler

__all__ = [
    # Errors
    "ServiceError",
    "ValidationError",
    "ConfigError",
    "UpstreamError",
    "RequestTimeoutError",
    "ProtocolError",
    "StoreError",
    # Client
    "UpstreamClient",
    # Store
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLKeyValueStore",
    # Single-flight
    "SingleFlight",
    # Tokens
    "TokenConfig",
    "TokenProvider",
    # Maintenance
    "MaintenanceRunner",
    "MaintenanceScheduler",
]
