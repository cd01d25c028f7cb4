import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Upstream selection: "legacy" (paginated FAA API) or "nms" (token-authenticated)
    api_variant: str = Field(default="legacy", alias="NOTAM_API_VARIANT")

    # Legacy FAA NOTAM API
    faa_api_url: str = Field(
        default="https://external-api.faa.gov/notamapi/v1/notams", alias="FAA_API_URL"
    )
    faa_client_id: str = Field(default="", alias="FAA_ID")
    faa_client_secret: str = Field(default="", alias="FAA_KEY")

    # NMS API (OAuth client credentials)
    nms_api_url: str = Field(
        default="https://api-nms.aim.faa.gov/nmsapi/v1/notams", alias="NMS_API_URL"
    )
    nms_auth_url: str = Field(
        default="https://api-nms.aim.faa.gov/v1/auth/token", alias="NMS_AUTH_URL"
    )
    nms_client_id: str = Field(default="", alias="NMS_CLIENT_ID")
    nms_client_secret: str = Field(default="", alias="NMS_CLIENT_SECRET")
    nms_response_format: str = Field(default="GEOJSON", alias="NMS_RESPONSE_FORMAT")

    # Caching and upstream behaviour
    cache_ttl_seconds: int = Field(default=3600, alias="NOTAM_CACHE_TTL")
    upstream_timeout: float = Field(default=30.0, alias="UPSTREAM_TIMEOUT")
    upstream_max_pages: int = Field(default=50, alias="UPSTREAM_MAX_PAGES")

    # Maintenance
    maintenance_probability: float = Field(default=0.01, alias="MAINTENANCE_PROBABILITY")
    maintenance_interval_minutes: int = Field(
        default=0, alias="MAINTENANCE_INTERVAL_MINUTES"
    )
    metrics_retention_days: int = Field(default=30, alias="METRICS_RETENTION_DAYS")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./notamproxy.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # HTTP surface
    expose_error_details: bool = Field(default=True, alias="EXPOSE_ERROR_DETAILS")
    max_body_bytes: int = Field(default=1048576, alias="MAX_BODY_BYTES")
    server_host: str = Field(default="0.0.0.0", alias="SERVER_HOST")
    server_port: int = Field(default=8000, alias="SERVER_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


def load_settings() -> Settings:
    """Build settings from the process environment (after .env is loaded)."""
    return Settings.model_validate(dict(os.environ))


global_settings = load_settings()
