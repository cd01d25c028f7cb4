"""FastAPI server for NOTAM queries (plain and delta mode)."""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response
from loguru import logger

from notamproxy.api.validators import parse_query
from notamproxy.datastore.engine import close_db, get_session_factory, init_db
from notamproxy.exceptions import register_exception_handlers
from notamproxy.services.delta import parse_known_snapshot
from notamproxy.services.errors import ValidationError
from notamproxy.services.maintenance import MaintenanceScheduler
from notamproxy.services.notam_service import NotamService, build_notam_service
from notamproxy.services.store import SQLKeyValueStore
from notamproxy.settings import Settings, global_settings

JSON_MEDIA_TYPE = "application/json"


class NotamServer:
    """HTTP server exposing the NOTAM cache."""

    def __init__(self, settings: Settings, service: NotamService | None = None):
        self.settings = settings
        self.service = service
        self.scheduler: MaintenanceScheduler | None = None
        self.app = FastAPI(title="NOTAM Proxy", lifespan=self.lifespan)

        register_exception_handlers(self.app, self.settings.expose_error_details)

        # Register routes
        for path in ("/notams", "/"):
            self.app.get(path)(self.get_notams)
            self.app.post(path)(self.post_notams)
        self.app.get("/health")(self.health_check)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        owns_service = self.service is None
        if owns_service:
            logger.info("Initializing database...")
            await init_db(self.settings.database_url, self.settings.database_echo)
            store = SQLKeyValueStore(get_session_factory())
            self.service = build_notam_service(self.settings, store)
            logger.info(f"Serving NOTAMs from the {self.service.variant} upstream")

        if self.settings.maintenance_interval_minutes > 0 and self.service.maintenance:
            self.scheduler = MaintenanceScheduler(
                self.service.maintenance, self.settings.maintenance_interval_minutes
            )
            self.scheduler.start()

        try:
            yield
        finally:
            if self.scheduler:
                self.scheduler.stop()
            if owns_service:
                await self.service.close()
                await close_db()
                logger.info("NOTAM proxy stopped")

    def _service(self) -> NotamService:
        if self.service is None:
            raise RuntimeError("NOTAM service not initialized")
        return self.service

    async def get_notams(self, request: Request) -> Response:
        """Full (cached) result set for the query."""
        service = self._service()
        query = parse_query(request.query_params, service.variant)
        payload = await service.get_notams(query)
        return Response(content=payload, media_type=JSON_MEDIA_TYPE)

    async def post_notams(self, request: Request) -> Response:
        """Delta mode: only NOTAMs new or changed since the client's snapshot."""
        service = self._service()
        query = parse_query(request.query_params, service.variant)

        body = await self._read_body(request)
        if not body.strip():
            payload = await service.get_notams(query)
            return Response(content=payload, media_type=JSON_MEDIA_TYPE)

        try:
            decoded: Any = json.loads(body)
        except ValueError as e:
            raise ValidationError(f"Invalid JSON in POST body: {e}") from None

        known = parse_known_snapshot(decoded)
        payload = await service.get_delta(query, known)
        return Response(content=payload, media_type=JSON_MEDIA_TYPE)

    async def _read_body(self, request: Request) -> bytes:
        limit = self.settings.max_body_bytes
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > limit:
            raise ValidationError("Request body too large")

        body = bytearray()
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > limit:
                raise ValidationError("Request body too large")
        return bytes(body)

    async def health_check(self) -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "notamproxy"}


def create_app(
    settings: Settings | None = None, service: NotamService | None = None
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Configuration (defaults to the environment)
        service: Pre-built service; when omitted the app builds one on startup
            against the configured database

    Returns:
        FastAPI app
    """
    server = NotamServer(settings or global_settings, service)
    return server.app
