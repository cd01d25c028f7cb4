"""Shared fixtures: synthetic NOTAMs, a controllable clock and stub upstreams."""

from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import pytest

from notamproxy.services.client import UpstreamClient


def notam_feature(notam_id: str | None, last_updated: str | None, **extra: Any) -> dict:
    """A GeoJSON feature shaped like the FAA API returns it."""
    notam: dict[str, Any] = {}
    if notam_id is not None:
        notam["id"] = notam_id
    if last_updated is not None:
        notam["lastUpdated"] = last_updated
    notam.update(extra)
    return {
        "type": "Feature",
        "properties": {"coreNOTAMData": {"notam": notam}},
        "geometry": None,
    }


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 15, 12, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class RecordingHandler:
    """MockTransport handler that records requests and delegates to a responder."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> UpstreamClient:
    return UpstreamClient(timeout=5.0, transport=httpx.MockTransport(handler))


def paged_responder(pages: list[dict]) -> Callable[[httpx.Request], httpx.Response]:
    """Serve pages[pageNum - 1] for the legacy FAA API."""

    def respond(request: httpx.Request) -> httpx.Response:
        page_num = int(request.url.params.get("pageNum", "1"))
        return httpx.Response(200, json=pages[page_num - 1])

    return respond


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def frankfurt_items() -> list[dict]:
    return [notam_feature("A", "T1"), notam_feature("B", "T1")]
