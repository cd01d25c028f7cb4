"""
Smoke test for a running NOTAM proxy.

Usage:
    python -m notamproxy.smoke [URL]

URL defaults to $NOTAM_URL, then http://localhost:8000/notams. When the URL
has no query string the Frankfurt test query is appended.
"""

import json
import os
import sys
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode, urlsplit

import httpx

from notamproxy.services.delta import extract_identity

DEFAULT_URL = "http://localhost:8000/notams"
DEFAULT_QUERY = {
    "locationLatitude": 50.0379,
    "locationLongitude": 8.5622,
    "locationRadius": 5,
}
MAX_KNOWN = 200
STALE_TIMESTAMP = "1970-01-01T00:00:00Z"


@dataclass
class SmokeResult:
    label: str
    status_code: int
    duration_ms: float
    body: bytes
    error: str | None = None

    def decoded(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError:
            return None

    def verdict(self, expected_min_count: int | None = None) -> tuple[str, str]:
        if self.error or not 200 <= self.status_code < 300:
            return "FAIL", "http"
        decoded = self.decoded()
        if not isinstance(decoded, dict):
            return "FAIL", "json"
        if "error" in decoded:
            return "FAIL", "api"
        if expected_min_count is not None:
            count = decoded.get("totalCount")
            if not isinstance(count, int) or count < expected_min_count:
                return "FAIL", "count"
        return "PASS", ""

    def line(self, extra: str = "") -> str:
        text = (
            f"{self.label}: HTTP {self.status_code} | duration_ms={round(self.duration_ms)}"
            f" | bytes={len(self.body)}"
        )
        if self.error:
            text += f' | error="{self.error}"'
        if extra:
            text += f" | {extra}"
        return text


def build_url(base_url: str) -> str:
    if urlsplit(base_url).query:
        return base_url
    return f"{base_url}?{urlencode(DEFAULT_QUERY)}"


def run_request(
    client: httpx.Client, label: str, method: str, url: str, json_body: Any = None
) -> SmokeResult:
    started = time.monotonic()
    try:
        response = client.request(method, url, json=json_body)
        return SmokeResult(
            label, response.status_code, (time.monotonic() - started) * 1000, response.content
        )
    except httpx.HTTPError as e:
        return SmokeResult(label, 0, (time.monotonic() - started) * 1000, b"", str(e))


def known_snapshot(payload: dict[str, Any]) -> dict[str, str]:
    known: dict[str, str] = {}
    for item in payload.get("items") or []:
        notam_id, last_updated = extract_identity(item)
        if notam_id is not None and last_updated is not None:
            known[notam_id] = last_updated
    return dict(list(known.items())[:MAX_KNOWN])


def report(result: SmokeResult, expected_min_count: int | None = None) -> bool:
    status, reason = result.verdict(expected_min_count)
    parts = []
    decoded = result.decoded()
    if isinstance(decoded, dict):
        if "totalCount" in decoded:
            parts.append(f"totalCount={decoded['totalCount']}")
        if isinstance(decoded.get("removedIds"), list):
            parts.append(f"removedIds={len(decoded['removedIds'])}")
    parts.append(f"result={status}" + (f" ({reason})" if reason else ""))
    print(result.line(" | ".join(parts)))
    return status == "PASS"


def run(base_url: str, client: httpx.Client | None = None) -> bool:
    url = build_url(base_url)
    print(f"Request URL: {url}")

    if client is None:
        with httpx.Client(timeout=30.0, headers={"User-Agent": "notam-test"}) as client:
            return run_checks(client, url)
    return run_checks(client, url)


def run_checks(client: httpx.Client, url: str) -> bool:
    primary = run_request(client, "GET primary", "GET", url)
    passed = report(primary)
    decoded = primary.decoded()
    if not passed or not isinstance(decoded, dict):
        return False

    passed &= report(run_request(client, "GET cache", "GET", url))

    known = known_snapshot(decoded)
    if not known:
        print("POST delta: skipped (no NOTAM ids found in response)")
        return passed

    delta = run_request(client, "POST delta", "POST", url, {"known": known})
    passed &= report(delta)

    half = len(known) // 2
    if half > 0:
        missing = dict(list(known.items())[:half])
        passed &= report(
            run_request(
                client, "POST delta missing-ids", "POST", url, {"known": missing}
            ),
            expected_min_count=1,
        )
    else:
        print("POST delta missing-ids: skipped (not enough NOTAM ids)")

    stale = {notam_id: STALE_TIMESTAMP for notam_id in known}
    passed &= report(
        run_request(client, "POST delta stale-updated", "POST", url, {"known": stale}),
        expected_min_count=1,
    )

    return passed


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    base_url = args[0] if args else os.getenv("NOTAM_URL") or DEFAULT_URL
    passed = run(base_url)
    print(f"RESULT: {'SUCCEEDED' if passed else 'FAILED'}")
    return 0 if passed else 1


if __name__ == "__main__":
    sys.exit(main())
