"""
Delta computation between a client's known NOTAMs and the current result set.

A NOTAM is reported when the client does not know its id or knows it with a
different lastUpdated (exact string comparison, no timestamp parsing). Ids
the client knows but the server no longer returns are listed in removedIds.
"""

from typing import Any, Mapping

from notamproxy.services.errors import ProtocolError, ValidationError


def extract_identity(item: Any) -> tuple[str | None, str | None]:
    """
    Return (id, lastUpdated) of a NOTAM record.

    GeoJSON features carry them under properties.coreNOTAMData.notam; other
    records are read from their top-level keys. Non-string values read as None.
    """
    if not isinstance(item, dict):
        return None, None

    source: Any = item
    properties = item.get("properties")
    if isinstance(properties, dict):
        core = properties.get("coreNOTAMData")
        if isinstance(core, dict) and isinstance(core.get("notam"), dict):
            source = core["notam"]

    notam_id = source.get("id")
    last_updated = source.get("lastUpdated")
    return (
        notam_id if isinstance(notam_id, str) else None,
        last_updated if isinstance(last_updated, str) else None,
    )


def compute(canonical: Mapping[str, Any], known: Mapping[str, str]) -> dict[str, Any]:
    """
    Filter a canonical response down to what changed relative to `known`.

    Args:
        canonical: Canonical response payload (must contain an items list)
        known: Client snapshot, id -> lastUpdated

    Returns:
        New payload with filtered items, totalCount, pageNum=1, totalPages=1,
        delta=True and removedIds. Neither input is modified.

    Raises:
        ProtocolError: If canonical is not a mapping with an items list
    """
    if not isinstance(canonical, Mapping):
        raise ProtocolError("Canonical response is not an object")
    items = canonical.get("items")
    if not isinstance(items, list):
        raise ProtocolError("Canonical response has no items array")

    filtered: list[Any] = []
    server_ids: dict[str, str | None] = {}

    for item in items:
        notam_id, last_updated = extract_identity(item)
        if notam_id is not None:
            server_ids[notam_id] = last_updated

        if notam_id is None or last_updated is None:
            filtered.append(item)
            continue

        known_updated = known.get(notam_id)
        if known_updated is None or known_updated != last_updated:
            filtered.append(item)

    removed_ids = [notam_id for notam_id in known if notam_id not in server_ids]

    result = dict(canonical)
    result["items"] = filtered
    result["pageNum"] = 1
    result["totalPages"] = 1
    result["totalCount"] = len(filtered)
    result["delta"] = True
    result["removedIds"] = removed_ids
    return result


def parse_known_snapshot(payload: Any) -> dict[str, str]:
    """
    Read the client's snapshot from a delta request body.

    Accepts {"known": {id: lastUpdated}} or
    {"known": [{"id": ..., "lastUpdated": ...}, ...]}. Entries with a
    non-string id or lastUpdated are skipped.

    Raises:
        ValidationError: If `known` is missing or malformed, or no valid
            entry remains
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("known"), (dict, list)):
        raise ValidationError("POST body must contain a 'known' array for delta mode")

    known = payload["known"]
    snapshot: dict[str, str] = {}

    if isinstance(known, list):
        for entry in known:
            if not isinstance(entry, dict):
                continue
            notam_id = entry.get("id")
            last_updated = entry.get("lastUpdated")
            if isinstance(notam_id, str) and isinstance(last_updated, str):
                snapshot[notam_id] = last_updated
    else:
        for notam_id, last_updated in known.items():
            if isinstance(notam_id, str) and isinstance(last_updated, str):
                snapshot[notam_id] = last_updated

    if not snapshot:
        raise ValidationError("Delta payload contains no valid entries")
    return snapshot
