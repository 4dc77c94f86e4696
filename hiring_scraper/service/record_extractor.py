"""
Decoding of captured search-API bodies into job records.

The upstream API changes its envelope between code paths without a version
marker, so decoding is an ordered list of strategies; the first one that yields
records wins. Add a new shape by appending a strategy to ``ENVELOPE_STRATEGIES``.
"""

import base64
import binascii
import json
from typing import Any, Callable, Optional, Union

from hiring_scraper.core.exceptions import DecodeError
from hiring_scraper.models.job_models import JobRecord

# Envelope fields that may carry the result list, in priority order.
LIST_FIELDS = ("results", "jobs", "data", "items", "content")

Strategy = Callable[[Any], Optional[list[JobRecord]]]


def _records(value: Any) -> list[JobRecord]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def unwrap_base64(raw: bytes) -> bytes:
    """Return the base64-decoded payload if it decodes to JSON-looking bytes."""
    try:
        decoded = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return raw
    if decoded[:1] in (b"{", b"["):
        return decoded
    return raw


def from_list_fields(payload: Any) -> Optional[list[JobRecord]]:
    if not isinstance(payload, dict):
        return None
    for name in LIST_FIELDS:
        records = _records(payload.get(name))
        if records:
            return records
    return None


def from_search_hits(payload: Any) -> Optional[list[JobRecord]]:
    if not isinstance(payload, dict):
        return None
    hits = payload.get("hits")
    if not isinstance(hits, dict):
        return None
    records = [
        hit["_source"]
        for hit in _records(hits.get("hits"))
        if isinstance(hit.get("_source"), dict)
    ]
    return records or None


def from_bare_list(payload: Any) -> Optional[list[JobRecord]]:
    return _records(payload) or None


ENVELOPE_STRATEGIES: tuple[Strategy, ...] = (
    from_list_fields,
    from_search_hits,
    from_bare_list,
)


def extract_jobs(body: Union[str, bytes]) -> list[JobRecord]:
    """
    Decode one response body into an ordered list of job records.

    Raises:
        DecodeError: if the body is not JSON or matches no known envelope.
    """
    raw = body.encode("utf-8") if isinstance(body, str) else body
    raw = unwrap_base64(raw.strip())

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None

    if payload is not None:
        for strategy in ENVELOPE_STRATEGIES:
            records = strategy(payload)
            if records:
                return records

    text = body if isinstance(body, str) else body.decode("utf-8", errors="replace")
    raise DecodeError(text)
