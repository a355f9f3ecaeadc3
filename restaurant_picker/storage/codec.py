"""Wire format of the conversation record.

The record lives in the query string of a bookmark link::

    <endpoint>/?conversation=<id>&data=<compact JSON>

This module is the only place that knows that layout. Encoding is
deterministic (sorted keys, no whitespace) so the link prefix of a
conversation never changes and can be used to find its bookmark.
"""

from __future__ import annotations

import json
import logging
import math
import time
import uuid
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, quote, urlsplit

from restaurant_picker.errors import ValidationError
from restaurant_picker.models.records import ConversationRecord, Restaurant

log = logging.getLogger(__name__)

UNNAMED_RESTAURANT = "(unnamed restaurant)"

Candidate = Union[ConversationRecord, Dict[str, Any]]


def now_ms() -> int:
    return int(time.time() * 1000)


def initialize(conversation_id: str, now: Optional[int] = None) -> ConversationRecord:
    """Fresh, empty record for ``conversation_id``."""
    return ConversationRecord(
        conversation_id=conversation_id,
        ts=now if now is not None else now_ms(),
        list=[],
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _plausible_ts(value: Any, now: int) -> bool:
    return _is_int(value) and 0 < value <= now


def validate(conversation_id: str, candidate: Candidate, now: Optional[int] = None) -> bool:
    """True iff ``candidate`` is a well-formed record of ``conversation_id``.

    Never raises; any structural problem simply yields False.
    """
    if isinstance(candidate, ConversationRecord):
        candidate = candidate.to_dict()
    if not isinstance(candidate, dict):
        return False
    now = now if now is not None else now_ms()
    if candidate.get("conversation_id") != conversation_id:
        return False
    if not _plausible_ts(candidate.get("ts"), now):
        return False
    entries = candidate.get("list")
    if not isinstance(entries, list):
        return False
    return all(
        isinstance(e, dict) and isinstance(e.get("id"), str) and isinstance(e.get("name"), str)
        for e in entries
    )


def repair(conversation_id: str, candidate: Any, now: Optional[int] = None) -> ConversationRecord:
    """Best-effort reconstruction of a record that failed :func:`validate`.

    Entries that are not mappings are dropped, missing or duplicate ids are
    regenerated and missing names replaced by a placeholder. Raises
    :class:`ValidationError` only when ``candidate`` is not record-shaped.
    """
    if isinstance(candidate, ConversationRecord):
        candidate = candidate.to_dict()
    if not isinstance(candidate, dict):
        raise ValidationError("record is not an object", payload=candidate)
    entries = candidate.get("list")
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise ValidationError("record list is not an array", payload=candidate)

    now = now if now is not None else now_ms()
    ts = candidate.get("ts")
    if not _plausible_ts(ts, now):
        ts = now

    seen: set = set()
    restaurants: List[Restaurant] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        rid = entry.get("id")
        if not isinstance(rid, str) or not rid or rid in seen:
            rid = str(uuid.uuid4())
        seen.add(rid)
        name = entry.get("name")
        if not isinstance(name, str):
            name = UNNAMED_RESTAURANT
        weight = entry.get("weight")
        if (
            not isinstance(weight, (int, float))
            or isinstance(weight, bool)
            or not math.isfinite(weight)
            or weight < 0
        ):
            weight = 1
        restaurants.append(
            Restaurant.from_dict(
                {
                    "id": rid,
                    "name": name,
                    "weight": int(weight),
                    "shown_count": entry.get("shown_count"),
                    "win_count": entry.get("win_count"),
                }
            )
        )

    log.warning(
        "Repaired record for %s: kept %d of %d entries",
        conversation_id, len(restaurants), len(entries),
    )
    return ConversationRecord(conversation_id=conversation_id, ts=ts, list=restaurants)


def encode(record: ConversationRecord) -> str:
    """Compact, deterministic JSON for ``record``."""
    return json.dumps(record.to_dict(), separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def decode(data: str) -> Any:
    """Parse an encoded record. The result still has to pass :func:`validate`."""
    try:
        return json.loads(data)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"record is not valid JSON: {e}", payload=data) from e


def link_prefix(endpoint: str, conversation_id: str) -> str:
    return f"{endpoint.rstrip('/')}/?conversation={quote(conversation_id, safe='')}&data="


def to_link(endpoint: str, record: ConversationRecord) -> str:
    return link_prefix(endpoint, record.conversation_id) + quote(encode(record), safe="")


def from_link(link: str) -> Any:
    """Decode the record embedded in a bookmark ``link``."""
    values = parse_qs(urlsplit(link).query).get("data")
    if not values:
        raise ValidationError("bookmark link carries no data", payload=link)
    return decode(values[0])
