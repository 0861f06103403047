"""QR payload codec.

The attendee's device renders ``{"userId", "eventId", "timestamp"}`` as JSON in
the QR code. Nothing is signed: the payload is only checked for shape and age,
and trust comes from the organizer session that submits the scan.
"""

from __future__ import annotations

import json
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

MS_PER_HOUR = 3_600_000
DEFAULT_MAX_AGE_HOURS = 24


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class QRToken:
    user_id: str
    event_id: str
    issued_at: int | float  # epoch milliseconds


def encode(user_id: str, event_id: str, now: int | None = None) -> QRToken:
    return QRToken(user_id=str(user_id), event_id=str(event_id), issued_at=now_ms() if now is None else now)


def snapshot(token: QRToken) -> dict[str, Any]:
    return {"userId": token.user_id, "eventId": token.event_id, "timestamp": token.issued_at}


def dumps(token: QRToken) -> str:
    return json.dumps(snapshot(token), separators=(",", ":"))


def _is_number(value: Any) -> bool:
    # bool is an int subclass; a JSON true/false is not a timestamp
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    # json.loads turns NaN, Infinity and 1e400 into non-finite floats
    return isinstance(value, float) and math.isfinite(value)


def decode(raw: str | Mapping[str, Any] | None) -> QRToken | None:
    """Parse a scanned payload. Returns None for anything malformed."""
    if isinstance(raw, Mapping):
        data: Any = raw
    elif isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError:
            return None
    else:
        return None

    if not isinstance(data, Mapping):
        return None

    user_id = data.get("userId")
    event_id = data.get("eventId")
    issued_at = data.get("timestamp")
    if not isinstance(user_id, str) or not user_id:
        return None
    if not isinstance(event_id, str) or not event_id:
        return None
    if not _is_number(issued_at):
        return None

    return QRToken(user_id=user_id, event_id=event_id, issued_at=issued_at)


def is_expired(
    token: QRToken,
    max_age_hours: int | float = DEFAULT_MAX_AGE_HOURS,
    now: int | None = None,
) -> bool:
    current = now_ms() if now is None else now
    return current - token.issued_at > max_age_hours * MS_PER_HOUR
