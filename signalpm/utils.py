"""Shared utility functions used across Signal modules."""
from __future__ import annotations

import json
import math
import secrets
import string
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

_MISSING = object()

_ALPHABET = string.ascii_letters + string.digits
_BASE36 = string.digits + string.ascii_lowercase


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; treat naive datetimes as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def round_half_up(value: float) -> int:
    """Round halves up: 2.5 -> 3, -2.5 -> -2."""
    return int(math.floor(value + 0.5))


def new_document_id() -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(20))


def generate_id(taken: Iterable[str] = (), prefix: str = "") -> str:
    """Return a short random id not present in *taken*.

    With a *prefix* the id follows the ``<prefix>-<millis>-<n>`` form used for
    key results, decision options and journey steps.
    """
    taken = set(taken)
    n = len(taken)
    while True:
        if prefix:
            candidate = f"{prefix}-{int(time.time() * 1000)}-{n}"
        else:
            candidate = "".join(secrets.choice(_BASE36) for _ in range(11))
        if candidate not in taken:
            return candidate
        n += 1
