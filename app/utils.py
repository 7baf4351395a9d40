"""Utility helpers for the StreamWave service."""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Any


def coerce_int(value: Any, *, default: int | None = None) -> int | None:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def coerce_float(value: Any, *, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if not math.isfinite(number):
        return default
    return number


def parse_iso_date(value: Any) -> date | None:
    """Parse ``YYYY-MM-DD`` strings, returning ``None`` for blanks or junk."""

    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_id_list(value: str | None) -> list[int]:
    """Parse comma or pipe separated integer ids, ignoring invalid entries."""

    if not value:
        return []
    ids: list[int] = []
    for part in re.split(r"[,|]", value):
        parsed = coerce_int(part.strip())
        if parsed is not None and parsed not in ids:
            ids.append(parsed)
    return ids
