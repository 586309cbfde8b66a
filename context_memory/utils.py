"""
Utility functions for Context Memory MCP Server
Copyright 2025 Jurden Bruce
"""

import json
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

logger = logging.getLogger("context-memory.utils")

MIN_IMPORTANCE = 0
MAX_IMPORTANCE = 10


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix"""
    return to_utc_iso(datetime.now(timezone.utc))


def to_utc_iso(dt: datetime) -> str:
    """Render an aware datetime in the format stored in updated_at/created_at

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=None).isoformat(timespec="microseconds") + "Z"


def ensure_parent_dir(file_path: Union[str, Path]) -> Path:
    """Create the directory holding file_path if it is missing"""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def normalize_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    """Trim, drop blanks and dedupe tags case-insensitively

    The first spelling of a tag wins and order of first appearance is kept.
    Non-string entries are dropped.
    """
    if not tags:
        return []

    seen = set()
    normalized = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        tag = tag.strip()
        if not tag:
            continue
        key = tag_key(tag)
        if key in seen:
            continue
        seen.add(key)
        normalized.append(tag)
    return normalized


def tag_key(tag: str) -> str:
    """Comparison key for a tag"""
    return tag.strip().lower()


def clamp_importance(value: Any) -> Optional[int]:
    """Clamp importance into [0, 10]

    None and values that are not numbers give None. Fractions are rounded.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    number = max(float(MIN_IMPORTANCE), min(float(MAX_IMPORTANCE), number))
    return int(round(number))


def parse_json(value: Optional[Union[str, bytes]], fallback: Any, expected_type: type) -> Any:
    """Decode a JSON column, returning fallback when it is empty or malformed"""
    if not value:
        return fallback
    try:
        decoded = json.loads(value)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning(f"Malformed JSON column value {value!r}: {e}")
        return fallback
    if not isinstance(decoded, expected_type):
        logger.warning(f"Expected {expected_type.__name__} in JSON column, got {type(decoded).__name__}")
        return fallback
    return decoded


def serialize_json(value: Optional[Any], default: Any) -> str:
    """Encode a value for a JSON column, substituting default for None"""
    return json.dumps(default if value is None else value)
