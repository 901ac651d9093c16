"""
InfluxDB line protocol encoding.

    <measurement>[,<tag_key>=<tag_value>...] <field_key>=<field_value>[,...] <timestamp_ns>
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, Optional

from .models import FieldValue, Point

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_MEASUREMENT_ESCAPES = str.maketrans({",": r"\,", " ": r"\ ", "\n": r"\n"})
_KEY_ESCAPES = str.maketrans({",": r"\,", "=": r"\=", " ": r"\ ", "\n": r"\n"})
_STRING_ESCAPES = str.maketrans({'"': r"\"", "\\": r"\\"})


def escape_measurement(name: str) -> str:
    return name.translate(_MEASUREMENT_ESCAPES)


def escape_key(key: str) -> str:
    """Escape a tag key, tag value or field key."""
    return key.translate(_KEY_ESCAPES)


def timestamp_ns(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    delta = ts - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def encode_field_value(value: FieldValue) -> Optional[str]:
    """Encode one field value; returns None for values InfluxDB cannot store (NaN, inf)."""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return repr(value)
    if isinstance(value, str):
        return '"' + value.translate(_STRING_ESCAPES) + '"'
    raise TypeError(f"unsupported field type {type(value).__name__}")


def encode_point(point: Point) -> Optional[str]:
    """Encode a point as one line; None if no field survives encoding."""
    fields = []
    for key in sorted(point.fields):
        encoded = encode_field_value(point.fields[key])
        if encoded is not None:
            fields.append(f"{escape_key(key)}={encoded}")
    if not fields:
        return None

    head = escape_measurement(point.measurement)
    for key in sorted(point.tags):
        value = point.tags[key]
        if value == "":
            continue
        head += f",{escape_key(key)}={escape_key(value)}"

    return f"{head} {','.join(fields)} {timestamp_ns(point.time)}"


def encode_points(points: Iterable[Point]) -> str:
    lines = [line for line in (encode_point(p) for p in points) if line is not None]
    return "\n".join(lines)
