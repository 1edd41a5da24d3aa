"""
Time helpers. All engine timestamps are integer epoch milliseconds (UTC).
"""

import math
import time
from datetime import date, datetime, timezone
from typing import Any, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_epoch_ms(value: Any) -> Optional[int]:
    """
    Convert a caller-supplied timestamp to epoch milliseconds.

    Accepts datetime (naive values are taken as UTC), date, ISO-8601 strings
    (a trailing "Z" is allowed), numeric strings and int/float epoch ms.
    None passes through. Anything else raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"unsupported timestamp value: {value!r}")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, date):
        return int(datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp() * 1000)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"unsupported timestamp value: {value!r}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"unparseable timestamp string: {value!r}")
        return normalize_epoch_ms(parsed)
    raise ValueError(f"unsupported timestamp type: {type(value).__name__}")
