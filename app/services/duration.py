"""
Duration parsing for labor hours.
Accepts the formats people actually type: "1,30", "1h30", "45min", "1:30", "2.5".
"""
import math
import re
from typing import Optional, Union


_MINUTES_RE = re.compile(r"^(\d+)\s*(min|m)$", re.IGNORECASE)


def _to_number(value: str) -> Optional[float]:
    """Strict numeric conversion; blank strings are not numbers here."""
    value = value.strip()
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _split_hours_minutes(raw: str, sep: str) -> Optional[float]:
    hours_part, _, minutes_part = raw.partition(sep)
    hours = _to_number(hours_part)
    # "2h" means two hours flat
    minutes = _to_number(minutes_part) if minutes_part.strip() else 0.0
    if hours is None or minutes is None:
        return None
    if not 0 <= minutes <= 59:
        return None
    return hours + minutes / 60


def _decimal(raw: str) -> float:
    number = _to_number(raw.replace(",", ".", 1))
    return number if number is not None else 0.0


def parse_hours(value: Union[str, float, int, None]) -> float:
    """
    Convert a free-form duration into fractional hours.

    Rules are tried in order and the first match wins:
      1. "<N>min" / "<N>m"      -> N / 60
      2. "<H>h<M>"              -> H + M / 60 (M in 0..59)
      3. "<H>:<M>"              -> H + M / 60 (M in 0..59)
      4. "<H>,<M>"              -> H + M / 60 (M in 0..59), else decimal comma
      5. anything else          -> decimal, "," accepted as separator

    Returns 0 when nothing parses; callers treat 0 as an invalid duration.
    """
    if value is None:
        return 0.0
    raw = str(value).strip()
    if not raw:
        return 0.0

    result: Optional[float] = None

    match = _MINUTES_RE.match(raw)
    if match:
        result = int(match.group(1)) / 60

    if result is None and "h" in raw:
        result = _split_hours_minutes(raw, "h")

    if result is None and ":" in raw:
        result = _split_hours_minutes(raw, ":")

    if result is None:
        if "," in raw:
            result = _split_hours_minutes(raw, ",")
            if result is None:
                result = _decimal(raw)
        else:
            result = _decimal(raw)

    if result < 0 or not math.isfinite(result):
        return 0.0
    return result
