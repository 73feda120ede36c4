"""
Helper utilities
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how timestamps are stored"""
    return datetime.utcnow()


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def chunk_list(lst: List, chunk_size: int) -> List[List]:
    """Split list into chunks"""
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round half away from zero.

    Python's round() uses banker's rounding (round(66.5) == 66); scores and
    percentages here always round .5 up so the same input yields the same
    integer regardless of float parity.
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_int(value: float) -> int:
    """Round half up to an int"""
    return int(round_half_up(value))


def clamp_score(value: float) -> int:
    """Round and clamp a score into 0-100"""
    return max(0, min(100, round_int(value)))


def pick_field(row: Mapping[str, Any], *names: str, default: Any = "") -> Any:
    """
    Return the first non-empty value among alternate field names.

    Export headers have changed over time (e.g. 'offerId', 'offer-id',
    'Offer Id', 'offer_id'); all known variants are checked in order.
    """
    for name in names:
        value = row.get(name)
        if value is not None and value != "":
            return value
    return default


def dig(data: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dicts, returning default on any missing key"""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Parse a number from JSON/CSV input, falling back to default"""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    """Parse an int from JSON/CSV input, falling back to default"""
    number = to_float(value, None)
    if number is None:
        return default
    return int(number)


def dedupe_keep_order(values: List[str]) -> List[str]:
    """Drop empty and repeated values, keeping first occurrence order"""
    seen: Dict[str, bool] = {}
    for value in values:
        if value and value not in seen:
            seen[value] = True
    return list(seen)
