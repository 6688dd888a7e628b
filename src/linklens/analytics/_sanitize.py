"""Clamp malformed telemetry numbers instead of failing the aggregate."""

import logging
import math
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


def clean_number(
    value: float | int | None,
    field: str,
    low: float = 0.0,
    high: float | None = None,
) -> float:
    """Return ``value`` clamped to ``[low, high]``.

    None, NaN and infinities collapse to ``low``. Any adjustment other than
    a missing value is logged so bad upstream data stays visible.
    """
    if value is None:
        return low
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        logger.warning("Sanitized %s: %r is not a finite number, using %s", field, value, low)
        return low
    if number < low:
        logger.warning("Sanitized %s: %r below %s", field, value, low)
        return low
    if high is not None and number > high:
        logger.warning("Sanitized %s: %r above %s", field, value, high)
        return high
    return number


def clean_count(value: int | float | None, field: str, high: int | None = None) -> int:
    """Integer variant of :func:`clean_number` for counters and page numbers."""
    return int(clean_number(value, field, 0.0, None if high is None else float(high)))


def percent(part: float, whole: float) -> int:
    """Integer percentage of ``part`` over ``whole``; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return round(part / whole * 100)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
