import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional


# ----------------------------
# Helpers
# ----------------------------
CENTS = Decimal("0.01")


def now_ts() -> float:
    return time.time()


def to_iso(ts: float | None) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def from_iso(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        # python < 3.11 does not accept a trailing "Z"
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def to_millis(ts: float) -> int:
    return int(round(ts * 1000))


def minor_to_major(minor: Any) -> Decimal:
    # provider amounts are integer minor units (cents)
    if isinstance(minor, bool):
        return Decimal("0.00")
    try:
        value = Decimal(str(minor)) / 100
        if not value.is_finite():
            return Decimal("0.00")
        if value < 0:
            value = Decimal(0)
        return value.quantize(CENTS)
    except (ArithmeticError, ValueError):
        return Decimal("0.00")


def to_decimal(value: Any, default: Decimal = Decimal("0.00")) -> Decimal:
    if value is None or isinstance(value, bool):
        return default
    try:
        d = Decimal(str(value))
        if not d.is_finite():
            return default
        return d.quantize(CENTS)
    except (ArithmeticError, ValueError):
        return default
