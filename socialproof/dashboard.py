from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from .helpers import now_ts
from .model.payment import Payment

ALL_PLANS = "all"


def relative_time(ts: float, now: Optional[float] = None) -> str:
    seconds = int((now_ts() if now is None else now) - ts)
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    return f"{seconds // 86400} days ago"


def filter_by_plan(payments: Sequence[Payment],
                   plan: Optional[str]) -> List[Payment]:
    if not plan or plan == ALL_PLANS:
        return list(payments)
    return [p for p in payments if p.plan == plan]


def available_plans(payments: Sequence[Payment]) -> List[str]:
    return sorted({p.plan for p in payments if p.plan})


def summarize(payments: Sequence[Payment],
              now: Optional[float] = None) -> Dict[str, Any]:
    """Stats shown above the purchase cards."""
    revenue = sum((p.amount for p in payments), Decimal("0.00"))
    latest = (
        relative_time(payments[0].timestamp, now)
        if payments else "No purchases yet"
    )
    return {
        "count": len(payments),
        "revenue": f"{revenue:.2f}",
        "latest": latest,
    }
