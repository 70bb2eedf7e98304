from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from ..helpers import to_millis

ANONYMOUS = "Anonymous"
DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True)
class Payment:
    """One successful purchase, as shown on the dashboard.

    ``timestamp`` is the ingestion time in epoch seconds. On the wire it is
    sent as epoch milliseconds, which is what the dashboard script expects.
    """
    id: str
    customer_name: str
    amount: Decimal
    currency: str
    timestamp: float
    email: Optional[str] = None
    plan: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customerName": self.customer_name,
            "amount": float(self.amount),
            "currency": self.currency,
            "timestamp": to_millis(self.timestamp),
            "email": self.email,
            "plan": self.plan,
        }
