# Operator endpoints' helpers: synthetic payments and record-store probes.
import random
import uuid
from decimal import Decimal
from typing import Any, Dict

from .errors import ConfigurationError, RecordStoreError
from .helpers import now_ts
from .model.payment import Payment
from .model.recordstore import RecordStore

FAKE_NAMES = (
    "John Doe",
    "Jane Smith",
    "Mike Johnson",
    "Sarah Williams",
    "David Brown",
    "Emily Davis",
    "Chris Wilson",
    "Lisa Anderson",
)


def synthetic_payment(rng=random) -> Payment:
    name = rng.choice(FAKE_NAMES)
    amount = Decimal(str(round(rng.random() * 100 + 10, 2))).quantize(
        Decimal("0.01")
    )
    return Payment(
        id=f"test_{int(now_ts() * 1000)}_{uuid.uuid4().hex[:9]}",
        customer_name=name,
        amount=amount,
        currency="USD",
        timestamp=now_ts(),
        email=f"{name.lower().replace(' ', '.')}@example.com",
    )


def probe_payment() -> Payment:
    return Payment(
        id=f"cs_test_{int(now_ts() * 1000)}",
        customer_name="Test Customer",
        amount=Decimal("99.99"),
        currency="USD",
        timestamp=now_ts(),
        email="test@example.com",
    )


async def probe_write(store: RecordStore) -> Dict[str, Any]:
    payment = probe_payment()
    out: Dict[str, Any] = {
        "backend": store.name,
        "payment": payment.to_dict(),
        "envCheck": store.env_check(),
    }
    try:
        response = await store.create_or_raise(payment)
    except ConfigurationError as e:
        out.update(success=False, error=str(e),
                   message="Record store is not configured")
        return out
    except RecordStoreError as e:
        out.update(success=False, error=str(e), statusCode=e.status_code,
                   response=e.response,
                   message="Failed to save payment to record store")
        return out
    out.update(success=True, response=response,
               message="Payment saved to record store successfully!")
    return out


async def probe_read(store: RecordStore, limit: int = 20) -> Dict[str, Any]:
    result = await store.list(limit)
    out: Dict[str, Any] = {
        "success": result.available,
        "backend": store.name,
        "count": len(result.payments),
        "payments": [p.to_dict() for p in result.payments],
        "envCheck": store.env_check(),
    }
    if result.error:
        out["error"] = result.error
    return out
