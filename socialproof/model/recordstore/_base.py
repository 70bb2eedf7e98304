from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ...errors import ConfigurationError, RecordStoreError
from ...helpers import from_iso, now_ts, to_decimal, to_iso
from ...logs import get_logger
from ..payment import ANONYMOUS, DEFAULT_CURRENCY, Payment

log = get_logger("recordstore")


@dataclass
class ListResult:
    """Outcome of ``RecordStore.list``.

    ``available`` is False when the backend could not be asked at all
    (missing credentials, transport failure, garbage response). An available
    result with no payments means the store really is empty.
    """
    available: bool
    payments: List[Payment] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, error: str) -> ListResult:
        return cls(available=False, payments=[], error=error)


# ----------------------------
# Field mapping shared by all backends
# ----------------------------
def to_fields(payment: Payment, *,
              with_plan: bool = True) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "sessionId": payment.id,
        "customerName": payment.customer_name,
        "amount": float(payment.amount),
        "currency": payment.currency,
        "email": payment.email or "",
        "timestamp": to_iso(payment.timestamp),
    }
    if with_plan and payment.plan:
        fields["plan"] = payment.plan
    return fields


def from_fields(fields: Mapping[str, Any],
                fallback_id: str = "",
                amount: Any = None) -> Payment:
    ts = from_iso(fields.get("timestamp"))
    return Payment(
        id=str(fields.get("sessionId") or fallback_id),
        customer_name=fields.get("customerName") or ANONYMOUS,
        amount=to_decimal(fields.get("amount") if amount is None else amount),
        currency=(fields.get("currency") or DEFAULT_CURRENCY).upper(),
        timestamp=ts if ts is not None else now_ts(),
        email=fields.get("email") or None,
        plan=fields.get("plan") or None,
    )


# ----------------------------
# Record Store Interface
# ----------------------------
class RecordStore(ABC):
    name = "abstract"

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def env_check(self) -> Dict[str, Any]:
        return {}

    @abstractmethod
    async def create_or_raise(self, payment: Payment) -> Any:
        """Write one payment. Returns the backend's raw answer.

        Raises ConfigurationError when credentials are missing and
        RecordStoreError for anything the backend or transport rejects.
        """

    @abstractmethod
    async def fetch_recent(self, limit: int) -> List[Payment]:
        """Newest-first payments, at most ``limit``. May raise."""

    async def create(self, payment: Payment) -> bool:
        try:
            await self.create_or_raise(payment)
        except ConfigurationError as e:
            log.warning("record_store_not_configured", backend=self.name,
                        error=str(e))
            return False
        except RecordStoreError as e:
            log.error("record_store_write_failed", backend=self.name,
                      payment_id=payment.id, error=str(e),
                      status_code=e.status_code, response=e.response)
            return False
        log.info("record_store_write_ok", backend=self.name,
                 payment_id=payment.id)
        return True

    async def list(self, limit: int = 20) -> ListResult:
        if limit <= 0:
            return ListResult(available=True)
        try:
            payments = await self.fetch_recent(limit)
        except ConfigurationError as e:
            return ListResult.unavailable(str(e))
        except Exception as e:
            # never raise from list: callers fall back to the cache
            log.error("record_store_read_failed", backend=self.name,
                      error=str(e), error_type=type(e).__name__)
            return ListResult.unavailable(str(e) or type(e).__name__)
        return ListResult(available=True, payments=payments[:limit])


class NullRecordStore(RecordStore):
    """Used when no backend is configured."""
    name = "none"

    async def create_or_raise(self, payment: Payment) -> Any:
        raise ConfigurationError("no record store backend configured")

    async def fetch_recent(self, limit: int) -> List[Payment]:
        raise ConfigurationError("no record store backend configured")
