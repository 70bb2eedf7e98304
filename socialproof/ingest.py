from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import Settings
from .helpers import minor_to_major, now_ts
from .logs import get_logger
from .model.cache import RecentPaymentsCache
from .model.payment import ANONYMOUS, DEFAULT_CURRENCY, Payment
from .model.recordstore import RecordStore
from .providers import CHECKOUT_COMPLETED, PaymentAdapter

log = get_logger("ingest")

DEFAULT_PLAN = "Basic"
PREMIUM_PLAN = "Premium"

# checked in order, first hit wins
PLAN_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("plus", "Pro Plus"),
    ("premium", PREMIUM_PLAN),
)


# ----------------------------
# Plan resolution
# ----------------------------
class PlanResolver:
    """Price id map, then description keywords, then an amount threshold,
    then the default tier.
    """

    def __init__(self, price_map: Optional[Mapping[str, str]] = None,
                 premium_threshold: Decimal = Decimal("20.00"),
                 default_plan: str = DEFAULT_PLAN) -> None:
        self.price_map = dict(price_map or {})
        self.premium_threshold = premium_threshold
        self.default_plan = default_plan

    @classmethod
    def from_settings(cls, settings: Settings) -> PlanResolver:
        return cls(
            price_map=settings.plan_price_map,
            premium_threshold=settings.plan_premium_threshold,
        )

    def resolve(self, *, price_ids: Iterable[str] = (),
                description: Optional[str] = None,
                amount: Decimal = Decimal(0)) -> str:
        for pid in price_ids:
            if pid in self.price_map:
                return self.price_map[pid]
        if description:
            text = description.lower()
            for keyword, plan in PLAN_KEYWORDS:
                if keyword in text:
                    return plan
        if amount >= self.premium_threshold:
            return PREMIUM_PLAN
        return self.default_plan


# ----------------------------
# Event -> Payment
# ----------------------------
def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    # provider fields are free-form JSON; anything but a non-empty string
    # counts as missing
    if isinstance(value, str) and value.strip():
        return value
    return None


def _line_items(session: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = session.get("line_items") or {}
    if isinstance(items, dict):
        items = items.get("data") or []
    if not isinstance(items, list):
        return []
    return [i for i in items if isinstance(i, dict)]


def price_ids_of(session: Dict[str, Any]) -> List[str]:
    ids: List[str] = []
    for item in _line_items(session):
        price = item.get("price")
        if isinstance(price, dict) and _text(price.get("id")):
            ids.append(price["id"])
        elif _text(price):
            ids.append(price)
    meta_price = _text(_dict(session.get("metadata")).get("price_id"))
    if meta_price:
        ids.append(meta_price)
    return ids


def description_of(session: Dict[str, Any]) -> Optional[str]:
    meta = _dict(session.get("metadata"))
    if _text(meta.get("description")):
        return meta["description"]
    for item in _line_items(session):
        if _text(item.get("description")):
            return item["description"]
        product = _dict(_dict(item.get("price")).get("product"))
        text = _text(product.get("description")) or _text(product.get("name"))
        if text:
            return text
    return None


def payment_from_session(session: Dict[str, Any],
                         plans: PlanResolver,
                         now: Optional[float] = None) -> Payment:
    details = _dict(session.get("customer_details"))
    amount = minor_to_major(session.get("amount_total") or 0)
    currency = (_text(session.get("currency")) or DEFAULT_CURRENCY).upper()
    sid = session.get("id")
    return Payment(
        id=sid if isinstance(sid, str) else "",
        customer_name=_text(details.get("name")) or ANONYMOUS,
        amount=amount,
        currency=currency,
        timestamp=now_ts() if now is None else now,
        email=_text(details.get("email")),
        plan=plans.resolve(
            price_ids=price_ids_of(session),
            description=description_of(session),
            amount=amount,
        ),
    )


def process_event(event: Dict[str, Any], *, adapter: PaymentAdapter,
                  cache: RecentPaymentsCache,
                  plans: PlanResolver) -> Tuple[Dict[str, Any],
                                                Optional[Payment]]:
    """Apply one verified provider event to the cache.

    Returns the acknowledgment body and the new payment, if one was
    recorded. The caller persists that payment to the record store.
    """
    kind = adapter.event_kind(event)
    if kind != CHECKOUT_COMPLETED:
        log.debug("webhook_event_ignored", event_type=kind)
        return {"received": True}, None

    session = adapter.event_object(event)
    payment = payment_from_session(session, plans)
    if payment.id and cache.contains(payment.id):
        # provider redelivery
        log.info("webhook_event_duplicate", payment_id=payment.id)
        return {"received": True, "duplicate": True}, None

    cache.add(payment)
    log.info("payment_ingested", payment_id=payment.id,
             customer_name=payment.customer_name,
             amount=str(payment.amount), currency=payment.currency,
             plan=payment.plan)
    return {"received": True}, payment


async def persist_payment(store: RecordStore, payment: Payment) -> bool:
    # runs after the webhook response; nothing may escape from here
    try:
        return await store.create(payment)
    except Exception:
        log.exception("record_store_write_crashed", backend=store.name,
                      payment_id=payment.id)
        return False
