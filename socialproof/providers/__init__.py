# providers/__init__.py
from ..config import Settings
from ..logs import get_logger
from ._base import PaymentAdapter, CreateSessionResult, CHECKOUT_COMPLETED
from ._mockpay import MockPay
from ._stripe import StripeAdapter

log = get_logger("providers")

PROVIDERS = ("stripe", "mock")


def new_adapter(settings: Settings) -> PaymentAdapter:
    provider = settings.payment_provider
    if provider == "mock":
        return MockPay(secret=settings.mock_secret)
    if provider != "stripe":
        log.warning("payment_provider_unknown", provider=provider,
                    expected=list(PROVIDERS), using="stripe")
    return StripeAdapter(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
    )


__all__ = [
    "PaymentAdapter", "CreateSessionResult", "CHECKOUT_COMPLETED",
    "MockPay", "StripeAdapter", "new_adapter", "PROVIDERS",
]
