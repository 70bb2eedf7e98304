from typing import Mapping, Optional

from .config import Settings
from .logs import get_logger
from .providers import CreateSessionResult, PaymentAdapter

log = get_logger("checkout")


def request_base_url(headers: Mapping[str, str],
                     configured: Optional[str] = None) -> str:
    if configured:
        return configured.rstrip("/")
    host = headers.get("host", "localhost:8000")
    proto = headers.get("x-forwarded-proto", "https")
    return f"{proto}://{host}"


async def create_checkout(adapter: PaymentAdapter, settings: Settings,
                          base_url: str) -> CreateSessionResult:
    """One-off, single item, fixed-price checkout.

    Raises ConfigurationError or ProviderError; the endpoint turns both
    into an ``{"error": ...}`` body.
    """
    log.info("checkout_create", base_url=base_url, provider=adapter.name)
    session = await adapter.create_checkout(
        success_url=f"{base_url}/?success=true",
        cancel_url=f"{base_url}/?canceled=true",
        product_name=settings.checkout_product_name,
        description=settings.checkout_product_description,
        unit_amount=settings.checkout_unit_amount,
        currency=settings.checkout_currency,
    )
    log.info("checkout_created", session_id=session["session_id"])
    return session
