from typing import Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from ..errors import ConfigurationError, ProviderError, SignatureError
from ..logs import get_logger
from ._base import CreateSessionResult, PaymentAdapter

log = get_logger("stripe")


class StripeAdapter(PaymentAdapter):
    name = "stripe"
    signature_header = "stripe-signature"

    def __init__(self, secret_key: Optional[str],
                 webhook_secret: Optional[str]) -> None:
        self.secret_key = secret_key
        self._webhook_secret = webhook_secret

    @property
    def webhook_secret(self) -> Optional[str]:
        return self._webhook_secret

    async def create_checkout(
        self, *, success_url: str, cancel_url: str, product_name: str,
        description: str, unit_amount: int, currency: str,
    ) -> CreateSessionResult:
        if not self.secret_key:
            raise ConfigurationError("Stripe secret key not configured")
        try:
            # the SDK call blocks; keep it off the event loop
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                api_key=self.secret_key,
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": currency,
                        "product_data": {
                            "name": product_name,
                            "description": description,
                        },
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            log.error("stripe_checkout_failed", message=str(e),
                      code=getattr(e, "code", None))
            raise ProviderError(
                e.user_message or str(e) or "Failed to create checkout session"
            ) from e
        return {"session_id": session.id, "url": session.url}

    def verify_signature(self, payload: bytes, signature: str,
                         secret: str) -> None:
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8", errors="replace"),
                signature,
                secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureError(str(e)) from e
