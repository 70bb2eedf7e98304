from abc import ABC, abstractmethod
import json
from typing import Any, Dict, Mapping, Optional, TypedDict

from ..errors import InvalidPayloadError

CHECKOUT_COMPLETED = "checkout.session.completed"


class CreateSessionResult(TypedDict):
    session_id: str
    url: str


# ----------------------------
# Payment Adapter Interface
# ----------------------------
class PaymentAdapter(ABC):
    name = "abstract"
    # header carrying the webhook signature
    signature_header = ""

    @property
    @abstractmethod
    def webhook_secret(self) -> Optional[str]: ...

    @abstractmethod
    async def create_checkout(
        self, *, success_url: str, cancel_url: str, product_name: str,
        description: str, unit_amount: int, currency: str,
    ) -> CreateSessionResult: ...

    @abstractmethod
    def verify_signature(self, payload: bytes, signature: str,
                         secret: str) -> None:
        """Raise SignatureError unless ``signature`` matches ``payload``."""

    def verify_webhook(self, payload: bytes,
                       headers: Mapping[str, str]) -> Dict[str, Any]:
        """Return the event carried by a webhook request.

        The body is only checked when both a signature header and a signing
        secret are present. Otherwise it is parsed as-is, which is what
        local testing without a webhook secret relies on.
        """
        sig = headers.get(self.signature_header)
        secret = self.webhook_secret
        if sig and secret:
            self.verify_signature(payload, sig, secret)
        try:
            event = json.loads(payload.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidPayloadError("Invalid JSON") from e
        if not isinstance(event, dict):
            raise InvalidPayloadError("Event must be a JSON object")
        return event

    def event_kind(self, event: Dict[str, Any]) -> str:
        kind = event.get("type")
        return kind if isinstance(kind, str) else ""

    def event_object(self, event: Dict[str, Any]) -> Dict[str, Any]:
        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}
