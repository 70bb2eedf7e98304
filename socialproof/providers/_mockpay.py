import base64
import hashlib
import hmac
import json
import time
import uuid
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from ..errors import SignatureError
from ._base import CHECKOUT_COMPLETED, CreateSessionResult, PaymentAdapter


# ----------------------------
# MockPay implementation
# ----------------------------
class MockPay(PaymentAdapter):
    """Local stand-in for a hosted checkout.

    Sessions live in process memory. The hosted page at
    ``/mockpay/{session_id}`` lets a user finish the purchase, which posts a
    signed ``checkout.session.completed`` event to our own webhook.
    """
    name = "mock"
    signature_header = "x-mockpay-signature"

    def __init__(self, secret: str) -> None:
        self.secret = secret
        self.sessions: Dict[str, Dict[str, Any]] = {}

    @property
    def webhook_secret(self) -> Optional[str]:
        return self.secret

    async def create_checkout(
        self, *, success_url: str, cancel_url: str, product_name: str,
        description: str, unit_amount: int, currency: str,
    ) -> CreateSessionResult:
        sid = f"cs_mock_{uuid.uuid4().hex}"
        self.sessions[sid] = {
            "product_name": product_name,
            "description": description,
            "unit_amount": unit_amount,
            "currency": currency,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        # hosted page lives on the same origin as the dashboard
        parts = urlsplit(success_url)
        url = f"{parts.scheme}://{parts.netloc}/mockpay/{sid}"
        return {"session_id": sid, "url": url}

    def get_session(self, sid: str) -> Optional[Dict[str, Any]]:
        return self.sessions.get(sid)

    def sign(self, payload: bytes) -> str:
        mac = hmac.new(self.secret.encode(), payload, hashlib.sha256).digest()
        return base64.b64encode(mac).decode()

    def verify_signature(self, payload: bytes, signature: str,
                         secret: str) -> None:
        mac = hmac.new(secret.encode(), payload, hashlib.sha256).digest()
        expected = base64.b64encode(mac).decode()
        if not hmac.compare_digest(expected, signature):
            raise SignatureError("Invalid signature")

    def build_completed_event(self, sid: str, *, name: Optional[str],
                              email: Optional[str]) -> bytes:
        session = self.sessions[sid]
        event = {
            "id": f"evt_{uuid.uuid4().hex}",
            "type": CHECKOUT_COMPLETED,
            "created": int(time.time()),
            "data": {"object": {
                "id": sid,
                "object": "checkout.session",
                "amount_total": session["unit_amount"],
                "currency": session["currency"],
                "customer_details": {"name": name, "email": email},
                "metadata": {"description": session["description"]},
            }},
        }
        return json.dumps(event).encode()
