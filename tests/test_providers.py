import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe

from socialproof import providers
from socialproof.config import Settings
from socialproof.errors import (
    ConfigurationError, InvalidPayloadError, ProviderError, SignatureError,
)
from socialproof.providers import MockPay, StripeAdapter, new_adapter

from tests.factories import as_body, completed_event

CHECKOUT_KW = dict(
    success_url="https://shop.example/?success=true",
    cancel_url="https://shop.example/?canceled=true",
    product_name="Test Product",
    description="Social Proof Demo Purchase",
    unit_amount=900,
    currency="usd",
)


def stripe_header(payload: bytes, secret: str, ts=None) -> str:
    ts = int(time.time()) if ts is None else ts
    signed = f"{ts}.{payload.decode()}".encode()
    v1 = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={v1}"


# ----------------------------
# MockPay
# ----------------------------
class TestMockPay:

    async def test_create_checkout_points_at_hosted_page(self, mockpay):
        session = await mockpay.create_checkout(**CHECKOUT_KW)
        sid = session["session_id"]
        assert sid.startswith("cs_mock_")
        assert session["url"] == f"https://shop.example/mockpay/{sid}"
        assert mockpay.get_session(sid)["unit_amount"] == 900
        assert mockpay.get_session("cs_mock_unknown") is None

    def test_signed_body_verifies(self, mockpay):
        body = as_body(completed_event())
        headers = {"x-mockpay-signature": mockpay.sign(body)}
        event = mockpay.verify_webhook(body, headers)
        assert event["type"] == "checkout.session.completed"

    def test_tampered_body_is_rejected(self, mockpay):
        body = as_body(completed_event(amount_total=900))
        sig = mockpay.sign(body)
        tampered = as_body(completed_event(amount_total=1))
        with pytest.raises(SignatureError):
            mockpay.verify_webhook(tampered, {"x-mockpay-signature": sig})

    def test_wrong_secret_is_rejected(self, mockpay):
        body = as_body(completed_event())
        sig = MockPay(secret="other").sign(body)
        with pytest.raises(SignatureError):
            mockpay.verify_webhook(body, {"x-mockpay-signature": sig})

    def test_unsigned_body_is_parsed(self, mockpay):
        event = mockpay.verify_webhook(as_body(completed_event()), {})
        assert mockpay.event_object(event)["id"] == "cs_test_abc"

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b"\xff\xfe"])
    def test_invalid_payload(self, mockpay, body):
        with pytest.raises(InvalidPayloadError):
            mockpay.verify_webhook(body, {})

    async def test_completed_event_carries_session(self, mockpay):
        session = await mockpay.create_checkout(**CHECKOUT_KW)
        sid = session["session_id"]
        payload = mockpay.build_completed_event(sid, name="Ann", email=None)
        event = json.loads(payload)
        obj = mockpay.event_object(event)
        assert mockpay.event_kind(event) == "checkout.session.completed"
        assert obj["id"] == sid
        assert obj["amount_total"] == 900
        assert obj["customer_details"] == {"name": "Ann", "email": None}
        assert obj["metadata"]["description"] == "Social Proof Demo Purchase"


# ----------------------------
# Stripe
# ----------------------------
class TestStripeAdapter:

    def test_valid_signature(self):
        adapter = StripeAdapter("sk_test", "whsec_abc")
        body = as_body(completed_event())
        event = adapter.verify_webhook(
            body, {"stripe-signature": stripe_header(body, "whsec_abc")}
        )
        assert event["data"]["object"]["id"] == "cs_test_abc"

    def test_bad_signature(self):
        adapter = StripeAdapter("sk_test", "whsec_abc")
        body = as_body(completed_event())
        header = stripe_header(body, "whsec_other")
        with pytest.raises(SignatureError):
            adapter.verify_webhook(body, {"stripe-signature": header})

    def test_stale_signature(self):
        adapter = StripeAdapter("sk_test", "whsec_abc")
        body = as_body(completed_event())
        header = stripe_header(body, "whsec_abc", ts=int(time.time()) - 3600)
        with pytest.raises(SignatureError):
            adapter.verify_webhook(body, {"stripe-signature": header})

    def test_no_webhook_secret_skips_verification(self):
        adapter = StripeAdapter("sk_test", None)
        body = as_body(completed_event())
        event = adapter.verify_webhook(body, {"stripe-signature": "t=1,v1=x"})
        assert event["type"] == "checkout.session.completed"

    async def test_missing_secret_key(self):
        with pytest.raises(ConfigurationError):
            await StripeAdapter(None, None).create_checkout(**CHECKOUT_KW)

    async def test_create_checkout(self, monkeypatch):
        calls = []

        def fake_create(**kw):
            calls.append(kw)
            return SimpleNamespace(id="cs_live_1",
                                   url="https://checkout.stripe.com/c/1")

        monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
        session = await StripeAdapter("sk_test", None).create_checkout(
            **CHECKOUT_KW
        )

        assert session == {"session_id": "cs_live_1",
                           "url": "https://checkout.stripe.com/c/1"}
        kw = calls[0]
        assert kw["api_key"] == "sk_test"
        assert kw["mode"] == "payment"
        assert kw["success_url"] == CHECKOUT_KW["success_url"]
        item = kw["line_items"][0]
        assert item["quantity"] == 1
        assert item["price_data"]["unit_amount"] == 900
        assert item["price_data"]["product_data"]["name"] == "Test Product"

    async def test_provider_rejection(self, monkeypatch):
        def fake_create(**kw):
            raise stripe.StripeError("Your card was declined.")

        monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
        with pytest.raises(ProviderError, match="declined"):
            await StripeAdapter("sk_test", None).create_checkout(
                **CHECKOUT_KW
            )


def test_new_adapter():
    mock = new_adapter(Settings(payment_provider="mock", mock_secret="s"))
    assert isinstance(mock, MockPay)
    assert mock.webhook_secret == "s"

    real = new_adapter(Settings(stripe_secret_key="sk",
                                stripe_webhook_secret="wh"))
    assert isinstance(real, StripeAdapter)
    assert real.secret_key == "sk"
    assert real.webhook_secret == "wh"


def test_new_adapter_warns_on_unknown_provider(monkeypatch):
    fake_log = MagicMock()
    monkeypatch.setattr(providers, "log", fake_log)

    adapter = new_adapter(Settings(payment_provider="mokc"))

    assert isinstance(adapter, StripeAdapter)
    fake_log.warning.assert_called_once()
    args, kwargs = fake_log.warning.call_args
    assert args == ("payment_provider_unknown",)
    assert kwargs["provider"] == "mokc"


def test_new_adapter_known_providers_do_not_warn(monkeypatch):
    fake_log = MagicMock()
    monkeypatch.setattr(providers, "log", fake_log)
    new_adapter(Settings(payment_provider="stripe"))
    new_adapter(Settings(payment_provider="mock"))
    fake_log.warning.assert_not_called()
