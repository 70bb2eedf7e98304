"""
Shared fixtures: settings, payments, an in-memory record store and an
in-process HTTP client for the FastAPI app.
"""
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from socialproof.config import Settings
from socialproof.model.cache import RecentPaymentsCache
from socialproof.model.payment import Payment
from socialproof.providers import MockPay
from socialproof.server import create_app

from tests.factories import MemoryStore


@pytest.fixture
def make_payment():
    counter = {"n": 0}

    def _make(**kw) -> Payment:
        counter["n"] += 1
        n = counter["n"]
        defaults = dict(
            id=f"cs_test_{n}",
            customer_name=f"Customer {n}",
            amount=Decimal("9.00"),
            currency="USD",
            timestamp=1_700_000_000.0 + n,
            email=None,
            plan=None,
        )
        defaults.update(kw)
        return Payment(**defaults)

    return _make


@pytest.fixture
def settings():
    return Settings(
        payment_provider="mock",
        mock_secret="whsec_test",
        mock_webhook_url="http://test/api/webhook",
        base_url="http://test",
    )


@pytest.fixture
def cache():
    return RecentPaymentsCache()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def mockpay(settings):
    return MockPay(secret=settings.mock_secret)


@pytest_asyncio.fixture
async def client(settings, cache, store, mockpay):
    app = create_app(settings, cache=cache, store=store, adapter=mockpay,
                     http=httpx.AsyncClient(
                         transport=httpx.MockTransport(
                             lambda request: httpx.Response(200, json={})
                         )
                     ))
    async with AsyncClient(transport=ASGITransport(app=app),
                           base_url="http://test") as ac:
        yield ac
