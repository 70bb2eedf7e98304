from __future__ import annotations
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
import redis.asyncio as redis
from fastapi import BackgroundTasks, Depends, FastAPI, Form, HTTPException
from fastapi import Request
from fastapi.responses import HTMLResponse, ORJSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.status import HTTP_303_SEE_OTHER

from .checkout import create_checkout, request_base_url
from .config import (
    POLL_INTERVAL_SECONDS, RECENT_PAYMENTS_LIMIT, Settings
)
from .dashboard import (
    ALL_PLANS, available_plans, filter_by_plan, summarize
)
from .diagnostics import probe_read, probe_write, synthetic_payment
from .errors import (
    ConfigurationError, InvalidPayloadError, ProviderError, SignatureError
)
from .infra.sql import make_async_engine
from .ingest import PlanResolver, persist_payment, process_event
from .logs import configure_logging, get_logger
from .model.cache import RecentPaymentsCache
from .model.recordstore import NullRecordStore, RecordStore, new_store
from .providers import MockPay, PaymentAdapter, new_adapter
from .query import get_recent_payments

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

log = get_logger("server")


def create_app(settings: Optional[Settings] = None, *,
               cache: Optional[RecentPaymentsCache] = None,
               store: Optional[RecordStore] = None,
               adapter: Optional[PaymentAdapter] = None,
               http: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the app. Anything passed in is used as-is and not closed on
    shutdown; everything else is created from ``settings``.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    # ---
    # startup / shutdown
    # ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(
            "startup",
            provider=app.state.adapter.name,
            record_store=settings.record_store_backend,
        )
        if app.state.http is None:
            app.state.http = httpx.AsyncClient(timeout=5.0)
        if app.state.store is None:
            app.state.store = await _start_record_store(
                settings, app.state.http
            )
        try:
            yield
        finally:
            if app.state.owned["store"] and app.state.store is not None:
                await app.state.store.close()
                app.state.store = None
            if app.state.owned["http"] and app.state.http is not None:
                await app.state.http.aclose()
                app.state.http = None

    app = FastAPI(
        title="SocialProof",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if cache is None:
        cache = RecentPaymentsCache()
    if adapter is None:
        adapter = new_adapter(settings)
    app.state.cache = cache
    app.state.adapter = adapter
    app.state.plans = PlanResolver.from_settings(settings)
    app.state.http = http
    app.state.store = store
    app.state.owned = {"http": http is None, "store": store is None}

    _install_routes(app)
    return app


async def _start_record_store(settings: Settings,
                              http: httpx.AsyncClient) -> RecordStore:
    backend = settings.record_store_backend
    engine = None
    r = None
    if backend == "sql" and settings.database_url:
        engine = make_async_engine(settings.database_url)
    if backend == "redis" and settings.redis_url:
        r = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
        )
    if backend in ("sql", "redis") and engine is None and r is None:
        log.warning("record_store_not_configured", backend=backend)
        store = NullRecordStore()
    else:
        store = new_store(settings, http=http, engine=engine, r=r)
    try:
        await store.start()
    except Exception as e:
        # an unreachable database must not keep the dashboard down
        log.error("record_store_start_failed", backend=store.name,
                  error=str(e))
    return store


# ----------------------------
# Dependencies
# ----------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> RecentPaymentsCache:
    return request.app.state.cache


def get_adapter(request: Request) -> PaymentAdapter:
    return request.app.state.adapter


def get_store(request: Request) -> RecordStore:
    store = request.app.state.store
    if store is None:
        raise RuntimeError("record store not initialized")
    return store


def get_http(request: Request) -> httpx.AsyncClient:
    client = request.app.state.http
    if client is None:
        raise RuntimeError("http client not initialized")
    return client


def get_mockpay(adapter: PaymentAdapter = Depends(get_adapter)) -> MockPay:
    if not isinstance(adapter, MockPay):
        raise HTTPException(404, detail="mock payments are not enabled")
    return adapter


def _install_routes(app: FastAPI) -> None:

    # ----------------------------
    # Dashboard
    # ----------------------------
    @app.get("/", response_class=HTMLResponse)
    async def dashboard_page(
        request: Request,
        cache: RecentPaymentsCache = Depends(get_cache),
        store: RecordStore = Depends(get_store),
    ):
        payments = await get_recent_payments(cache, store)
        plans = available_plans(payments)
        selected = request.query_params.get("plan") or ALL_PLANS
        if selected not in plans:
            selected = ALL_PLANS
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "site_name": "Social Proof Dashboard",
                "stats": summarize(filter_by_plan(payments, selected)),
                "plans": plans,
                "selected_plan": selected,
                "payments": [p.to_dict() for p in payments],
                "poll_ms": POLL_INTERVAL_SECONDS * 1000,
                "success": request.query_params.get("success") == "true",
                "canceled": request.query_params.get("canceled") == "true",
            },
        )

    # ----------------------------
    # API: recent payments (polled by the dashboard)
    # ----------------------------
    @app.get("/api/payments")
    async def api_payments(
        cache: RecentPaymentsCache = Depends(get_cache),
        store: RecordStore = Depends(get_store),
    ):
        payments = await get_recent_payments(
            cache, store, limit=RECENT_PAYMENTS_LIMIT
        )
        return {"payments": [p.to_dict() for p in payments]}

    # ----------------------------
    # Checkout
    # ----------------------------
    @app.post("/api/create-checkout")
    async def api_create_checkout(
        request: Request,
        settings: Settings = Depends(get_settings),
        adapter: PaymentAdapter = Depends(get_adapter),
    ):
        base_url = request_base_url(request.headers, settings.base_url)
        try:
            session = await create_checkout(adapter, settings, base_url)
        except (ConfigurationError, ProviderError) as e:
            log.error("checkout_failed", error=str(e),
                      error_type=type(e).__name__)
            return ORJSONResponse(
                {"error": str(e) or "Failed to create checkout session"},
                status_code=500,
            )
        return {"url": session["url"]}

    # ----------------------------
    # Webhook endpoint (shared for Mock/Stripe)
    # ----------------------------
    @app.post("/api/webhook")
    async def payments_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        adapter: PaymentAdapter = Depends(get_adapter),
        cache: RecentPaymentsCache = Depends(get_cache),
        store: RecordStore = Depends(get_store),
    ):
        payload = await request.body()
        try:
            event = adapter.verify_webhook(payload, request.headers)
        except SignatureError as e:
            log.warning("webhook_signature_invalid", error=str(e))
            return ORJSONResponse(
                {"error": "Webhook signature verification failed"},
                status_code=400,
            )
        except InvalidPayloadError as e:
            log.warning("webhook_payload_invalid", error=str(e))
            return ORJSONResponse({"error": str(e)}, status_code=400)

        ack, payment = process_event(
            event, adapter=adapter, cache=cache,
            plans=request.app.state.plans,
        )
        if payment is not None:
            # the provider gets its ack before the store is written
            background_tasks.add_task(persist_payment, store, payment)
        return ack

    # ----------------------------
    # Diagnostics
    # ----------------------------
    @app.post("/api/test-payment")
    async def api_test_payment(
        cache: RecentPaymentsCache = Depends(get_cache),
    ):
        payment = synthetic_payment()
        cache.add(payment)
        log.info("test_payment_added", payment_id=payment.id)
        return {"success": True, "payment": payment.to_dict()}

    @app.post("/api/test-record-store")
    async def api_test_record_store_write(
        store: RecordStore = Depends(get_store),
    ):
        result = await probe_write(store)
        status = 200 if result["success"] else 500
        return ORJSONResponse(result, status_code=status)

    @app.get("/api/test-record-store")
    async def api_test_record_store_read(
        limit: int = RECENT_PAYMENTS_LIMIT,
        store: RecordStore = Depends(get_store),
    ):
        return await probe_read(store, limit=max(1, min(limit, 100)))

    # ----------------------------
    # MockPay hosted checkout
    # ----------------------------
    @app.get("/mockpay/{sid}", response_class=HTMLResponse)
    async def mockpay_screen(
        request: Request, sid: str,
        mock: MockPay = Depends(get_mockpay),
    ):
        session = mock.get_session(sid)
        if not session:
            raise HTTPException(404, "checkout session not found")
        return templates.TemplateResponse(request, "mockpay.html", {
            "sid": sid,
            "product_name": session["product_name"],
            "description": session["description"],
            "amount": f"{session['unit_amount'] / 100:.2f}",
            "currency": session["currency"].upper(),
        })

    @app.post("/mockpay/{sid}/emit")
    async def mockpay_emit(
        sid: str,
        t: str = Form("succeeded"),
        name: str = Form(""),
        email: str = Form(""),
        settings: Settings = Depends(get_settings),
        mock: MockPay = Depends(get_mockpay),
        client_http: httpx.AsyncClient = Depends(get_http),
    ):
        if t not in {"succeeded", "canceled"}:
            raise HTTPException(400, detail="invalid kind")
        session = mock.get_session(sid)
        if not session:
            raise HTTPException(404, "checkout session not found")
        if t == "canceled":
            return RedirectResponse(url=session["cancel_url"],
                                    status_code=HTTP_303_SEE_OTHER)

        payload = mock.build_completed_event(
            sid, name=name.strip() or None, email=email.strip() or None
        )
        try:
            await client_http.post(
                settings.mock_webhook_url,
                content=payload,
                headers={
                    mock.signature_header: mock.sign(payload),
                    "content-type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            # the user can retry from the mock page
            log.error("mock_webhook_delivery_failed", error=str(e))

        return RedirectResponse(url=session["success_url"],
                                status_code=HTTP_303_SEE_OTHER)


app = create_app()
