import json
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Mapping, Optional

from .helpers import to_decimal

# ----------------------------
# Config & Constants
# ----------------------------
MAX_CACHED_PAYMENTS = 50
RECENT_PAYMENTS_LIMIT = 20
POLL_INTERVAL_SECONDS = 5

DEFAULT_MEMBERSTACK_API_URL = "https://admin.memberstack.com/graphql"
DEFAULT_MEMBERSTACK_TABLE_ID = "tbl_cmhabevx800050sff5ap65nlr"


def _opt(env: Mapping[str, str], key: str) -> Optional[str]:
    # empty strings count as "not configured"
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _flag(env: Mapping[str, str], key: str) -> bool:
    return (_opt(env, key) or "").lower() in ("1", "true", "yes", "on")


def _parse_price_map(raw: Optional[str]) -> Dict[str, str]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(k): str(v) for k, v in parsed.items()}


@dataclass(frozen=True)
class Settings:
    payment_provider: str = "stripe"  # 'stripe' | 'mock'
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    mock_secret: str = "supersecret"
    mock_webhook_url: str = "http://localhost:8000/api/webhook"
    base_url: Optional[str] = None

    checkout_unit_amount: int = 900  # cents
    checkout_currency: str = "usd"
    checkout_product_name: str = "Test Product"
    checkout_product_description: str = "Social Proof Demo Purchase"

    # 'none' | 'airtable' | 'memberstack' | 'sql' | 'redis'
    record_store_backend: str = "none"
    airtable_access_token: Optional[str] = None
    airtable_base_id: Optional[str] = None
    airtable_table_name: str = "Payments"
    memberstack_secret_key: Optional[str] = None
    memberstack_api_url: str = DEFAULT_MEMBERSTACK_API_URL
    memberstack_table_id: str = DEFAULT_MEMBERSTACK_TABLE_ID
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    # Airtable and Memberstack tables only get a "plan" column when asked
    record_store_plan_field: bool = False

    plan_price_map: Dict[str, str] = field(default_factory=dict)
    plan_premium_threshold: Decimal = Decimal("20.00")

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        backend = (_opt(env, "RECORD_STORE_BACKEND") or "none").lower()
        try:
            unit_amount = int(env.get("CHECKOUT_UNIT_AMOUNT", "900"))
        except ValueError:
            unit_amount = 900
        return cls(
            payment_provider=(
                _opt(env, "PAYMENT_PROVIDER") or "stripe"
            ).lower(),
            stripe_secret_key=_opt(env, "STRIPE_SECRET_KEY"),
            stripe_webhook_secret=_opt(env, "STRIPE_WEBHOOK_SECRET"),
            mock_secret=_opt(env, "MOCK_SECRET") or "supersecret",
            mock_webhook_url=(
                _opt(env, "MOCK_WEBHOOK_URL")
                or "http://localhost:8000/api/webhook"
            ),
            base_url=_opt(env, "BASE_URL"),
            checkout_unit_amount=unit_amount,
            checkout_currency=(
                _opt(env, "CHECKOUT_CURRENCY") or "usd"
            ).lower(),
            record_store_backend=backend,
            airtable_access_token=_opt(env, "AIRTABLE_ACCESS_TOKEN"),
            airtable_base_id=_opt(env, "AIRTABLE_BASE_ID"),
            airtable_table_name=(
                _opt(env, "AIRTABLE_TABLE_NAME") or "Payments"
            ),
            memberstack_secret_key=_opt(env, "MEMBERSTACK_SECRET_KEY"),
            memberstack_api_url=(
                _opt(env, "MEMBERSTACK_API_URL")
                or DEFAULT_MEMBERSTACK_API_URL
            ),
            memberstack_table_id=(
                _opt(env, "MEMBERSTACK_TABLE_ID")
                or DEFAULT_MEMBERSTACK_TABLE_ID
            ),
            database_url=_opt(env, "DATABASE_URL"),
            redis_url=_opt(env, "REDIS_URL"),
            record_store_plan_field=_flag(env, "RECORD_STORE_PLAN_FIELD"),
            plan_price_map=_parse_price_map(_opt(env, "PLAN_PRICE_MAP")),
            plan_premium_threshold=to_decimal(
                _opt(env, "PLAN_PREMIUM_THRESHOLD"), Decimal("20.00")
            ),
            log_level=_opt(env, "LOG_LEVEL") or "INFO",
        )
