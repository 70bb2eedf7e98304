from __future__ import annotations
from typing import Any, List

from sqlalchemy import Numeric, bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncConnection

from ...errors import RecordStoreError
from ...helpers import to_decimal
from ..payment import ANONYMOUS, DEFAULT_CURRENCY, Payment
from ._base import RecordStore


# ------------------------------------------------------------------------------
# DDL (idempotent)
# ------------------------------------------------------------------------------
SQL_CREATE_PAYMENTS = r"""
CREATE TABLE IF NOT EXISTS payments (
  id            TEXT PRIMARY KEY,
  customer_name TEXT NOT NULL,
  amount        NUMERIC(12, 2) NOT NULL,
  currency      TEXT NOT NULL,
  email         TEXT,
  plan          TEXT,
  created_at    DOUBLE PRECISION NOT NULL
);
"""

SQL_CREATE_IDX_PAYMENTS_CREATED_AT = r"""
CREATE INDEX IF NOT EXISTS idx_payments_created_at
  ON payments (created_at DESC);
"""


SQL_INSERT_PAYMENT = text("""
  INSERT INTO payments(
    id, customer_name, amount, currency, email, plan, created_at
  ) VALUES (
    :id, :customer_name, :amount, :currency, :email, :plan, :created_at
  )
  ON CONFLICT (id) DO NOTHING
""").bindparams(bindparam("amount", type_=Numeric(12, 2)))


async def create_schema(conn: AsyncConnection):
    await conn.execute(text(SQL_CREATE_PAYMENTS))
    await conn.execute(text(SQL_CREATE_IDX_PAYMENTS_CREATED_AT))


class SqlStore(RecordStore):
    """Payments in a plain SQL table (Postgres via asyncpg, or SQLite)."""
    name = "sql"

    def __init__(self, *, engine: AsyncEngine) -> None:
        self.engine = engine

    def env_check(self):
        return {
            "hasDatabaseUrl": True,
            "dialect": self.engine.dialect.name,
        }

    async def start(self) -> None:
        async with self.engine.begin() as conn:
            await create_schema(conn)

    async def close(self) -> None:
        await self.engine.dispose()

    async def create_or_raise(self, payment: Payment) -> Any:
        try:
            async with self.engine.begin() as conn:
                # a redelivered session id keeps the first row
                result = await conn.execute(SQL_INSERT_PAYMENT, {
                    "id": payment.id,
                    "customer_name": payment.customer_name,
                    "amount": payment.amount,
                    "currency": payment.currency,
                    "email": payment.email,
                    "plan": payment.plan,
                    "created_at": float(payment.timestamp),
                })
        except SQLAlchemyError as e:
            raise RecordStoreError(f"SQL insert failed: {e}") from e
        return {"id": payment.id, "inserted": result.rowcount}

    async def fetch_recent(self, limit: int) -> List[Payment]:
        async with self.engine.connect() as conn:
            rows = (await conn.execute(text("""
              SELECT id, customer_name, amount, currency, email, plan,
                     created_at
              FROM payments
              ORDER BY created_at DESC
              LIMIT :lim
            """), {"lim": int(limit)})).mappings().all()

        return [
            Payment(
                id=r["id"],
                customer_name=r["customer_name"] or ANONYMOUS,
                amount=to_decimal(r["amount"]),
                currency=(r["currency"] or DEFAULT_CURRENCY).upper(),
                timestamp=float(r["created_at"]),
                email=r["email"] or None,
                plan=r["plan"] or None,
            )
            for r in rows
        ]
