from __future__ import annotations
from typing import Any, Dict, List

import redis.asyncio as redis
from redis.exceptions import RedisError

from ...errors import RecordStoreError
from ..payment import Payment
from ._base import RecordStore, from_fields, to_fields


# ---- keys
def k_payment(pid: str) -> str: return f"payment:{pid}"


RECENT_INDEX = "payments:recent"


class RedisStore(RecordStore):
    """One hash per payment plus a sorted set scored by timestamp."""
    name = "redis"

    def __init__(self, *, r: redis.Redis) -> None:
        self.r = r

    def env_check(self) -> Dict[str, Any]:
        return {"hasRedisUrl": True}

    async def close(self) -> None:
        await self.r.aclose()

    async def create_or_raise(self, payment: Payment) -> Any:
        # hash values must be strings for decode_responses=True
        mapping = {k: "" if v is None else str(v)
                   for k, v in to_fields(payment).items()}
        try:
            pipe = self.r.pipeline(transaction=True)
            pipe.hset(k_payment(payment.id), mapping=mapping)
            pipe.zadd(RECENT_INDEX, {payment.id: float(payment.timestamp)})
            result = await pipe.execute()
        except RedisError as e:
            raise RecordStoreError(f"Redis write failed: {e}") from e
        return result

    async def fetch_recent(self, limit: int) -> List[Payment]:
        pids = await self.r.zrevrange(RECENT_INDEX, 0, max(0, limit - 1))
        if not pids:
            return []
        pipe = self.r.pipeline()
        for pid in pids:
            pipe.hgetall(k_payment(pid))
        rows = await pipe.execute()

        payments: List[Payment] = []
        for pid, h in zip(pids, rows):
            # index entry without a hash: skip it
            if not h:
                continue
            payments.append(from_fields(h, fallback_id=pid))
        return payments
