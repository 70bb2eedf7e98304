from typing import List

from .config import RECENT_PAYMENTS_LIMIT
from .logs import get_logger
from .model.cache import RecentPaymentsCache
from .model.payment import Payment
from .model.recordstore import RecordStore

log = get_logger("query")


async def get_recent_payments(
    cache: RecentPaymentsCache,
    store: RecordStore,
    limit: int = RECENT_PAYMENTS_LIMIT,
) -> List[Payment]:
    """Most recent payments, newest first.

    The record store wins when it has anything to show. An empty store and
    an unreachable one both fall back to the in-memory cache, and whatever
    the cache holds (possibly nothing) is the answer.
    """
    result = await store.list(limit)
    if result.available and result.payments:
        return result.payments[:limit]
    if not result.available:
        log.debug("record_store_unavailable", backend=store.name,
                  error=result.error)
    return cache.list(limit)
