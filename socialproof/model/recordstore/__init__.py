# model/recordstore/__init__.py
from __future__ import annotations
from typing import Optional

import httpx
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncEngine

from ...config import Settings
from ...logs import get_logger
from ._base import ListResult, RecordStore, NullRecordStore
from ._airtable import AirtableStore
from ._memberstack import MemberstackStore
from ._sql import SqlStore
from ._redis import RedisStore

log = get_logger("recordstore")

BACKENDS = ("none", "airtable", "memberstack", "sql", "redis")


# Factory keeps server.py simple and constructor-agnostic:
def new_store(settings: Settings, *,
              http: Optional[httpx.AsyncClient] = None,
              engine: Optional[AsyncEngine] = None,
              r: Optional[redis.Redis] = None) -> RecordStore:
    backend = settings.record_store_backend
    if backend == "airtable":
        if http is None:
            raise RuntimeError(
                "RecordStore(airtable) requires http=httpx.AsyncClient"
            )
        return AirtableStore(
            http=http,
            access_token=settings.airtable_access_token,
            base_id=settings.airtable_base_id,
            table_name=settings.airtable_table_name,
            plan_field=settings.record_store_plan_field,
        )
    if backend == "memberstack":
        if http is None:
            raise RuntimeError(
                "RecordStore(memberstack) requires http=httpx.AsyncClient"
            )
        return MemberstackStore(
            http=http,
            secret_key=settings.memberstack_secret_key,
            api_url=settings.memberstack_api_url,
            table_id=settings.memberstack_table_id,
            plan_field=settings.record_store_plan_field,
        )
    if backend == "sql":
        if engine is None:
            raise RuntimeError("RecordStore(sql) requires engine=AsyncEngine")
        return SqlStore(engine=engine)
    if backend == "redis":
        if r is None:
            raise RuntimeError("RecordStore(redis) requires r=redis.Redis")
        return RedisStore(r=r)
    if backend != "none":
        log.warning("record_store_backend_unknown", backend=backend,
                    expected=list(BACKENDS))
    return NullRecordStore()


__all__ = [
    "RecordStore", "ListResult", "NullRecordStore", "AirtableStore",
    "MemberstackStore", "SqlStore", "RedisStore", "new_store", "BACKENDS",
]
