from __future__ import annotations
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ...errors import ConfigurationError, RecordStoreError
from ..payment import Payment
from ._base import RecordStore, from_fields, to_fields

AIRTABLE_API_URL = "https://api.airtable.com/v0"


class AirtableStore(RecordStore):
    """Payments kept as rows of an Airtable table.

    One row per payment, columns named like the wire fields. The
    ``timestamp`` column holds an ISO-8601 string and is what we sort on.
    """
    name = "airtable"

    def __init__(self, *, http: httpx.AsyncClient,
                 access_token: Optional[str], base_id: Optional[str],
                 table_name: str = "Payments",
                 api_url: str = AIRTABLE_API_URL,
                 plan_field: bool = False) -> None:
        self.http = http
        self.access_token = access_token
        self.base_id = base_id
        self.table_name = table_name
        self.api_url = api_url.rstrip("/")
        self.plan_field = plan_field

    def _require_credentials(self) -> None:
        if not self.access_token or not self.base_id:
            raise ConfigurationError("Airtable credentials not configured")

    def _table_url(self) -> str:
        return f"{self.api_url}/{self.base_id}/{quote(self.table_name)}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def env_check(self) -> Dict[str, Any]:
        return {
            "hasAccessToken": bool(self.access_token),
            "hasBaseId": bool(self.base_id),
            "tableName": self.table_name,
            "planField": self.plan_field,
            "keyPrefix": (self.access_token or "")[:5] or None,
        }

    async def create_or_raise(self, payment: Payment) -> Any:
        self._require_credentials()
        fields = to_fields(payment, with_plan=self.plan_field)
        body = {"records": [{"fields": fields}]}
        try:
            resp = await self.http.post(
                self._table_url(), json=body, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise RecordStoreError(f"Airtable request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = resp.text[:500]

        if resp.status_code >= 400:
            message = None
            if isinstance(data, dict):
                err = data.get("error")
                message = err.get("message") if isinstance(err, dict) else err
            raise RecordStoreError(
                f"Airtable Error: {message or resp.reason_phrase}",
                status_code=resp.status_code,
                response=data,
            )
        if not isinstance(data, dict) or not data.get("records"):
            raise RecordStoreError(
                "Airtable returned no created record",
                status_code=resp.status_code,
                response=data,
            )
        return data

    async def fetch_recent(self, limit: int) -> List[Payment]:
        self._require_credentials()
        params = {
            "maxRecords": str(limit),
            "sort[0][field]": "timestamp",
            "sort[0][direction]": "desc",
        }
        resp = await self.http.get(
            self._table_url(), params=params, headers=self._headers()
        )
        resp.raise_for_status()
        records = resp.json().get("records", [])
        return [
            from_fields(rec.get("fields") or {}, fallback_id=rec.get("id", ""))
            for rec in records
        ]
