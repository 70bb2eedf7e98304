from __future__ import annotations
import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ...errors import ConfigurationError, RecordStoreError
from ...helpers import to_decimal
from ..payment import Payment
from ._base import RecordStore, from_fields, to_fields

CREATE_MUTATION = """
mutation CreatePaymentRecord($input: CreateDataRecordInput!) {
  createDataRecord(input: $input) {
    id
    data
  }
}
"""

LIST_QUERY = """
query GetPayments($tableId: ID!, $pagination: PaginationInput) {
  getDataRecords(tableId: $tableId, pagination: $pagination) {
    edges {
      node {
        id
        data
        createdAt
      }
    }
  }
}
"""


def decode_amount(value: Any) -> Decimal:
    """Amounts come back either as plain numbers/strings or as an
    arbitrary-precision structure ``{"digits": ..., "exponent": ...}``
    meaning ``digits * 10**exponent``.
    """
    if isinstance(value, dict) and "digits" in value:
        try:
            digits = Decimal(str(value["digits"]))
            exponent = int(value.get("exponent") or 0)
            return to_decimal(digits.scaleb(exponent))
        except (ArithmeticError, ValueError, TypeError):
            return Decimal("0.00")
    return to_decimal(value)


class MemberstackStore(RecordStore):
    name = "memberstack"

    def __init__(self, *, http: httpx.AsyncClient,
                 secret_key: Optional[str], api_url: str,
                 table_id: str, plan_field: bool = False) -> None:
        self.http = http
        self.secret_key = secret_key
        self.api_url = api_url
        self.table_id = table_id
        self.plan_field = plan_field

    def env_check(self) -> Dict[str, Any]:
        return {
            "hasMemberstackKey": bool(self.secret_key),
            "apiUrl": self.api_url,
            "tableId": self.table_id,
            "planField": self.plan_field,
            "keyPrefix": (self.secret_key or "")[:5] or None,
        }

    async def _graphql(self, query: str, variables: Dict[str, Any]) -> Any:
        if not self.secret_key:
            raise ConfigurationError("Memberstack API key not configured")
        try:
            resp = await self.http.post(
                self.api_url,
                json={"query": query, "variables": variables},
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.secret_key}",
                },
            )
        except httpx.HTTPError as e:
            raise RecordStoreError(f"Memberstack request failed: {e}") from e

        try:
            result = resp.json()
        except ValueError:
            raise RecordStoreError(
                "Invalid JSON response from Memberstack",
                status_code=resp.status_code,
                response=resp.text[:500],
            )
        if not isinstance(result, dict):
            raise RecordStoreError(
                "Unexpected response from Memberstack",
                status_code=resp.status_code,
                response=result,
            )
        if result.get("errors"):
            raise RecordStoreError(
                "Memberstack GraphQL errors",
                status_code=resp.status_code,
                response=result["errors"],
            )
        if resp.status_code >= 400:
            raise RecordStoreError(
                f"Memberstack HTTP {resp.status_code}",
                status_code=resp.status_code,
                response=result,
            )
        return result.get("data") or {}

    async def create_or_raise(self, payment: Payment) -> Any:
        data = await self._graphql(CREATE_MUTATION, {
            "input": {
                "tableId": self.table_id,
                "data": to_fields(payment, with_plan=self.plan_field),
            },
        })
        return data.get("createDataRecord")

    async def fetch_recent(self, limit: int) -> List[Payment]:
        data = await self._graphql(LIST_QUERY, {
            "tableId": self.table_id,
            "pagination": {"first": limit},
        })
        edges = (data.get("getDataRecords") or {}).get("edges") or []

        payments: List[Payment] = []
        for edge in edges:
            node = edge.get("node") or {}
            fields = node.get("data") or {}
            if isinstance(fields, str):
                fields = json.loads(fields)
            if not fields.get("timestamp") and node.get("createdAt"):
                fields = {**fields, "timestamp": node["createdAt"]}
            payments.append(from_fields(
                fields,
                fallback_id=node.get("id", ""),
                amount=decode_amount(fields.get("amount")),
            ))
        # the API returns creation order; newest first for the dashboard
        payments.sort(key=lambda p: p.timestamp, reverse=True)
        return payments[:limit]
