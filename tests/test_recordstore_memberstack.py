import json
from decimal import Decimal

import httpx
import pytest

from socialproof.errors import RecordStoreError
from socialproof.model.recordstore import MemberstackStore
from socialproof.model.recordstore._memberstack import decode_amount

API = "https://admin.memberstack.com/graphql"


def make_store(handler, secret_key="sk_sb_abcdef"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MemberstackStore(http=http, secret_key=secret_key, api_url=API,
                            table_id="tbl_1")


@pytest.mark.parametrize("raw, expected", [
    ({"digits": 2900, "exponent": -2}, Decimal("29.00")),
    ({"digits": "12346", "exponent": -3}, Decimal("12.35")),
    ({"digits": 9, "exponent": 1}, Decimal("90.00")),
    (9.5, Decimal("9.50")),
    ("10", Decimal("10.00")),
    (None, Decimal("0.00")),
    ({"digits": "x", "exponent": 0}, Decimal("0.00")),
    ({"digits": 1, "exponent": 10 ** 12}, Decimal("0.00")),
    ({"digits": "NaN", "exponent": 0}, Decimal("0.00")),
])
def test_decode_amount(raw, expected):
    assert decode_amount(raw) == expected


async def test_create_sends_mutation(make_payment):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "data": {"createDataRecord": {"id": "rec_1", "data": {}}}
        })

    store = make_store(handler)
    assert await store.create(make_payment(id="cs_9")) is True
    assert seen["auth"] == "Bearer sk_sb_abcdef"
    variables = seen["body"]["variables"]["input"]
    assert variables["tableId"] == "tbl_1"
    assert variables["data"]["sessionId"] == "cs_9"
    assert "createDataRecord" in seen["body"]["query"]


@pytest.mark.parametrize("plan_field", [False, True])
async def test_plan_field_only_when_enabled(make_payment, plan_field):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "data": {"createDataRecord": {"id": "rec_1", "data": {}}}
        })

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    store = MemberstackStore(http=http, secret_key="sk_sb_abcdef",
                             api_url=API, table_id="tbl_1",
                             plan_field=plan_field)
    assert await store.create(make_payment(plan="Premium")) is True
    data = seen["body"]["variables"]["input"]["data"]
    assert ("plan" in data) is plan_field


async def test_graphql_errors_fail_the_write(make_payment):
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "nope"}]})

    store = make_store(handler)
    assert await store.create(make_payment()) is False
    with pytest.raises(RecordStoreError) as exc:
        await store.create_or_raise(make_payment())
    assert exc.value.response == [{"message": "nope"}]


async def test_non_json_response(make_payment):
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    with pytest.raises(RecordStoreError) as exc:
        await make_store(handler).create_or_raise(make_payment())
    assert exc.value.status_code == 502
    assert "bad gateway" in exc.value.response


async def test_missing_key(make_payment):
    store = make_store(lambda r: httpx.Response(200, json={}),
                       secret_key=None)
    assert await store.create(make_payment()) is False
    assert not (await store.list(5)).available


async def test_list_decodes_and_orders_newest_first():
    def handler(request):
        body = json.loads(request.content)
        assert body["variables"]["pagination"] == {"first": 2}
        return httpx.Response(200, json={"data": {"getDataRecords": {
            "edges": [
                {"node": {"id": "n1", "data": {
                    "sessionId": "cs_old", "customerName": "Old",
                    "amount": {"digits": 900, "exponent": -2},
                    "currency": "USD",
                    "timestamp": "2024-01-01T00:00:00Z",
                }}},
                {"node": {"id": "n2", "createdAt": "2024-01-03T00:00:00Z",
                          "data": json.dumps({
                              "sessionId": "cs_new", "customerName": "New",
                              "amount": "29.00", "currency": "usd",
                          })}},
            ]
        }}})

    result = await make_store(handler).list(2)
    assert result.available
    assert [p.id for p in result.payments] == ["cs_new", "cs_old"]
    assert result.payments[0].amount == Decimal("29.00")
    assert result.payments[0].currency == "USD"
    assert result.payments[1].amount == Decimal("9.00")


async def test_list_without_edges_is_empty_but_available():
    def handler(request):
        return httpx.Response(200, json={"data": {"getDataRecords": None}})

    result = await make_store(handler).list(5)
    assert result.available
    assert result.payments == []
