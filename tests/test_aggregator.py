import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from seller_bridge.core.exceptions import AggregateFailedError, MalformedResponseError, MarketplaceLogicError, NoValidTokenError
from seller_bridge.services.aggregator import AccountAggregator, format_create_after


class StubClient:
    """Answers `call` from a per-account table; exceptions are raised."""

    def __init__(self, answers):
        self.answers = answers
        self.calls = []

    async def call(self, path, account_id, business_params=None, method="GET"):
        self.calls.append((path, account_id, business_params, method))
        answer = self.answers[account_id]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def two_accounts(store, make_credential):
    store.put("S1", make_credential("S1", name="shop-one"))
    store.put("S2", make_credential("S2", name="shop-two"))
    return store


def test_format_create_after():
    moment = datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

    assert format_create_after(moment) == "2024-05-01T10:00:00.123Z"


def test_unknown_policy_rejected(store, test_settings):
    with pytest.raises(ValueError):
        AccountAggregator(StubClient({}), store, test_settings, policy="sometimes")


@pytest.mark.anyio
async def test_orders_are_tagged_with_account(two_accounts, test_settings):
    client = StubClient({
        "S1": {"orders": [{"order_id": 1}, {"order_id": 2}], "count": 2},
        "S2": {"orders": [{"order_id": 3}], "count": 1},
    })
    aggregator = AccountAggregator(client, two_accounts, test_settings)

    result = await aggregator.aggregate_orders(30)

    assert result.failures == []
    assert [order["order_id"] for order in result.records] == [1, 2, 3]
    assert result.records[0]["account"] == {
        "id": "S1",
        "displayName": "shop-one",
        "logoUrl": "https://cdn.test/daraz.png",
    }
    assert result.records[2]["account"]["id"] == "S2"


@pytest.mark.anyio
async def test_orders_request_one_page_within_window(two_accounts, test_settings):
    client = StubClient({"S1": {"orders": []}, "S2": None})
    aggregator = AccountAggregator(client, two_accounts, test_settings)

    before = datetime.now(timezone.utc)
    result = await aggregator.aggregate_orders(7)

    assert result.records == []
    path, _, params, method = client.calls[0]
    assert path == "/orders/get"
    assert method == "GET"
    assert params["limit"] == "100"
    assert params["offset"] == "0"
    create_after = datetime.strptime(params["create_after"], "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)
    assert abs(create_after - (before - timedelta(days=7))) < timedelta(seconds=5)


@pytest.mark.anyio
async def test_orders_default_window(two_accounts, test_settings):
    client = StubClient({"S1": {"orders": []}, "S2": {"orders": []}})
    aggregator = AccountAggregator(client, two_accounts, test_settings.model_copy(update={"order_window_days": 3}))

    before = datetime.now(timezone.utc)
    await aggregator.aggregate_orders()

    create_after = datetime.strptime(client.calls[0][2]["create_after"], "%Y-%m-%dT%H:%M:%S.%fZ")
    assert abs(create_after.replace(tzinfo=timezone.utc) - (before - timedelta(days=3))) < timedelta(seconds=5)


@pytest.mark.anyio
async def test_abort_policy_fails_whole_aggregation(two_accounts, test_settings):
    client = StubClient({
        "S1": {"orders": [{"order_id": 1}]},
        "S2": MarketplaceLogicError("E0001 system busy", provider_code="E0001"),
    })
    aggregator = AccountAggregator(client, two_accounts, test_settings, policy="abort")

    with pytest.raises(AggregateFailedError) as excinfo:
        await aggregator.aggregate_orders(30)

    assert excinfo.value.account_id == "S2"
    assert isinstance(excinfo.value.cause, MarketplaceLogicError)
    assert "system busy" in str(excinfo.value)


@pytest.mark.anyio
async def test_partial_policy_keeps_successes(two_accounts, test_settings):
    client = StubClient({
        "S1": {"orders": [{"order_id": 1}]},
        "S2": MarketplaceLogicError("E0001 system busy", provider_code="E0001"),
    })
    aggregator = AccountAggregator(client, two_accounts, test_settings, policy="partial")

    result = await aggregator.aggregate_orders(30)

    assert [order["order_id"] for order in result.records] == [1]
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.account.id == "S2"
    assert failure.kind == "MarketplaceLogicError"
    assert "system busy" in failure.message
    assert result.failed_account_ids == ["S2"]


@pytest.mark.anyio
async def test_partial_policy_when_every_account_fails(two_accounts, test_settings):
    client = StubClient({"S1": NoValidTokenError("S1"), "S2": NoValidTokenError("S2")})
    aggregator = AccountAggregator(client, two_accounts, test_settings, policy="partial")

    with pytest.raises(AggregateFailedError) as excinfo:
        await aggregator.aggregate_financials()

    assert excinfo.value.account_id == "S1"


@pytest.mark.anyio
async def test_no_accounts_gives_empty_result(store, test_settings):
    aggregator = AccountAggregator(StubClient({}), store, test_settings)

    result = await aggregator.aggregate_orders(30)

    assert result.records == []
    assert result.failures == []


@pytest.mark.anyio
async def test_malformed_orders_payload_is_a_failure(two_accounts, test_settings):
    client = StubClient({"S1": {"orders": "nope"}, "S2": {"orders": [{"order_id": 9}]}})
    aggregator = AccountAggregator(client, two_accounts, test_settings, policy="partial")

    result = await aggregator.aggregate_orders(30)

    assert [order["order_id"] for order in result.records] == [9]
    assert result.failures[0].kind == "MalformedResponseError"


@pytest.mark.anyio
async def test_financials_merge_account_into_record(two_accounts, test_settings):
    client = StubClient({
        "S1": {"statement": "2024-W18", "paid": True},
        "S2": {"statement": "2024-W18", "paid": False},
    })
    aggregator = AccountAggregator(client, two_accounts, test_settings)

    result = await aggregator.aggregate_financials()

    assert result.records == [
        {"account": {"id": "S1", "displayName": "shop-one", "logoUrl": "https://cdn.test/daraz.png"}, "statement": "2024-W18", "paid": True},
        {"account": {"id": "S2", "displayName": "shop-two", "logoUrl": "https://cdn.test/daraz.png"}, "statement": "2024-W18", "paid": False},
    ]
    assert {call[0] for call in client.calls} == {"/finance/payout/status/get"}
    assert all(call[2] is None for call in client.calls)


@pytest.mark.anyio
async def test_non_object_order_entry_is_a_failure(two_accounts, test_settings):
    client = StubClient({"S1": {"orders": [{"order_id": 1}]}, "S2": {"orders": [None]}})
    aggregator = AccountAggregator(client, two_accounts, test_settings, policy="partial")

    result = await aggregator.aggregate_orders(30)

    assert [order["order_id"] for order in result.records] == [1]
    assert len(result.failures) == 1
    assert result.failures[0].account.id == "S2"
    assert result.failures[0].kind == "MalformedResponseError"


@pytest.mark.anyio
async def test_non_object_order_entry_aborts(two_accounts, test_settings):
    client = StubClient({"S1": {"orders": [{"order_id": 1}]}, "S2": {"orders": ["101"]}})
    aggregator = AccountAggregator(client, two_accounts, test_settings, policy="abort")

    with pytest.raises(AggregateFailedError) as excinfo:
        await aggregator.aggregate_orders(30)

    assert excinfo.value.account_id == "S2"
    assert isinstance(excinfo.value.cause, MalformedResponseError)


@pytest.mark.anyio
async def test_financial_statement_lists_are_tagged_per_statement(two_accounts, test_settings):
    client = StubClient({
        "S1": [{"statement": "2024-W17"}, {"statement": "2024-W18"}],
        "S2": [],
    })
    aggregator = AccountAggregator(client, two_accounts, test_settings)

    result = await aggregator.aggregate_financials()

    assert result.failures == []
    assert [record["statement"] for record in result.records] == ["2024-W17", "2024-W18"]
    assert all(record["account"]["id"] == "S1" for record in result.records)


@pytest.mark.anyio
async def test_empty_financial_object_still_yields_account_record(two_accounts, test_settings):
    client = StubClient({"S1": {}, "S2": None})
    aggregator = AccountAggregator(client, two_accounts, test_settings)

    result = await aggregator.aggregate_financials()

    assert result.records == [
        {"account": {"id": "S1", "displayName": "shop-one", "logoUrl": "https://cdn.test/daraz.png"}},
    ]


@pytest.mark.anyio
@pytest.mark.parametrize("payload", [[{"statement": "2024-W18"}, "oops"], "oops", 42])
async def test_malformed_financials_are_a_failure(two_accounts, test_settings, payload):
    client = StubClient({"S1": payload, "S2": {"statement": "2024-W18"}})
    aggregator = AccountAggregator(client, two_accounts, test_settings, policy="partial")

    result = await aggregator.aggregate_financials()

    assert [record["account"]["id"] for record in result.records] == ["S2"]
    assert result.failures[0].kind == "MalformedResponseError"


class CountingClient(StubClient):
    """Tracks how many calls are in flight at once."""

    def __init__(self, answers):
        super().__init__(answers)
        self.in_flight = 0
        self.max_in_flight = 0

    async def call(self, path, account_id, business_params=None, method="GET"):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().call(path, account_id, business_params, method)
        finally:
            self.in_flight -= 1


@pytest.mark.anyio
@pytest.mark.parametrize("limit, expected", [(1, 1), (3, 3)])
async def test_fan_out_respects_concurrency_limit(store, make_credential, test_settings, limit, expected):
    for index in range(1, 4):
        store.put(f"S{index}", make_credential(f"S{index}", name=f"shop-{index}"))
    client = CountingClient({f"S{index}": {"orders": [{"order_id": index}]} for index in range(1, 4)})
    config = test_settings.model_copy(update={"max_concurrent_account_calls": limit})
    aggregator = AccountAggregator(client, store, config)

    result = await aggregator.aggregate_orders(30)

    assert client.max_in_flight == expected
    assert [order["order_id"] for order in result.records] == [1, 2, 3]
