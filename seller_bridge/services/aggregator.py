import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from seller_bridge.core.config import Settings
from seller_bridge.core.exceptions import AggregateFailedError, BridgeException, MalformedResponseError
from seller_bridge.external.daraz import DarazClient
from seller_bridge.schemas.account import PublicAccount
from seller_bridge.schemas.aggregate import AccountFailure, AggregateResult
from seller_bridge.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

ORDERS_PATH = "/orders/get"
PAYOUT_STATUS_PATH = "/finance/payout/status/get"
ORDERS_PAGE_LIMIT = 100

AccountFetcher = Callable[[PublicAccount], Awaitable[List[Dict[str, Any]]]]


def format_create_after(moment: datetime) -> str:
    """ISO-8601 UTC with milliseconds and a Z suffix, e.g. 2024-05-01T10:00:00.000Z"""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _tag_records(
    account: PublicAccount,
    records: List[Any],
    path: str,
    account_first: bool = False,
) -> List[Dict[str, Any]]:
    tag = account.model_dump(by_alias=True)
    tagged = []
    for record in records:
        if not isinstance(record, dict):
            raise MalformedResponseError(f"{path} returned a {type(record).__name__} where an object was expected")
        tagged.append({"account": tag, **record} if account_first else {**record, "account": tag})
    return tagged


class AccountAggregator:
    """
    Runs one Daraz call per connected seller and merges the results.

    Calls run concurrently. What happens when one seller fails depends on the
    policy: "abort" fails the whole aggregation with the first failing account
    (in store order), "partial" keeps the successes and reports each failure.
    """

    def __init__(
        self,
        client: DarazClient,
        store: CredentialStore,
        config: Settings,
        policy: Optional[str] = None,
    ):
        self.client = client
        self.store = store
        self.config = config
        self.policy = policy or config.aggregation_policy
        if self.policy not in ("abort", "partial"):
            raise ValueError(f"Unknown aggregation policy: {self.policy}")

    async def _run(self, fetch: AccountFetcher) -> AggregateResult:
        accounts = self.store.list_public()
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_account_calls))

        async def guarded(account: PublicAccount) -> Union[List[Dict[str, Any]], BridgeException]:
            async with semaphore:
                try:
                    return await fetch(account)
                except BridgeException as e:
                    logger.warning("Account %s failed during aggregation: %s", account.id, e.detail)
                    return e

        outcomes = await asyncio.gather(*(guarded(account) for account in accounts))

        result = AggregateResult()
        for account, outcome in zip(accounts, outcomes):
            if isinstance(outcome, BridgeException):
                if self.policy == "abort":
                    raise AggregateFailedError(account.id, outcome)
                result.failures.append(AccountFailure(account=account, kind=outcome.kind, message=outcome.detail))
            else:
                result.records.extend(outcome)

        if accounts and len(result.failures) == len(accounts):
            first = accounts[0]
            raise AggregateFailedError(first.id, outcomes[0])
        return result

    async def aggregate_orders(self, window_days: Optional[int] = None) -> AggregateResult:
        days = self.config.order_window_days if window_days is None else window_days
        create_after = format_create_after(datetime.now(timezone.utc) - timedelta(days=days))
        params = {
            "create_after": create_after,
            "limit": str(ORDERS_PAGE_LIMIT),
            "offset": "0",
        }

        async def fetch(account: PublicAccount) -> List[Dict[str, Any]]:
            data = await self.client.call(ORDERS_PATH, account.id, params)
            if not data:
                return []
            if not isinstance(data, dict):
                raise MalformedResponseError(f"{ORDERS_PATH} data is not an object")
            orders = data.get("orders") or []
            if not isinstance(orders, list):
                raise MalformedResponseError(f"{ORDERS_PATH} orders is not a list")
            return _tag_records(account, orders, ORDERS_PATH)

        result = await self._run(fetch)
        logger.info(
            "Aggregated %s orders from %s accounts (%s failed)",
            len(result.records),
            len(self.store),
            len(result.failures),
        )
        return result

    async def aggregate_financials(self) -> AggregateResult:
        async def fetch(account: PublicAccount) -> List[Dict[str, Any]]:
            data = await self.client.call(PAYOUT_STATUS_PATH, account.id)
            if data is None:
                return []
            # payout status comes back either as one object or as a list of statements
            statements = data if isinstance(data, list) else [data]
            return _tag_records(account, statements, PAYOUT_STATUS_PATH, account_first=True)

        return await self._run(fetch)
