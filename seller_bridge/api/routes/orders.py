from fastapi import APIRouter, Depends, Query, Response
from typing import Any, Dict, List, Optional
from seller_bridge.api.deps import get_aggregator
from seller_bridge.services.aggregator import AccountAggregator

FAILED_ACCOUNTS_HEADER = "X-Failed-Accounts"

router = APIRouter()


@router.get("", response_model=List[Dict[str, Any]])
async def get_orders(
    response: Response,
    aggregator: AccountAggregator = Depends(get_aggregator),
    days: Optional[int] = Query(None, ge=1, le=365),
):
    result = await aggregator.aggregate_orders(days)
    if result.failures:
        response.headers[FAILED_ACCOUNTS_HEADER] = ",".join(result.failed_account_ids)
    return result.records
