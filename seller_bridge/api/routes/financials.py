from fastapi import APIRouter, Depends, Response
from typing import Any, Dict, List
from seller_bridge.api.deps import get_aggregator
from seller_bridge.api.routes.orders import FAILED_ACCOUNTS_HEADER
from seller_bridge.services.aggregator import AccountAggregator

router = APIRouter()


@router.get("", response_model=List[Dict[str, Any]])
async def get_financials(response: Response, aggregator: AccountAggregator = Depends(get_aggregator)):
    result = await aggregator.aggregate_financials()
    if result.failures:
        response.headers[FAILED_ACCOUNTS_HEADER] = ",".join(result.failed_account_ids)
    return result.records
