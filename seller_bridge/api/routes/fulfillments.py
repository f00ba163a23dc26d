from fastapi import APIRouter, Depends
from seller_bridge.api.deps import get_fulfillment_service
from seller_bridge.schemas.account import PackRequest
from seller_bridge.services.fulfillment import FulfillmentService

router = APIRouter()


@router.post("/pack")
async def pack_order_items(body: PackRequest, fulfillment_service: FulfillmentService = Depends(get_fulfillment_service)):
    return await fulfillment_service.ready_to_ship(body.account_id, body.order_item_ids)
