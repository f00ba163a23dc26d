import json
import logging
from typing import Any, List, Union

from seller_bridge.core.exceptions import ValidationError
from seller_bridge.external.daraz import DarazClient

logger = logging.getLogger(__name__)

READY_TO_SHIP_PATH = "/order/rts"
DELIVERY_TYPE = "dropship"
SHIPPING_PROVIDER = "BD-DEX"


class FulfillmentService:
    def __init__(self, client: DarazClient):
        self.client = client

    async def ready_to_ship(self, account_id: str, order_item_ids: List[Union[int, str]]) -> Any:
        """Marks order items as packed and ready to ship through the dropship provider."""
        if not account_id or not order_item_ids:
            raise ValidationError("Missing orderItemIds or accountId")

        # Daraz wants the ids as a JSON array encoded into one string value
        params = {
            "order_item_ids": json.dumps(order_item_ids, separators=(",", ":")),
            "delivery_type": DELIVERY_TYPE,
            "shipping_provider": SHIPPING_PROVIDER,
        }
        data = await self.client.call(READY_TO_SHIP_PATH, account_id, params, method="POST")
        logger.info("Marked %s order items ready to ship for account %s", len(order_item_ids), account_id)
        return data
