from typing import List, Optional

from .logging_config import get_logger
from .models import Order
from .store import OrderAggregateStore

log = get_logger(__name__)


class OrderQueryService:
    """Read side: fully materialized orders, never raises on a missing id."""

    def __init__(self, store: OrderAggregateStore):
        self.store = store

    def get_all(self) -> List[Order]:
        orders = self.store.get_all()
        log.info(f"Retrieved {len(orders)} orders")
        return orders

    def get_by_id(self, order_id: int) -> Optional[Order]:
        order = self.store.get_by_id(order_id)
        if order is None:
            log.warning(f"Order {order_id} not found")
        return order
