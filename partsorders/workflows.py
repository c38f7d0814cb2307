"""
Order creation and update.

Both workflows validate the draft against the customer and spare-part
lookups, then hand a fully built aggregate to the store. Validation and the
write share one unit of work: nothing is committed unless every step passes.
"""
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .db import transaction
from .errors import PersistenceFailure
from .logging_config import get_logger
from .lookups import CustomerLookup, PartCatalog
from .models import Order, OrderItem
from .schemas import OrderCreate, OrderItemIn
from .store import OrderAggregateStore, order_total
from .validation import (
    check_item_fields,
    check_stock,
    check_total,
    parse_order_date,
    require_items,
    resolve_customer,
    resolve_parts,
)

log = get_logger(__name__)


def _to_order_items(items: Sequence[OrderItemIn]) -> List[OrderItem]:
    return [
        OrderItem(
            part_id=it.part_id,
            quantity=it.quantity,
            price=it.price,
            total_price=it.totalprice,
        )
        for it in items
    ]


class OrderCreationWorkflow:
    def __init__(self, store: OrderAggregateStore, customers: CustomerLookup, parts: PartCatalog):
        self.store = store
        self.customers = customers
        self.parts = parts

    def create(self, draft: OrderCreate) -> Order:
        """
        Validate a draft order and persist it as one aggregate.

        Checks run in a fixed order: item list present, item fields, customer,
        date format, parts exist, stock. The first failing check wins, except
        item fields, which are reported together.

        Raises:
            ValidationError: the draft is malformed or references unknown records.
            StockConflict: an item asks for more than the part currently has.
            DuplicateOrderId: a client-supplied id is already taken.
            PersistenceFailure: the write failed and was rolled back.
        """
        session = self.store.session
        try:
            with transaction(session):
                items = require_items(draft.orderitems)
                check_item_fields(items)
                resolve_customer(self.customers, draft.customer_id)
                order_date = parse_order_date(draft.order_date)
                parts = resolve_parts(self.parts, items)
                check_stock(items, parts)

                order_items = _to_order_items(items)
                total = order_total(order_items)
                check_total(total)
                order = Order(
                    id=draft.order_id or 0,
                    customer_id=draft.customer_id,
                    order_date=order_date,
                    total_amount=total,
                    items=order_items,
                )
                self.store.create(order)
        except SQLAlchemyError as e:
            log.exception(f"Error creating order for customer {draft.customer_id}")
            raise PersistenceFailure("could not save the order") from e

        log.info(
            f"Created order {order.id} for customer {order.customer_id} "
            f"with {len(order.items)} items, total amount {order.total_amount}"
        )
        return order


class OrderUpdateWorkflow:
    """
    Replace an existing order's customer, date and items.

    Stock is not re-checked on update; only create compares against stock.
    """

    def __init__(self, store: OrderAggregateStore, customers: CustomerLookup, parts: PartCatalog):
        self.store = store
        self.customers = customers
        self.parts = parts

    def update(self, order_id: int, draft: OrderCreate) -> Optional[Order]:
        session = self.store.session
        try:
            with transaction(session):
                if self.store.get_by_id(order_id) is None:
                    log.warning(f"Order {order_id} not found for update")
                    return None

                items = require_items(draft.orderitems)
                check_item_fields(items)
                resolve_customer(self.customers, draft.customer_id)
                order_date = parse_order_date(draft.order_date)
                resolve_parts(self.parts, items)
                order_items = _to_order_items(items)
                check_total(order_total(order_items))

                order = self.store.replace_items(
                    order_id,
                    order_items,
                    customer_id=draft.customer_id,
                    order_date=order_date,
                )
        except SQLAlchemyError as e:
            log.exception(f"Error updating order {order_id}")
            raise PersistenceFailure("could not update the order") from e

        log.info(f"Updated order {order_id} with {len(order.items)} items, total amount {order.total_amount}")
        return order
