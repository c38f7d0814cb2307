"""
Transactional persistence for the Order + OrderItem aggregate.

Every mutation runs inside ``db.transaction``; when a workflow already opened
one, the store joins it, so a failure anywhere in the request discards the
whole aggregate write.
"""
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .db import is_postgres, transaction
from .errors import DuplicateOrderId, PersistenceFailure
from .logging_config import get_logger
from .models import Order, OrderItem

log = get_logger(__name__)


def order_total(items: Iterable[OrderItem]) -> Decimal:
    """Sum of the client-supplied line totals; price x quantity is not recomputed."""
    return sum((i.total_price for i in items), Decimal("0"))


class OrderAggregateStore:
    def __init__(self, session: Session):
        self.session = session

    # ---------- Reads ----------
    def get_all(self) -> List[Order]:
        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .order_by(Order.order_date.desc(), Order.id.desc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def get_by_id(self, order_id: int) -> Optional[Order]:
        stmt = select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
        return self.session.execute(stmt).scalar_one_or_none()

    # ---------- Id allocation ----------
    def next_id(self) -> int:
        """
        Highest existing order id + 1.

        Must be called inside the transaction that inserts the order. On
        PostgreSQL the orders table is locked until that transaction ends, so
        concurrent creators queue up instead of reading the same maximum.
        """
        self._lock_orders()
        current = self.session.scalar(select(func.max(Order.id)))
        return (current or 0) + 1

    def _lock_orders(self) -> None:
        if is_postgres(self.session):
            self.session.execute(text(f"LOCK TABLE {Order.__tablename__} IN SHARE ROW EXCLUSIVE MODE"))

    # ---------- Mutations ----------
    def create(self, order: Order) -> Order:
        try:
            with transaction(self.session):
                if not order.id:
                    order.id = self.next_id()
                else:
                    self._lock_orders()
                    if self.session.get(Order, order.id) is not None:
                        raise DuplicateOrderId(order.id)
                for item in order.items:
                    item.order_id = order.id
                self.session.add(order)
                self.session.flush()
        except SQLAlchemyError as e:
            log.exception(f"Failed to persist order for customer {order.customer_id}")
            raise PersistenceFailure("could not save the order") from e
        return order

    def replace_items(
        self,
        order_id: int,
        items: List[OrderItem],
        customer_id: Optional[int] = None,
        order_date: Optional[date] = None,
    ) -> Optional[Order]:
        """
        Swap the whole item set of an order and recompute its total.

        Returns None (and writes nothing) when the order does not exist.
        """
        try:
            with transaction(self.session):
                order = self.get_by_id(order_id)
                if order is None:
                    return None
                if customer_id is not None:
                    order.customer_id = customer_id
                if order_date is not None:
                    order.order_date = order_date

                # delete-orphan removes the old rows on this flush
                order.items.clear()
                self.session.flush()

                for item in items:
                    item.order_id = order.id
                    order.items.append(item)
                order.total_amount = order_total(items)
                self.session.flush()
        except SQLAlchemyError as e:
            log.exception(f"Failed to replace items of order {order_id}")
            raise PersistenceFailure("could not update the order") from e
        return order

    def delete(self, order_id: int) -> bool:
        """Remove the order's items, then the order itself."""
        try:
            with transaction(self.session):
                order = self.get_by_id(order_id)
                if order is None:
                    return False
                item_count = len(order.items)
                for item in list(order.items):
                    order.items.remove(item)
                self.session.flush()
                self.session.delete(order)
                self.session.flush()
        except SQLAlchemyError as e:
            log.exception(f"Failed to delete order {order_id}")
            raise PersistenceFailure("could not delete the order") from e
        log.info(f"Deleted order {order_id} and its {item_count} items")
        return True
