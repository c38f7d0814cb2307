"""
Checks shared by the create and update workflows.

Each helper raises on the first problem it is responsible for, except
``check_item_fields`` which reports every offending item at once.
"""
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from .errors import StockConflict, ValidationError
from .lookups import CustomerLookup, PartCatalog
from .models import Customer, SparePart
from .schemas import OrderItemIn

DATE_FORMAT = "%Y-%m-%d"
# largest amount a 15-digit Money value can carry
MAX_TOTAL = Decimal("9999999999999.99")
_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def require_items(items: Optional[Sequence[OrderItemIn]]) -> List[OrderItemIn]:
    if not items:
        raise ValidationError("at least one order item is required")
    return list(items)


def check_item_fields(items: Sequence[OrderItemIn]) -> None:
    errors = []
    for i, item in enumerate(items):
        if item.part_id <= 0:
            errors.append(f"orderitems[{i}].part_id: part id must be a positive number")
        if item.quantity <= 0:
            errors.append(f"orderitems[{i}].quantity: quantity must be a positive number")
    if errors:
        raise ValidationError("invalid order items", errors)


def resolve_customer(customers: CustomerLookup, customer_id: int) -> Customer:
    customer = customers.get(customer_id)
    if customer is None:
        raise ValidationError(f"customer {customer_id} not found")
    return customer


def parse_order_date(value: str) -> date:
    """Accept only a real calendar date spelled exactly YYYY-MM-DD."""
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        raise ValidationError("invalid date format", [f"invalid date format: {value!r}, expected YYYY-MM-DD"])
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValidationError("invalid date format", [f"invalid date format: {value!r}, expected YYYY-MM-DD"])


def resolve_parts(catalog: PartCatalog, items: Sequence[OrderItemIn]) -> Dict[int, SparePart]:
    parts: Dict[int, SparePart] = {}
    for item in items:
        if item.part_id in parts:
            continue
        part = catalog.get(item.part_id)
        if part is None:
            raise ValidationError(f"part {item.part_id} not found")
        parts[item.part_id] = part
    return parts


def check_stock(items: Sequence[OrderItemIn], parts: Dict[int, SparePart]) -> None:
    # point-in-time read; stock is never reserved or decremented here
    for item in items:
        available = parts[item.part_id].stock_quantity
        if item.quantity > available:
            raise StockConflict(item.part_id, available, item.quantity)


def check_total(total: Decimal) -> None:
    if total > MAX_TOTAL:
        raise ValidationError(f"order total exceeds {MAX_TOTAL}")
