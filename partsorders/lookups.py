"""
Read-only access to the customer and spare-part records owned by other services.

The workflows depend on the two protocols only, so any object with a matching
``get`` can stand in (the SQL implementations below are the production ones).
"""
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from .logging_config import get_logger
from .models import Customer, SparePart

log = get_logger(__name__)


class CustomerLookup(Protocol):
    def get(self, customer_id: int) -> Optional[Customer]: ...


class PartCatalog(Protocol):
    def get(self, part_id: int) -> Optional[SparePart]: ...


class SqlCustomerLookup:
    def __init__(self, session: Session):
        self.session = session

    def get(self, customer_id: int) -> Optional[Customer]:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            log.warning(f"Customer {customer_id} not found")
        return customer


class SqlPartCatalog:
    def __init__(self, session: Session):
        self.session = session

    def get(self, part_id: int) -> Optional[SparePart]:
        part = self.session.get(SparePart, part_id)
        if part is None:
            log.warning(f"Spare part {part_id} not found")
        return part
