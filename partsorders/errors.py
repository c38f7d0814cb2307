"""
Order processing errors.

Each error carries the HTTP status it is reported with; the API layer turns
them into problem-details responses.
"""
from typing import List, Optional


class OrderError(Exception):
    status_code = 500
    title = "Internal Server Error"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(OrderError):
    """Malformed or unresolvable input. Raised before anything is written."""

    status_code = 400
    title = "Validation Error"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message, errors or [message])


class StockConflict(OrderError):
    """A requested quantity exceeds the part's currently observed stock."""

    status_code = 409
    title = "Insufficient Stock"

    def __init__(self, part_id: int, available: int, requested: int):
        super().__init__(
            f"insufficient stock for part {part_id}: available {available}, requested {requested}"
        )
        self.part_id = part_id
        self.available = available
        self.requested = requested


class DuplicateOrderId(OrderError):
    status_code = 409
    title = "Duplicate Order"

    def __init__(self, order_id: int):
        super().__init__(f"order {order_id} already exists")
        self.order_id = order_id


class PersistenceFailure(OrderError):
    """The transactional write failed and was rolled back."""

    status_code = 500
    title = "Internal Server Error"
