from datetime import date
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer

# INTEGER columns
MAX_ID = 2_147_483_647

# JSON clients get numbers, not the decimal strings pydantic emits by default.
# 15 significant digits survive the float conversion exactly.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
MoneyIn = Annotated[Decimal, Field(ge=0, max_digits=15, decimal_places=2)]


# part_id/quantity lower bounds are checked by the workflow so every offending item is reported.
class OrderItemIn(BaseModel):
    part_id: int = Field(le=MAX_ID)
    quantity: int = Field(le=MAX_ID)
    price: MoneyIn
    totalprice: MoneyIn


class OrderCreate(BaseModel):
    order_id: int = Field(default=0, ge=0, le=MAX_ID)
    customer_id: int = Field(le=MAX_ID)
    order_date: str
    orderitems: Optional[List[OrderItemIn]] = None


class OrderItemOut(BaseModel):
    item_id: int
    order_id: int
    part_id: int
    quantity: int
    price: Money
    totalprice: Money


class OrderOut(BaseModel):
    order_id: int
    customer_id: int
    order_date: date
    total_amount: Money
    orderitems: List[OrderItemOut]


class Problem(BaseModel):
    title: str
    status: int
    detail: str
    errors: List[str] = Field(default_factory=list)
