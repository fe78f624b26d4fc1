# agrimarket/models/order_models.py

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class OrderItemModel(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class AdminOrderUpdateModel(BaseModel):
    """Only these fields of an order may be edited by an admin."""

    order_status: Optional[str] = None
    total_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    delivery_option: Optional[str] = None
