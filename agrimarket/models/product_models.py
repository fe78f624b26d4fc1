# agrimarket/models/product_models.py

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class CreateProductModel(BaseModel):
    product_name: str
    category: str
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    harvest_date: Optional[date] = None
    description: Optional[str] = ""
    quantity: int = Field(0, ge=0)

    @field_validator("product_name", "category")
    @classmethod
    def _required_text(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Product name, category, and price are required")
        return v

    @field_validator("harvest_date", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, v):
        v = _blank_to_none(v)
        return 0 if v is None else v


class UpdateProductModel(BaseModel):
    product_name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    harvest_date: Optional[date] = None
    description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)

    @field_validator("harvest_date", "price", "quantity", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("product_name", "category")
    @classmethod
    def _not_blank(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Product name and category cannot be empty")
        return v

    def changes(self) -> dict:
        out = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if value is None and key in ("product_name", "category", "price", "quantity"):
                continue
            out[key] = value
        return out
