# agrimarket/models/admin_models.py

from typing import Optional

from pydantic import BaseModel


class ProductReviewModel(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = None


DEFAULT_SETTINGS = {
    "platform_name": "Digital Market",
    "commission_rate": 0.05,
    "min_order_amount": 50,
    "max_delivery_distance": 20,
    "support_email": "support@digitalmarket.com",
    "support_phone": "09123456789",
    "cod_enabled": True,
    "maintenance_mode": False,
}
