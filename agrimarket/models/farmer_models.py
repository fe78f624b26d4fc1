# agrimarket/models/farmer_models.py

from typing import Optional

from pydantic import BaseModel


class UpdateFarmerProfileModel(BaseModel):
    farm_name: Optional[str] = None
    barangay: Optional[str] = None
    product_categories: Optional[str] = None

    def changes(self) -> dict:
        out = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if value is None:
                continue
            value = value.strip()
            if key == "farm_name" and not value:
                continue
            out[key] = value
        return out
