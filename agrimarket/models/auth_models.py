# agrimarket/models/auth_models.py

import re
from typing import ClassVar, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _norm_email(v) -> str:
    return (v or "").strip().lower()


class RegisterModel(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str
    password: str
    confirm_password: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    barangay: Optional[str] = None

    min_password_length: ClassVar[int] = 6

    @field_validator("full_name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("full_name is required")
        return v

    @field_validator("email")
    @classmethod
    def _valid_email(cls, v: str) -> str:
        v = _norm_email(v)
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v

    @model_validator(mode="after")
    def _check_password(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if len(self.password) < self.min_password_length:
            raise ValueError(
                f"Password must be at least {self.min_password_length} characters long"
            )
        return self


class AdminRegisterModel(RegisterModel):
    confirm_password: str
    min_password_length: ClassVar[int] = 8
    admin_code: Optional[str] = None


class LoginModel(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _norm(cls, v: str) -> str:
        v = _norm_email(v)
        if not v:
            raise ValueError("Email is required")
        return v


class UpdateProfileModel(BaseModel):
    full_name: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    barangay: Optional[str] = None

    def changes(self) -> dict:
        """Fields present in the payload; empty optional strings clear the field."""
        out = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if key == "full_name":
                if value and value.strip():
                    out[key] = value.strip()
                continue
            out[key] = (value or "").strip() or None
        return out


class RegisterFarmerModel(BaseModel):
    farm_name: str
    farm_location: Optional[str] = None
    farm_description: Optional[str] = None

    @field_validator("farm_name")
    @classmethod
    def _farm_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Farm name is required")
        return v
