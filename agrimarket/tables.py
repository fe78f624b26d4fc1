# agrimarket/tables.py
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from agrimarket.database import db
from agrimarket.models.enums import (
    DeliveryOption,
    OrderStatus,
    ProductStatus,
    Role,
    UserStatus,
)


def utcnow() -> datetime:
    # naive UTC keeps SQLite and PostgreSQL comparisons consistent
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


def _enum_column(enum_cls, **kwargs):
    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )


# ---------------- User ----------------
class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password = db.Column(db.String(128), nullable=False)
    role = _enum_column(Role, nullable=False, default=Role.CUSTOMER)
    status = _enum_column(UserStatus, nullable=False, default=UserStatus.ACTIVE)
    contact_number = db.Column(db.String(30))
    address = db.Column(db.String(255))
    barangay = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    farmer = relationship("Farmer", back_populates="user", uselist=False)

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role.value,
            "status": self.status.value,
            "contact_number": self.contact_number,
            "address": self.address,
            "barangay": self.barangay,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ---------------- Farmer ----------------
class Farmer(db.Model):
    __tablename__ = "farmers"

    farmer_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, unique=True)
    farm_name = db.Column(db.String(150), nullable=False)
    barangay = db.Column(db.String(120))
    product_categories = db.Column(db.Text, default="")
    verified_status = db.Column(db.Boolean, nullable=False, default=False)
    farmer_rating = db.Column(db.Numeric(3, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="farmer")

    def to_dict(self):
        return {
            "farmer_id": self.farmer_id,
            "user_id": self.user_id,
            "farm_name": self.farm_name,
            "barangay": self.barangay,
            "product_categories": self.product_categories,
            "verified_status": self.verified_status,
            "farmer_rating": _money(self.farmer_rating),
            "created_at": _iso(self.created_at),
        }


# ---------------- Product ----------------
class Product(db.Model):
    __tablename__ = "products"

    product_id = db.Column(db.Integer, primary_key=True)
    # nulled only when the owning farmer is demoted (see AdminService.update_user_role)
    farmer_id = db.Column(db.Integer, db.ForeignKey("farmers.farmer_id"), index=True)
    product_name = db.Column(db.String(150), nullable=False)
    category = db.Column(db.String(80), nullable=False, index=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    harvest_date = db.Column(db.Date)
    description = db.Column(db.Text, default="")
    image_url = db.Column(db.String(255), default="")
    status = _enum_column(ProductStatus, nullable=False, default=ProductStatus.AVAILABLE)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    farmer = relationship("Farmer")

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_product_price_positive"),
        CheckConstraint("quantity >= 0", name="ck_product_qty_nonneg"),
    )

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "farmer_id": self.farmer_id,
            "product_name": self.product_name,
            "category": self.category,
            "price": _money(self.price),
            "harvest_date": _iso(self.harvest_date),
            "description": self.description or "",
            "image_url": self.image_url or "",
            "status": self.status.value,
            "quantity": self.quantity,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ---------------- Order ----------------
class Order(db.Model):
    __tablename__ = "orders"

    order_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    # same rule as Product.farmer_id: cleared on demotion, never reassigned
    farmer_id = db.Column(db.Integer, db.ForeignKey("farmers.farmer_id"), index=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    delivery_option = _enum_column(DeliveryOption, nullable=False, default=DeliveryOption.HOME_DELIVERY)
    order_status = _enum_column(OrderStatus, nullable=False, default=OrderStatus.PENDING)
    order_date = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    customer = relationship("User")
    farmer = relationship("Farmer")
    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.order_item_id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, with_items=True):
        data = {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "farmer_id": self.farmer_id,
            "total_amount": _money(self.total_amount),
            "delivery_option": self.delivery_option.value,
            "order_status": self.order_status.value,
            "order_date": _iso(self.order_date),
            "customer_name": self.customer.full_name if self.customer else None,
            "farm_name": self.farmer.farm_name if self.farmer else None,
            "farmer_name": self.farmer.user.full_name if self.farmer and self.farmer.user else None,
        }
        if with_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"

    order_item_id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.order_id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.product_id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    # snapshot of the product price when the order was placed
    price = db.Column(db.Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_item_qty_positive"),
    )

    def to_dict(self):
        return {
            "order_item_id": self.order_item_id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": _money(self.price),
            "subtotal": _money(self.price * self.quantity),
            "product_name": self.product.product_name if self.product else None,
            "category": self.product.category if self.product else None,
            "image_url": (self.product.image_url or "") if self.product else "",
        }


# ---------------- Feedback & views (read-side reporting) ----------------
class Feedback(db.Model):
    __tablename__ = "feedback"

    feedback_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.product_id"), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating_range"),
    )

    def to_dict(self):
        return {
            "feedback_id": self.feedback_id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "rating": self.rating,
            "comment": self.comment or "",
            "created_at": _iso(self.created_at),
        }


class ProductView(db.Model):
    __tablename__ = "product_views"

    view_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.product_id"), nullable=False, index=True)
    view_count = db.Column(db.Integer, nullable=False, default=1)
    last_viewed_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_product_view_user_product"),
    )


# ---------------- Admin audit log ----------------
class AdminAction(db.Model):
    """Append-only: rows are inserted by AuditLog and never updated or deleted."""

    __tablename__ = "admin_actions"

    action_id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), index=True)
    action_type = db.Column(db.String(50), nullable=False, index=True)
    target_id = db.Column(db.Integer)
    details = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    admin = relationship("User")

    def to_dict(self):
        return {
            "action_id": self.action_id,
            "admin_id": self.admin_id,
            "admin_name": self.admin.full_name if self.admin else None,
            "admin_email": self.admin.email if self.admin else None,
            "action_type": self.action_type,
            "target_id": self.target_id,
            "details": self.details or {},
            "created_at": _iso(self.created_at),
        }
