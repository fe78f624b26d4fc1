# agrimarket/services/farmer/farmer_service.py
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select

from agrimarket.errors import Forbidden, ValidationError
from agrimarket.models.enums import OrderStatus, ProductStatus, UserStatus, parse_enum
from agrimarket.models.farmer_models import UpdateFarmerProfileModel
from agrimarket.services.auth.access import Actor, farmer_for_user
from agrimarket.services.products.image_store import absolute_url
from agrimarket.tables import Farmer, Feedback, Order, OrderItem, Product, ProductView, User, utcnow

REPORT_PERIODS = {"weekly": 7, "monthly": 30, "yearly": 365}


def _num(value) -> float:
    return float(value) if value is not None else 0.0


class FarmerService:
    """Read models and profile edits for a farmer's own account."""

    def __init__(self, session):
        self.session = session

    def require_farmer(self, actor: Actor) -> Farmer:
        farmer = farmer_for_user(self.session, actor.user_id)
        if farmer is None or farmer.user is None or farmer.user.status is not UserStatus.ACTIVE:
            raise Forbidden("User is not a registered farmer")
        return farmer

    # ---------------------------------------------------------------
    # dashboard
    # ---------------------------------------------------------------
    def _statistics(self, farmer_id: int) -> Dict[str, Any]:
        total_products = self.session.execute(
            select(func.count(Product.product_id)).where(Product.farmer_id == farmer_id)
        ).scalar_one()
        total_orders, total_sales = self.session.execute(
            select(func.count(Order.order_id), func.coalesce(func.sum(Order.total_amount), 0))
            .where(Order.farmer_id == farmer_id)
        ).one()
        average_rating = self.session.execute(
            select(func.coalesce(func.avg(Feedback.rating), 0))
            .join(Product, Feedback.product_id == Product.product_id)
            .where(Product.farmer_id == farmer_id)
        ).scalar_one()
        return {
            "total_products": total_products,
            "total_orders": total_orders,
            "total_sales": _num(total_sales),
            "average_rating": round(_num(average_rating), 2),
        }

    def _feedback_query(self, farmer_id: int):
        return (
            select(Feedback, Product.product_name, User.full_name)
            .join(Product, Feedback.product_id == Product.product_id)
            .join(User, Feedback.customer_id == User.user_id)
            .where(Product.farmer_id == farmer_id)
            .order_by(Feedback.created_at.desc(), Feedback.feedback_id.desc())
        )

    def _feedback_rows(self, stmt):
        out = []
        for feedback, product_name, customer_name in self.session.execute(stmt).all():
            data = feedback.to_dict()
            data["product_name"] = product_name
            data["customer_name"] = customer_name
            out.append(data)
        return out

    def dashboard(self, actor: Actor) -> Dict[str, Any]:
        farmer = self.require_farmer(actor)
        fid = farmer.farmer_id

        recent_orders = self.session.execute(
            select(Order)
            .where(Order.farmer_id == fid)
            .order_by(Order.order_date.desc(), Order.order_id.desc())
            .limit(5)
        ).scalars().all()
        unavailable = self.session.execute(
            select(Product)
            .where(Product.farmer_id == fid, Product.status == ProductStatus.UNAVAILABLE)
            .order_by(Product.updated_at.desc(), Product.product_id.desc())
            .limit(5)
        ).scalars().all()

        return {
            "farmer": farmer.to_dict(),
            "statistics": self._statistics(fid),
            "recent_orders": [o.to_dict() for o in recent_orders],
            "unavailable_products": [p.to_dict() for p in unavailable],
            "recent_feedback": self._feedback_rows(self._feedback_query(fid).limit(5)),
        }

    # ---------------------------------------------------------------
    # profile
    # ---------------------------------------------------------------
    def update_profile(self, actor: Actor, payload: Dict[str, Any]) -> Farmer:
        farmer = self.require_farmer(actor)
        changes = UpdateFarmerProfileModel(**payload).changes()
        if not changes:
            raise ValidationError("No data provided for update")
        for key, value in changes.items():
            setattr(farmer, key, value)
        self.session.commit()
        return farmer

    # ---------------------------------------------------------------
    # inventory
    # ---------------------------------------------------------------
    def inventory(self, actor: Actor, status: Optional[str] = None, category: Optional[str] = None):
        farmer = self.require_farmer(actor)

        sold = (
            select(OrderItem.product_id, func.sum(OrderItem.quantity).label("units_sold"))
            .join(Order, OrderItem.order_id == Order.order_id)
            .where(Order.order_status != OrderStatus.CANCELLED)
            .group_by(OrderItem.product_id)
            .subquery()
        )
        views = (
            select(ProductView.product_id, func.sum(ProductView.view_count).label("views"))
            .group_by(ProductView.product_id)
            .subquery()
        )
        stmt = (
            select(
                Product,
                func.coalesce(sold.c.units_sold, 0),
                func.coalesce(views.c.views, 0),
            )
            .outerjoin(sold, sold.c.product_id == Product.product_id)
            .outerjoin(views, views.c.product_id == Product.product_id)
            .where(Product.farmer_id == farmer.farmer_id)
            .order_by(Product.created_at.desc(), Product.product_id.desc())
        )

        if status:
            wanted = parse_enum(ProductStatus, status)
            if wanted is None:
                raise ValidationError("Invalid status")
            stmt = stmt.where(Product.status == wanted)
        if category:
            stmt = stmt.where(func.lower(Product.category) == category.strip().lower())

        inventory = []
        for product, units_sold, view_count in self.session.execute(stmt).all():
            data = product.to_dict()
            data["image_url"] = absolute_url(product.image_url)
            data["units_sold"] = int(units_sold)
            data["view_count"] = int(view_count)
            inventory.append(data)

        summary = {
            "total_products": len(inventory),
            "total_available": sum(1 for p in inventory if p["status"] == ProductStatus.AVAILABLE.value),
            "total_unavailable": sum(1 for p in inventory if p["status"] == ProductStatus.UNAVAILABLE.value),
            "total_units_in_stock": sum(p["quantity"] for p in inventory),
            "total_value": round(sum(p["price"] * p["quantity"] for p in inventory), 2),
        }
        return {"inventory": inventory, "summary": summary}

    # ---------------------------------------------------------------
    # sales report
    # ---------------------------------------------------------------
    def sales_report(self, actor: Actor, days: Optional[int] = None, period: Optional[str] = None):
        farmer = self.require_farmer(actor)
        if days is None:
            days = REPORT_PERIODS.get(period or "monthly", 30)
        if days < 1:
            raise ValidationError("days must be a positive number")
        since = utcnow() - timedelta(days=days)

        counted = (
            Order.farmer_id == farmer.farmer_id,
            Order.order_date >= since,
            Order.order_status != OrderStatus.CANCELLED,
        )

        day = func.date(Order.order_date)
        daily_rows = self.session.execute(
            select(
                day.label("day"),
                func.count(Order.order_id),
                func.coalesce(func.sum(Order.total_amount), 0),
            )
            .where(*counted)
            .group_by(day)
            .order_by(day.desc())
        ).all()

        product_rows = self.session.execute(
            select(
                Product.product_id,
                Product.product_name,
                Product.category,
                func.sum(OrderItem.quantity),
                func.sum(OrderItem.quantity * OrderItem.price),
            )
            .join(OrderItem, OrderItem.product_id == Product.product_id)
            .join(Order, OrderItem.order_id == Order.order_id)
            .where(*counted)
            .group_by(Product.product_id, Product.product_name, Product.category)
            .order_by(func.sum(OrderItem.quantity * OrderItem.price).desc())
        ).all()

        daily = [
            {"order_date": str(d), "total_orders": n, "total_sales": _num(total)}
            for d, n, total in daily_rows
        ]
        products = [
            {
                "product_id": pid,
                "product_name": name,
                "category": category,
                "quantity_sold": int(qty or 0),
                "revenue": _num(revenue),
            }
            for pid, name, category, qty, revenue in product_rows
        ]
        return {
            "days": days,
            "sales_report": daily,
            "product_performance": products,
            "summary": {
                "total_sales": round(sum(r["total_sales"] for r in daily), 2),
                "total_orders": sum(r["total_orders"] for r in daily),
                "total_items_sold": sum(p["quantity_sold"] for p in products),
            },
        }

    # ---------------------------------------------------------------
    # reviews
    # ---------------------------------------------------------------
    def reviews(self, actor: Actor, min_rating: Optional[int] = None, product_id: Optional[int] = None):
        farmer = self.require_farmer(actor)
        stmt = self._feedback_query(farmer.farmer_id)
        if min_rating:
            stmt = stmt.where(Feedback.rating >= min_rating)
        if product_id:
            stmt = stmt.where(Feedback.product_id == product_id)

        reviews = self._feedback_rows(stmt)

        ratings = [r["rating"] for r in reviews]
        return {
            "reviews": reviews,
            "rating_stats": {
                "average": round(sum(ratings) / len(ratings), 1) if ratings else 0,
                "total": len(ratings),
                "distribution": {str(star): ratings.count(star) for star in range(5, 0, -1)},
            },
        }
