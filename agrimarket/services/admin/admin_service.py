# agrimarket/services/admin/admin_service.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import aliased

from agrimarket.errors import InvalidOperation, NotFound, ValidationError
from agrimarket.models.admin_models import DEFAULT_SETTINGS, ProductReviewModel
from agrimarket.models.enums import (
    AdminActionType,
    OrderStatus,
    ProductStatus,
    Role,
    UserStatus,
    parse_enum,
)
from agrimarket.models.order_models import AdminOrderUpdateModel
from agrimarket.services.admin.audit import AuditLog
from agrimarket.services.auth.access import Actor
from agrimarket.services.orders.order_service import parse_delivery_option, parse_order_status
from agrimarket.services.pagination import paginate
from agrimarket.tables import (
    AdminAction,
    Farmer,
    Feedback,
    Order,
    OrderItem,
    Product,
    User,
    utcnow,
)

ANALYTICS_PERIODS = {"daily": 1, "weekly": 7, "monthly": 30}


def _num(value) -> float:
    return float(value) if value is not None else 0.0


def _pct(count: int, total: int) -> float:
    return round(count * 100.0 / total, 2) if total else 0.0


def _datetime_arg(args, key: str, end_of_day: bool = False) -> Optional[datetime]:
    raw = args.get(key)
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO date (YYYY-MM-DD)")
    if end_of_day and len(raw) == 10:
        value += timedelta(days=1)
    return value


def _enum_filter(enum_cls, raw, label: str):
    value = parse_enum(enum_cls, raw)
    if value is None:
        raise ValidationError(f"Invalid {label}")
    return value


class AdminService:
    """Admin oversight over users, farmers, products and orders."""

    def __init__(self, session):
        self.session = session
        self.audit = AuditLog(session)

    def _user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    # ---------------------------------------------------------------
    # users
    # ---------------------------------------------------------------
    def list_users(self, args, page: int, limit: int):
        stmt = select(User)
        if args.get("role"):
            stmt = stmt.where(User.role == _enum_filter(Role, args["role"], "role"))
        if args.get("status"):
            stmt = stmt.where(User.status == _enum_filter(UserStatus, args["status"], "status"))
        stmt = stmt.order_by(User.created_at.desc(), User.user_id.desc())
        return paginate(self.session, stmt, page, limit)

    def user_details(self, user_id: int) -> Dict[str, Any]:
        user = self._user(user_id)
        extra: Dict[str, Any] = {}

        if user.role is Role.FARMER and user.farmer is not None:
            fid = user.farmer.farmer_id
            total_orders, total_sales = self.session.execute(
                select(func.count(Order.order_id), func.coalesce(func.sum(Order.total_amount), 0))
                .where(Order.farmer_id == fid)
            ).one()
            avg_rating = self.session.execute(
                select(func.coalesce(func.avg(Feedback.rating), 0))
                .join(Product, Feedback.product_id == Product.product_id)
                .where(Product.farmer_id == fid)
            ).scalar_one()
            extra["farmer_profile"] = user.farmer.to_dict()
            extra["farmer_stats"] = {
                "total_products": self.session.execute(
                    select(func.count(Product.product_id)).where(Product.farmer_id == fid)
                ).scalar_one(),
                "total_orders": total_orders,
                "total_sales": _num(total_sales),
                "average_rating": round(_num(avg_rating), 2),
            }
        elif user.role is Role.CUSTOMER:
            total_orders, total_spent = self.session.execute(
                select(func.count(Order.order_id), func.coalesce(func.sum(Order.total_amount), 0))
                .where(Order.customer_id == user.user_id)
            ).one()
            avg_feedback = self.session.execute(
                select(func.avg(Feedback.rating)).where(Feedback.customer_id == user.user_id)
            ).scalar_one()
            extra["customer_stats"] = {
                "total_orders": total_orders,
                "total_spent": _num(total_spent),
                "avg_feedback_given": round(_num(avg_feedback), 2) if avg_feedback is not None else None,
            }

        data = user.to_dict()
        data["additional_info"] = extra
        return data

    def update_user_status(self, actor: Actor, user_id: int, status) -> User:
        if user_id == actor.user_id:
            raise InvalidOperation("Cannot change your own status")
        new_status = _enum_filter(UserStatus, status, "status")
        user = self._user(user_id)

        previous = user.status
        user.status = new_status
        self.session.commit()

        self.audit.record(
            actor.user_id,
            AdminActionType.USER_STATUS_CHANGE,
            user.user_id,
            {"from": previous.value, "to": new_status.value},
        )
        current_app.logger.info(
            "User %s status %s -> %s by admin %s",
            user.user_id, previous.value, new_status.value, actor.user_id,
        )
        return user

    def _retire_farmer(self, farmer: Farmer):
        # listings and order history outlive the farm record
        self.session.execute(
            update(Product)
            .where(Product.farmer_id == farmer.farmer_id)
            .values(status=ProductStatus.REMOVED, farmer_id=None)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(
            update(Order)
            .where(Order.farmer_id == farmer.farmer_id)
            .values(farmer_id=None)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(delete(Farmer).where(Farmer.farmer_id == farmer.farmer_id))

    def update_user_role(self, actor: Actor, user_id: int, role) -> User:
        if user_id == actor.user_id:
            raise InvalidOperation("Cannot change your own role")
        new_role = _enum_filter(Role, role, "role")
        user = self._user(user_id)
        previous = user.role
        farmer = user.farmer

        try:
            if new_role is not Role.FARMER and farmer is not None:
                self._retire_farmer(farmer)
                self.session.expire(user, ["farmer"])
            elif new_role is Role.FARMER and farmer is None:
                self.session.add(
                    Farmer(
                        user_id=user.user_id,
                        farm_name=f"{user.full_name}'s Farm",
                        barangay=user.address,
                        product_categories="",
                        verified_status=False,
                    )
                )
            user.role = new_role
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.audit.record(
            actor.user_id,
            AdminActionType.USER_ROLE_CHANGE,
            user.user_id,
            {"from": previous.value, "to": new_role.value},
        )
        current_app.logger.info(
            "User %s role %s -> %s by admin %s",
            user.user_id, previous.value, new_role.value, actor.user_id,
        )
        return user

    # ---------------------------------------------------------------
    # farmers
    # ---------------------------------------------------------------
    def pending_verifications(self, page: int, limit: int):
        stmt = (
            select(Farmer)
            .join(User, Farmer.user_id == User.user_id)
            .where(Farmer.verified_status.is_(False), User.status == UserStatus.ACTIVE)
            .order_by(Farmer.farmer_id)
        )
        farmers, meta = paginate(self.session, stmt, page, limit)
        rows = []
        for farmer in farmers:
            data = farmer.to_dict()
            data.update(
                full_name=farmer.user.full_name,
                email=farmer.user.email,
                contact_number=farmer.user.contact_number,
                address=farmer.user.address,
                user_created_at=farmer.user.to_dict()["created_at"],
            )
            rows.append(data)
        return rows, meta

    def verify_farmer(self, actor: Actor, farmer_id: int, verified_status) -> Farmer:
        if not isinstance(verified_status, bool):
            raise ValidationError("verified_status must be true or false")
        farmer = self.session.get(Farmer, farmer_id)
        if farmer is None:
            raise NotFound("Farmer not found")

        farmer.verified_status = verified_status
        self.session.commit()

        self.audit.record(
            actor.user_id,
            AdminActionType.FARMER_VERIFICATION,
            farmer.farmer_id,
            {"verified_status": verified_status},
        )
        current_app.logger.info(
            "Farmer %s verification set to %s by admin %s", farmer_id, verified_status, actor.user_id
        )
        return farmer

    # ---------------------------------------------------------------
    # products
    # ---------------------------------------------------------------
    def list_products(self, args, page: int, limit: int):
        stmt = select(Product)
        if args.get("status"):
            stmt = stmt.where(Product.status == _enum_filter(ProductStatus, args["status"], "status"))
        if args.get("category"):
            stmt = stmt.where(func.lower(Product.category) == args["category"].strip().lower())
        farmer_id = args.get("farmer_id", type=int)
        if farmer_id:
            stmt = stmt.where(Product.farmer_id == farmer_id)
        stmt = stmt.order_by(Product.created_at.desc(), Product.product_id.desc())
        return paginate(self.session, stmt, page, limit)

    def update_product_status(self, actor: Actor, product_id: int, payload: Dict[str, Any]):
        data = ProductReviewModel(**payload)
        status = _enum_filter(ProductStatus, data.status, "status")
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        product.status = status
        self.session.commit()

        if data.reason and status in (ProductStatus.REMOVED, ProductStatus.UNDER_REVIEW):
            self.audit.record(
                actor.user_id,
                AdminActionType.PRODUCT_STATUS_CHANGE,
                product.product_id,
                {"status": status.value, "reason": data.reason},
            )
        return product, data.reason

    # ---------------------------------------------------------------
    # orders
    # ---------------------------------------------------------------
    def list_orders(self, args, page: int, limit: int):
        stmt = select(Order)
        if args.get("status"):
            stmt = stmt.where(Order.order_status == _enum_filter(OrderStatus, args["status"], "status"))
        farmer_id = args.get("farmer_id", type=int)
        if farmer_id:
            stmt = stmt.where(Order.farmer_id == farmer_id)
        customer_id = args.get("customer_id", type=int)
        if customer_id:
            stmt = stmt.where(Order.customer_id == customer_id)
        start = _datetime_arg(args, "start_date")
        end = _datetime_arg(args, "end_date", end_of_day=True)
        if start:
            stmt = stmt.where(Order.order_date >= start)
        if end:
            stmt = stmt.where(Order.order_date < end)
        stmt = stmt.order_by(Order.order_date.desc(), Order.order_id.desc())
        return paginate(self.session, stmt, page, limit)

    def update_order(self, actor: Actor, order_id: int, payload: Dict[str, Any]) -> Order:
        order = self.session.get(Order, order_id)
        if order is None:
            raise NotFound("Order not found")

        data = AdminOrderUpdateModel(**payload)
        changes: Dict[str, Any] = {}
        if data.order_status is not None:
            order.order_status = parse_order_status(data.order_status)
            changes["order_status"] = order.order_status.value
        if data.total_amount is not None:
            order.total_amount = data.total_amount
            changes["total_amount"] = float(data.total_amount)
        if data.delivery_option is not None:
            order.delivery_option = parse_delivery_option(data.delivery_option)
            changes["delivery_option"] = order.delivery_option.value

        if not changes:
            self.session.rollback()
            raise ValidationError("No valid fields to update")

        self.session.commit()
        self.audit.record(actor.user_id, AdminActionType.ORDER_UPDATE, order.order_id, changes)
        current_app.logger.info("Order %s updated by admin %s: %s", order_id, actor.user_id, changes)
        return order

    # ---------------------------------------------------------------
    # analytics
    # ---------------------------------------------------------------
    def analytics(self, period: str = "monthly") -> Dict[str, Any]:
        days = ANALYTICS_PERIODS.get(period, 30)
        since = utcnow() - timedelta(days=days)
        s = self.session

        user_rows = s.execute(
            select(User.role, func.count())
            .where(User.status == UserStatus.ACTIVE)
            .group_by(User.role)
        ).all()
        active_users = sum(n for _, n in user_rows)
        user_stats = [
            {"role": role.value, "count": n, "percentage": _pct(n, active_users)}
            for role, n in user_rows
        ]

        farmer_stats = [
            {"verified_status": bool(verified), "count": n, "avg_rating": round(_num(avg), 2)}
            for verified, n, avg in s.execute(
                select(Farmer.verified_status, func.count(), func.avg(Farmer.farmer_rating))
                .group_by(Farmer.verified_status)
            ).all()
        ]

        product_rows = s.execute(select(Product.status, func.count()).group_by(Product.status)).all()
        total_products = sum(n for _, n in product_rows)
        product_stats = [
            {"status": status.value, "count": n, "percentage": _pct(n, total_products)}
            for status, n in product_rows
        ]

        order_rows = s.execute(
            select(Order.order_status, func.count(), func.coalesce(func.sum(Order.total_amount), 0))
            .where(Order.order_date >= since)
            .group_by(Order.order_status)
        ).all()
        period_orders = sum(n for _, n, _ in order_rows)
        order_stats = [
            {
                "order_status": status.value,
                "count": n,
                "percentage": _pct(n, period_orders),
                "total_amount": _num(amount),
            }
            for status, n, amount in order_rows
        ]

        day = func.date(Order.order_date)
        revenue_trend = [
            {"date": str(d), "daily_revenue": _num(revenue), "daily_orders": n}
            for d, revenue, n in s.execute(
                select(day, func.sum(Order.total_amount), func.count(Order.order_id))
                .where(Order.order_date >= since, Order.order_status == OrderStatus.DELIVERED)
                .group_by(day)
                .order_by(day.desc())
            ).all()
        ]

        revenue = func.coalesce(func.sum(OrderItem.quantity * OrderItem.price), 0)
        popular_categories = [
            {
                "category": category,
                "product_count": count,
                "total_sold": int(sold or 0),
                "revenue": _num(rev),
            }
            for category, count, sold, rev in s.execute(
                select(
                    Product.category,
                    func.count(func.distinct(Product.product_id)),
                    func.sum(OrderItem.quantity),
                    revenue,
                )
                .outerjoin(OrderItem, OrderItem.product_id == Product.product_id)
                .group_by(Product.category)
                .order_by(revenue.desc())
                .limit(10)
            ).all()
        ]

        farmer_user = aliased(User)
        farm_revenue = func.coalesce(func.sum(Order.total_amount), 0)
        top_farmers = [
            {
                "farmer_id": fid,
                "farm_name": farm_name,
                "farmer_name": farmer_name,
                "total_orders": n,
                "total_revenue": _num(rev),
            }
            for fid, farm_name, farmer_name, n, rev in s.execute(
                select(
                    Farmer.farmer_id,
                    Farmer.farm_name,
                    farmer_user.full_name,
                    func.count(Order.order_id),
                    farm_revenue,
                )
                .join(farmer_user, Farmer.user_id == farmer_user.user_id)
                .join(Order, Order.farmer_id == Farmer.farmer_id)
                .where(Order.order_date >= since)
                .group_by(Farmer.farmer_id, Farmer.farm_name, farmer_user.full_name)
                .order_by(farm_revenue.desc())
                .limit(10)
            ).all()
        ]

        joined = func.date(User.created_at)
        user_growth = []
        cumulative = 0
        for d, n in s.execute(
            select(joined, func.count())
            .where(User.created_at >= since)
            .group_by(joined)
            .order_by(joined)
        ).all():
            cumulative += n
            user_growth.append({"date": str(d), "new_users": n, "cumulative_users": cumulative})

        by_role = {row["role"]: row["count"] for row in user_stats}
        summary = {
            "total_users": active_users,
            "total_farmers": by_role.get(Role.FARMER.value, 0),
            "total_customers": by_role.get(Role.CUSTOMER.value, 0),
            "total_products": total_products,
            "total_orders": period_orders,
            "total_revenue": round(sum(row["total_amount"] for row in order_stats), 2),
            "verified_farmers": next(
                (row["count"] for row in farmer_stats if row["verified_status"]), 0
            ),
        }
        return {
            "period": period if period in ANALYTICS_PERIODS else "monthly",
            "analytics": {
                "user_stats": user_stats,
                "farmer_stats": farmer_stats,
                "product_stats": product_stats,
                "order_stats": order_stats,
                "revenue_trend": revenue_trend,
                "popular_categories": popular_categories,
                "top_farmers": top_farmers,
                "user_growth": user_growth,
            },
            "summary": summary,
            "generated_at": utcnow().isoformat(),
        }

    # ---------------------------------------------------------------
    # system
    # ---------------------------------------------------------------
    def logs(self, args, page: int, limit: int):
        stmt = select(AdminAction)
        if args.get("action_type"):
            stmt = stmt.where(AdminAction.action_type == args["action_type"])
        admin_id = args.get("admin_id", type=int)
        if admin_id:
            stmt = stmt.where(AdminAction.admin_id == admin_id)
        start = _datetime_arg(args, "start_date")
        end = _datetime_arg(args, "end_date", end_of_day=True)
        if start:
            stmt = stmt.where(AdminAction.created_at >= start)
        if end:
            stmt = stmt.where(AdminAction.created_at < end)
        stmt = stmt.order_by(AdminAction.created_at.desc(), AdminAction.action_id.desc())
        return paginate(self.session, stmt, page, limit)

    def update_settings(self, actor: Actor, settings) -> Dict[str, Any]:
        if not isinstance(settings, dict) or not settings:
            raise ValidationError("Invalid settings data")
        merged = {**DEFAULT_SETTINGS, **settings}
        self.audit.record(actor.user_id, AdminActionType.SYSTEM_SETTINGS_UPDATE, None, settings)
        current_app.logger.info("System settings updated by admin %s: %s", actor.user_id, sorted(settings))
        return merged
