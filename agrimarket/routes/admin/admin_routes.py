# agrimarket/routes/admin/admin_routes.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from agrimarket.database import db
from agrimarket.models.enums import Role
from agrimarket.routes.request_body import is_preflight, json_body
from agrimarket.services.admin.admin_service import AdminService
from agrimarket.services.auth.access import check_roles, current_actor
from agrimarket.services.pagination import page_params
from agrimarket.services.products.product_service import product_payload
from agrimarket.tables import utcnow

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.before_request
def _admins_only():
    """Every admin route needs an ADMIN account; CORS preflights pass through."""
    if not is_preflight():
        check_roles(Role.ADMIN)


def _service() -> AdminService:
    return AdminService(db.session)


def _page(default=None):
    return page_params(request.args, default or current_app.config["DEFAULT_PAGE_SIZE"])


# ------------------------------------------------------------
# Users
# ------------------------------------------------------------
@admin_bp.get("/users")
def list_users():
    users, pagination = _service().list_users(request.args, *_page())
    return jsonify(success=True, users=[u.to_dict() for u in users], pagination=pagination), 200


@admin_bp.get("/users/<int:user_id>")
def user_details(user_id):
    return jsonify(success=True, user=_service().user_details(user_id)), 200


@admin_bp.patch("/users/<int:user_id>/status")
def update_user_status(user_id):
    user = _service().update_user_status(current_actor(), user_id, json_body().get("status"))
    return jsonify(
        success=True,
        message=f"User status updated to {user.status.value}",
        user=user.to_dict(),
    ), 200


@admin_bp.patch("/users/<int:user_id>/role")
def update_user_role(user_id):
    user = _service().update_user_role(current_actor(), user_id, json_body().get("role"))
    return jsonify(
        success=True,
        message=f"User role updated to {user.role.value}",
        user=user.to_dict(),
    ), 200


# ------------------------------------------------------------
# Farmers
# ------------------------------------------------------------
@admin_bp.get("/farmers/pending-verifications")
def pending_verifications():
    farmers, pagination = _service().pending_verifications(*_page())
    return jsonify(success=True, pending_verifications=farmers, pagination=pagination), 200


@admin_bp.patch("/farmers/<int:farmer_id>/verify")
def verify_farmer(farmer_id):
    verified = json_body().get("verified_status")
    farmer = _service().verify_farmer(current_actor(), farmer_id, verified)
    return jsonify(
        success=True,
        message=f"Farmer verification status updated to {str(farmer.verified_status).lower()}",
        farmer=farmer.to_dict(),
    ), 200


# ------------------------------------------------------------
# Products
# ------------------------------------------------------------
@admin_bp.get("/products")
def list_products():
    products, pagination = _service().list_products(request.args, *_page())
    return jsonify(success=True, products=[product_payload(p) for p in products], pagination=pagination), 200


@admin_bp.patch("/products/<int:product_id>/status")
def update_product_status(product_id):
    product, reason = _service().update_product_status(current_actor(), product_id, json_body())
    return jsonify(
        success=True,
        message=f"Product status updated to {product.status.value}",
        product=product_payload(product),
        reason=reason,
    ), 200


# ------------------------------------------------------------
# Orders
# ------------------------------------------------------------
@admin_bp.get("/orders")
def list_orders():
    orders, pagination = _service().list_orders(request.args, *_page())
    return jsonify(success=True, orders=[o.to_dict() for o in orders], pagination=pagination), 200


@admin_bp.patch("/orders/<int:order_id>")
def update_order(order_id):
    order = _service().update_order(current_actor(), order_id, json_body())
    return jsonify(success=True, message="Order updated successfully", order=order.to_dict()), 200


# ------------------------------------------------------------
# System
# ------------------------------------------------------------
@admin_bp.get("/analytics")
def analytics():
    return jsonify(success=True, **_service().analytics(request.args.get("period", "monthly"))), 200


@admin_bp.get("/settings/logs")
def system_logs():
    logs, pagination = _service().logs(request.args, *_page(50))
    return jsonify(success=True, logs=[entry.to_dict() for entry in logs], pagination=pagination), 200


@admin_bp.put("/settings")
def update_settings():
    settings = _service().update_settings(current_actor(), json_body().get("settings"))
    return jsonify(
        success=True,
        message="System settings updated successfully",
        settings=settings,
        updated_at=utcnow().isoformat(),
    ), 200
