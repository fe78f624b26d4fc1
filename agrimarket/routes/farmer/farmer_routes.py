# agrimarket/routes/farmer/farmer_routes.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from agrimarket.database import db
from agrimarket.models.enums import Role
from agrimarket.routes.request_body import is_preflight, json_body
from agrimarket.services.auth.access import check_roles, current_actor
from agrimarket.services.farmer.farmer_service import FarmerService

farmers_bp = Blueprint("farmers", __name__, url_prefix="/api/farmers")


@farmers_bp.before_request
def _farmers_only():
    """Every farmer route needs a FARMER account; CORS preflights pass through."""
    if not is_preflight():
        check_roles(Role.FARMER)


def _service() -> FarmerService:
    return FarmerService(db.session)


@farmers_bp.get("/dashboard")
def dashboard():
    return jsonify(success=True, **_service().dashboard(current_actor())), 200


@farmers_bp.put("/profile")
def update_profile():
    farmer = _service().update_profile(current_actor(), json_body())
    return jsonify(success=True, message="Farmer profile updated successfully", farmer=farmer.to_dict()), 200


@farmers_bp.get("/inventory")
def inventory():
    data = _service().inventory(
        current_actor(),
        status=request.args.get("status"),
        category=request.args.get("category"),
    )
    return jsonify(success=True, **data), 200


@farmers_bp.get("/sales-report")
def sales_report():
    data = _service().sales_report(
        current_actor(),
        days=request.args.get("days", type=int),
        period=request.args.get("period"),
    )
    return jsonify(success=True, **data), 200


@farmers_bp.get("/reviews")
def reviews():
    data = _service().reviews(
        current_actor(),
        min_rating=request.args.get("min_rating", type=int),
        product_id=request.args.get("product_id", type=int),
    )
    return jsonify(success=True, **data), 200
