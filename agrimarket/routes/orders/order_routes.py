# agrimarket/routes/orders/order_routes.py
from __future__ import annotations

from flask import Blueprint, jsonify

from agrimarket.database import db
from agrimarket.routes.request_body import json_body
from agrimarket.services.auth.access import authenticated, current_actor
from agrimarket.services.orders.order_service import OrderService

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _service() -> OrderService:
    return OrderService(db.session)


@orders_bp.post("")
@authenticated
def create_order():
    order = _service().create_order(current_actor().user_id, json_body())
    return jsonify(success=True, message="Order created successfully", order=order.to_dict()), 201


@orders_bp.get("/customer")
@authenticated
def customer_orders():
    orders = _service().for_customer(current_actor().user_id)
    return jsonify(success=True, orders=[o.to_dict() for o in orders], count=len(orders)), 200


@orders_bp.get("/farmer")
@authenticated
def farmer_orders():
    orders = _service().for_farmer(current_actor())
    return jsonify(success=True, orders=[o.to_dict() for o in orders], count=len(orders)), 200


@orders_bp.get("/<int:order_id>")
@authenticated
def get_order(order_id):
    order = _service().get_for(order_id, current_actor())
    return jsonify(success=True, order=order.to_dict()), 200


@orders_bp.put("/<int:order_id>/status")
@authenticated
def update_order_status(order_id):
    status = json_body().get("status")
    order = _service().update_status(order_id, status, current_actor())
    return jsonify(
        success=True,
        message=f"Order status updated to {order.order_status.value}",
        order=order.to_dict(),
    ), 200


@orders_bp.get("/<int:order_id>/items")
@authenticated
def order_items(order_id):
    items = _service().items_for(order_id, current_actor())
    return jsonify(success=True, items=[i.to_dict() for i in items], count=len(items)), 200
