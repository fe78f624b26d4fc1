# agrimarket/routes/products/product_routes.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from agrimarket.database import db
from agrimarket.models.enums import Role
from agrimarket.routes.request_body import json_body
from agrimarket.services.auth.access import current_actor, optional_actor, require_roles
from agrimarket.services.pagination import page_params
from agrimarket.services.products.product_service import ProductService, product_payload

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

IMAGE_FIELD = "product_image"


def _service() -> ProductService:
    return ProductService(db.session)


def _payload() -> dict:
    """Form fields for multipart uploads, JSON body otherwise."""
    if request.mimetype == "multipart/form-data" or request.form:
        return request.form.to_dict()
    return json_body()


def _image():
    file = request.files.get(IMAGE_FIELD)
    return file if file and file.filename else None


# ------------------------------------------------------------
# Public catalog
# ------------------------------------------------------------
@products_bp.get("")
def list_products():
    page, limit = page_params(request.args, current_app.config["DEFAULT_PAGE_SIZE"])
    products, pagination = _service().list_public(request.args, page, limit)
    return jsonify(
        success=True,
        products=[product_payload(p) for p in products],
        count=len(products),
        pagination=pagination,
    ), 200


@products_bp.get("/search")
def search_products():
    query = request.args.get("query") or request.args.get("q")
    products = _service().search(query)
    return jsonify(
        success=True,
        query=query.strip(),
        products=[product_payload(p) for p in products],
        count=len(products),
    ), 200


@products_bp.get("/category/<category>")
def products_by_category(category):
    products = _service().by_category(category)
    return jsonify(
        success=True,
        category=category,
        products=[product_payload(p) for p in products],
        count=len(products),
    ), 200


@products_bp.get("/<int:product_id>")
def get_product(product_id):
    product = _service().view(product_id, optional_actor())
    return jsonify(success=True, product=product_payload(product, detailed=True)), 200


# ------------------------------------------------------------
# Farmer listings
# ------------------------------------------------------------
@products_bp.post("")
@require_roles(Role.FARMER)
def create_product():
    product = _service().create(current_actor(), _payload(), _image())
    farmer = product.farmer
    return jsonify(
        success=True,
        message="Product created successfully",
        product=product_payload(product),
        farmer_info={"farm_name": farmer.farm_name, "barangay": farmer.barangay},
    ), 201


@products_bp.get("/farmer/products")
@require_roles(Role.FARMER)
def my_products():
    products = _service().mine(current_actor())
    return jsonify(
        success=True,
        products=[product_payload(p) for p in products],
        count=len(products),
    ), 200


@products_bp.put("/<int:product_id>")
@require_roles(Role.FARMER)
def update_product(product_id):
    product = _service().update(current_actor(), product_id, _payload(), _image())
    return jsonify(success=True, message="Product updated successfully", product=product_payload(product)), 200


@products_bp.patch("/<int:product_id>/status")
@require_roles(Role.FARMER)
def update_product_status(product_id):
    status = json_body().get("status")
    product = _service().update_status(current_actor(), product_id, status)
    return jsonify(
        success=True,
        message=f"Product status updated to {product.status.value}",
        product=product_payload(product),
    ), 200


@products_bp.patch("/<int:product_id>/image")
@require_roles(Role.FARMER)
def update_product_image(product_id):
    product = _service().update_image(current_actor(), product_id, _image())
    return jsonify(success=True, message="Product image updated successfully", product=product_payload(product)), 200


@products_bp.delete("/<int:product_id>")
@require_roles(Role.FARMER)
def delete_product(product_id):
    _service().delete(current_actor(), product_id)
    return jsonify(success=True, message="Product deleted successfully"), 200
