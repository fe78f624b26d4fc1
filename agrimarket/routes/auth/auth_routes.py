# agrimarket/routes/auth/auth_routes.py
from __future__ import annotations

from flask import Blueprint, jsonify

from agrimarket.database import db
from agrimarket.models.enums import Role
from agrimarket.routes.request_body import json_body
from agrimarket.services.auth.access import authenticated, current_actor, require_roles
from agrimarket.services.auth.auth_service import AuthService, user_payload

# -------------------------------------------------------------------
# Blueprint
# -------------------------------------------------------------------
auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _service() -> AuthService:
    return AuthService(db.session)


# -------------------------------------------------------------------
# Customers
# -------------------------------------------------------------------
@auth_bp.post("/register")
def register():
    user, token = _service().register(json_body())
    return jsonify(
        success=True,
        message="User registered successfully",
        token=token,
        user=user_payload(user, with_farmer=False),
    ), 201


@auth_bp.post("/login")
def login():
    user, token = _service().login(json_body())
    return jsonify(success=True, message="Login successful", token=token, user=user_payload(user)), 200


@auth_bp.get("/profile")
@authenticated
def profile():
    user = _service().get_user(current_actor().user_id)
    return jsonify(success=True, user=user_payload(user)), 200


@auth_bp.put("/update-profile")
@authenticated
def update_profile():
    user = _service().update_profile(current_actor().user_id, json_body())
    return jsonify(success=True, message="Profile updated successfully", user=user_payload(user)), 200


@auth_bp.post("/register-farmer")
@authenticated
def register_farmer():
    farmer, token = _service().register_farmer(current_actor(), json_body())
    return jsonify(
        success=True,
        message="Farmer registration submitted",
        note="Pending verification",
        farmer=farmer.to_dict(),
        token=token,
    ), 201


# -------------------------------------------------------------------
# Admins
# -------------------------------------------------------------------
@auth_bp.post("/create-first-admin")
def create_first_admin():
    user, token = _service().create_first_admin(json_body())
    return jsonify(
        success=True,
        message="First admin created successfully",
        token=token,
        admin=user_payload(user, with_farmer=False),
    ), 201


@auth_bp.post("/admin/register")
@require_roles(Role.ADMIN)
def admin_register():
    user = _service().admin_register(current_actor(), json_body())
    return jsonify(
        success=True,
        message="Admin registered successfully",
        admin=user_payload(user, with_farmer=False),
    ), 201


@auth_bp.post("/admin/login")
def admin_login():
    user, token = _service().admin_login(json_body())
    return jsonify(
        success=True,
        message="Admin login successful",
        token=token,
        admin=user_payload(user, with_farmer=False),
    ), 200


@auth_bp.get("/admin/users")
@require_roles(Role.ADMIN)
def admin_users():
    users = _service().list_users()
    return jsonify(
        success=True,
        users=[user_payload(u, with_farmer=False) for u in users],
        count=len(users),
    ), 200
