# agrimarket/services/auth/access.py
from __future__ import annotations

from dataclasses import dataclass, replace
from functools import wraps
from typing import Optional

from flask import g
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import select

from agrimarket.database import db
from agrimarket.errors import Forbidden, Unauthenticated
from agrimarket.models.enums import Role, UserStatus, parse_enum
from agrimarket.tables import Farmer, User


@dataclass(frozen=True)
class Actor:
    user_id: int
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def _actor_from_claims() -> Actor:
    claims = get_jwt()
    role = parse_enum(Role, claims.get("role"))
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token")
    if role is None:
        raise Unauthenticated("Invalid token")
    return Actor(user_id=user_id, email=claims.get("email", ""), role=role)


def current_actor() -> Actor:
    """Decode the bearer token of the current request; 401 when missing or bad."""
    actor = getattr(g, "actor", None)
    if actor is None:
        # None for exempt methods (OPTIONS), which carry no token
        if verify_jwt_in_request() is None:
            raise Unauthenticated("Access denied. No token provided.")
        actor = _actor_from_claims()
        g.actor = actor
    return actor


def optional_actor() -> Optional[Actor]:
    """Actor for a valid token, None for no token or an unusable one."""
    try:
        if verify_jwt_in_request(optional=True) is None:
            return None
        return current_actor()
    except (JWTExtendedException, PyJWTError, Unauthenticated):
        return None


def stored_actor() -> Actor:
    """
    Current actor checked against the users table: the stored role wins
    over the token claim, and only ACTIVE accounts pass.
    """
    actor = current_actor()
    if getattr(g, "actor_checked", False):
        return actor

    user = db.session.get(User, actor.user_id)
    if user is None:
        raise Unauthenticated("Invalid token")
    if user.status is not UserStatus.ACTIVE:
        raise Forbidden("Account is deactivated. Please contact support.")

    if user.role is not actor.role:
        actor = replace(actor, role=user.role)
        g.actor = actor
    g.actor_checked = True
    return actor


def check_roles(*roles: Role) -> Actor:
    actor = stored_actor()
    if actor.role not in roles:
        names = [r.value for r in roles]
        raise Forbidden(
            f"Access denied. Required roles: {', '.join(names)}",
            your_role=actor.role.value,
            required_roles=names,
        )
    return actor


# -------------------------------------------------------------------
# Decorators
# -------------------------------------------------------------------
def authenticated(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_actor()
        return fn(*args, **kwargs)

    return wrapper


def require_roles(*roles: Role):
    allowed = tuple(roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            check_roles(*allowed)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


# -------------------------------------------------------------------
# Ownership
# -------------------------------------------------------------------
def farmer_for_user(session, user_id: int) -> Optional[Farmer]:
    return session.execute(
        select(Farmer).where(Farmer.user_id == user_id)
    ).scalar_one_or_none()


def resolve_owner(session, actor: Actor) -> Optional[int]:
    """farmer_id of the actor's Farmer record, or None when there is none."""
    farmer = farmer_for_user(session, actor.user_id)
    return farmer.farmer_id if farmer else None


def owns(session, actor: Actor, resource) -> bool:
    owner = resolve_owner(session, actor)
    return owner is not None and resource.farmer_id == owner


def can_manage_order(session, actor: Actor, order) -> bool:
    return actor.is_admin or owns(session, actor, order)


def can_view_order(session, actor: Actor, order) -> bool:
    return order.customer_id == actor.user_id or can_manage_order(session, actor, order)
