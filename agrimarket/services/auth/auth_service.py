# agrimarket/services/auth/auth_service.py
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from agrimarket.errors import (
    AlreadyInitialized,
    Conflict,
    Forbidden,
    InvalidOperation,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from agrimarket.models.auth_models import (
    AdminRegisterModel,
    LoginModel,
    RegisterFarmerModel,
    RegisterModel,
    UpdateProfileModel,
)
from agrimarket.models.enums import AdminActionType, Role, UserStatus
from agrimarket.services.admin.audit import AuditLog
from agrimarket.services.auth.access import Actor, farmer_for_user
from agrimarket.services.auth.credentials import PasswordHasher, issue_token
from agrimarket.tables import Farmer, User


def user_payload(user: User, with_farmer: bool = True) -> Dict[str, Any]:
    """Public view of a user; never includes the password hash."""
    data = user.to_dict()
    if with_farmer:
        data["farmer_profile"] = user.farmer.to_dict() if user.farmer else None
    return data


class AuthService:
    def __init__(self, session):
        self.session = session

    # ---------------------------------------------------------------
    # lookups
    # ---------------------------------------------------------------
    def _by_email(self, email: str) -> Optional[User]:
        return self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        ).scalar_one_or_none()

    def get_user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _admin_exists(self) -> bool:
        return self.session.execute(
            select(User.user_id).where(User.role == Role.ADMIN).limit(1)
        ).first() is not None

    # ---------------------------------------------------------------
    # account creation
    # ---------------------------------------------------------------
    def _create_user(self, data: RegisterModel, role: Role) -> User:
        if self._by_email(data.email):
            raise Conflict("Email already registered")

        user = User(
            full_name=data.full_name,
            email=data.email,
            password=PasswordHasher.hash(data.password),
            role=role,
            status=UserStatus.ACTIVE,
            contact_number=data.contact_number,
            address=data.address,
            barangay=data.barangay,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict("Email already registered")
        return user

    def register(self, payload: Dict[str, Any]):
        data = RegisterModel(**payload)
        user = self._create_user(data, Role.CUSTOMER)
        current_app.logger.info("User registered: %s (id=%s)", user.email, user.user_id)
        return user, issue_token(user)

    def create_first_admin(self, payload: Dict[str, Any]):
        if self._admin_exists():
            raise AlreadyInitialized(
                "Admin already exists. Use admin registration endpoint instead."
            )
        data = AdminRegisterModel(**payload)
        user = self._create_user(data, Role.ADMIN)
        current_app.logger.info("First admin created: %s", user.email)
        return user, issue_token(user)

    def admin_register(self, actor: Actor, payload: Dict[str, Any]) -> User:
        data = AdminRegisterModel(**payload)
        expected = current_app.config.get("ADMIN_REGISTRATION_CODE")
        if expected and data.admin_code != expected:
            raise Forbidden("Invalid admin registration code")

        user = self._create_user(data, Role.ADMIN)
        AuditLog(self.session).record(
            actor.user_id,
            AdminActionType.ADMIN_CREATED,
            user.user_id,
            {"email": user.email, "full_name": user.full_name},
        )
        current_app.logger.info("Admin %s registered by admin %s", user.email, actor.user_id)
        return user

    # ---------------------------------------------------------------
    # login
    # ---------------------------------------------------------------
    def _check_credentials(self, payload: Dict[str, Any], role: Optional[Role] = None) -> User:
        data = LoginModel(**payload)
        user = self._by_email(data.email)
        if role is not None and user is not None and user.role is not role:
            user = None

        if user is None or not PasswordHasher.verify(data.password, user.password):
            if role is Role.ADMIN:
                raise Unauthenticated("Invalid admin credentials")
            raise Unauthenticated("Invalid email or password")

        if user.status is not UserStatus.ACTIVE:
            raise Forbidden("Account is deactivated. Please contact support.")
        return user

    def login(self, payload: Dict[str, Any]):
        user = self._check_credentials(payload)
        return user, issue_token(user)

    def admin_login(self, payload: Dict[str, Any]):
        user = self._check_credentials(payload, role=Role.ADMIN)
        return user, issue_token(user)

    # ---------------------------------------------------------------
    # profile
    # ---------------------------------------------------------------
    def update_profile(self, user_id: int, payload: Dict[str, Any]) -> User:
        changes = UpdateProfileModel(**payload).changes()
        if not changes:
            raise ValidationError("No data provided for update")

        user = self.get_user(user_id)
        for key, value in changes.items():
            setattr(user, key, value)
        self.session.commit()
        return user

    def register_farmer(self, actor: Actor, payload: Dict[str, Any]):
        if actor.is_admin:
            raise InvalidOperation("Admin accounts cannot register as farmers")
        existing = farmer_for_user(self.session, actor.user_id)
        if existing:
            raise Conflict(
                "User is already registered as a farmer", farmer_id=existing.farmer_id
            )

        data = RegisterFarmerModel(**payload)
        user = self.get_user(actor.user_id)
        farmer = Farmer(
            user_id=user.user_id,
            farm_name=data.farm_name,
            barangay=data.farm_location or user.barangay,
            product_categories=data.farm_description or "",
            verified_status=False,
        )
        user.role = Role.FARMER
        self.session.add(farmer)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict("User is already registered as a farmer")

        current_app.logger.info("Farmer registered: user=%s farmer=%s", user.user_id, farmer.farmer_id)
        return farmer, issue_token(user)

    def list_users(self):
        return self.session.execute(
            select(User).order_by(User.created_at.desc(), User.user_id.desc())
        ).scalars().all()
