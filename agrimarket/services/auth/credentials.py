# agrimarket/services/auth/credentials.py
from __future__ import annotations

from flask import jsonify
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager, create_access_token

bcrypt = Bcrypt()
jwt = JWTManager()


class PasswordHasher:
    """Thin capability over Flask-Bcrypt so services never touch bcrypt directly."""

    @staticmethod
    def hash(plaintext: str) -> str:
        return bcrypt.generate_password_hash(plaintext).decode("utf-8")

    @staticmethod
    def verify(plaintext: str, hashed: str) -> bool:
        if not hashed:
            return False
        return bcrypt.check_password_hash(hashed, plaintext)


def issue_token(user) -> str:
    return create_access_token(
        identity=str(user.user_id),
        additional_claims={"email": user.email, "role": user.role.value},
    )


# -------------------------------------------------------------------
# JWT error responses
# -------------------------------------------------------------------
def _unauthorized(message: str):
    return jsonify(success=False, error=message), 401


@jwt.unauthorized_loader
def _missing_token(reason):
    return _unauthorized("Access denied. No token provided.")


@jwt.invalid_token_loader
def _invalid_token(reason):
    return _unauthorized("Invalid token")


@jwt.expired_token_loader
def _expired_token(jwt_header, jwt_payload):
    return _unauthorized("Token expired")


@jwt.revoked_token_loader
def _revoked_token(jwt_header, jwt_payload):
    return _unauthorized("Token revoked")


def init_auth(app):
    bcrypt.init_app(app)
    jwt.init_app(app)
    app.logger.info("Auth initialized (token ttl=%s)", app.config.get("JWT_ACCESS_TOKEN_EXPIRES"))
