# agrimarket/errors.py
from __future__ import annotations

from flask import current_app, jsonify
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException


class MarketplaceError(Exception):
    """Base for every error that is rendered as structured JSON."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None, **extra):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        body.update(self.extra)
        return body


class ValidationError(MarketplaceError):
    status_code = 400


class InvalidOperation(MarketplaceError):
    status_code = 400


class Unauthenticated(MarketplaceError):
    status_code = 401


class Forbidden(MarketplaceError):
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class Conflict(MarketplaceError):
    status_code = 400


class AlreadyInitialized(MarketplaceError):
    status_code = 403


class InsufficientStock(MarketplaceError):
    status_code = 400

    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}",
            product_id=product_id,
            product_name=product_name,
            available=available,
            requested=requested,
        )


class CrossFarmerOrder(MarketplaceError):
    status_code = 400

    def __init__(self, message: str = "All items must be from the same farmer", **extra):
        super().__init__(message, **extra)


class InternalError(MarketplaceError):
    status_code = 500


def _describe(err: dict) -> str:
    msg = err.get("msg", "")
    if err.get("type") == "value_error":
        return msg.removeprefix("Value error, ")
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {msg}" if field else msg


def validation_error_from(exc: PydanticValidationError) -> ValidationError:
    """First problem becomes the error message, all of them go in `errors`."""
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ())),
            "message": _describe(err),
        }
        for err in exc.errors()
    ]
    message = errors[0]["message"] if errors else "Invalid request data"
    return ValidationError(message, errors=errors)


# -------------------------------------------------------------------
# Flask wiring
# -------------------------------------------------------------------
def _is_development() -> bool:
    return current_app.config.get("APP_ENV") == "development"


def register_error_handlers(app):

    @app.errorhandler(MarketplaceError)
    def _marketplace_error(e: MarketplaceError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(PydanticValidationError)
    def _payload_error(e: PydanticValidationError):
        err = validation_error_from(e)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(404)
    def _not_found(e):
        return jsonify(success=False, error="Endpoint not found"), 404

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return jsonify(success=False, error="Method not allowed"), 405

    @app.errorhandler(413)
    def _too_large(e):
        return jsonify(success=False, error="Uploaded file is too large"), 413

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify(success=False, error=e.description or e.name), e.code or 500

    @app.errorhandler(Exception)
    def _internal_error(e: Exception):
        app.logger.exception("An internal server error occurred: %s", e)
        body = {"success": False, "error": "Internal server error"}
        if _is_development():
            body["details"] = str(e)
        return jsonify(body), 500
