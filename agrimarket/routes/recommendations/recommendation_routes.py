# agrimarket/routes/recommendations/recommendation_routes.py
from __future__ import annotations

from flask import Blueprint, jsonify

from agrimarket.database import db
from agrimarket.models.enums import Role
from agrimarket.services.auth.access import authenticated, current_actor, require_roles
from agrimarket.services.recommendations.recommendation_service import RecommendationService
from agrimarket.tables import utcnow

recommendations_bp = Blueprint("recommendations", __name__, url_prefix="/api/recommendations")


def _service() -> RecommendationService:
    return RecommendationService(db.session)


@recommendations_bp.get("/market-insights")
@require_roles(Role.FARMER)
def market_insights():
    return jsonify(success=True, **_service().market_insights(current_actor())), 200


@recommendations_bp.get("/customer-preferences")
@authenticated
def customer_preferences():
    return jsonify(
        success=True,
        preferences=_service().customer_preferences(),
        timestamp=utcnow().isoformat(),
    ), 200


@recommendations_bp.get("/seasonal")
@authenticated
def seasonal():
    return jsonify(success=True, **_service().seasonal()), 200


@recommendations_bp.get("/personalized")
@require_roles(Role.CUSTOMER)
def personalized():
    return jsonify(success=True, **_service().personalized(current_actor())), 200


@recommendations_bp.get("/demand-analysis")
@require_roles(Role.FARMER)
def demand_analysis():
    return jsonify(success=True, **_service().demand_analysis(current_actor())), 200
