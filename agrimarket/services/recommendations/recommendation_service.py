# agrimarket/services/recommendations/recommendation_service.py
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import extract, func, select

from agrimarket.errors import Forbidden
from agrimarket.models.enums import OrderStatus, ProductStatus
from agrimarket.services.auth.access import Actor, resolve_owner
from agrimarket.services.products.image_store import absolute_url
from agrimarket.tables import Farmer, Feedback, Order, OrderItem, Product, ProductView, utcnow

DEMAND_WEIGHTS = {"frequency": 0.4, "price_trend": 0.3, "unmet_demand": 0.3}
POPULARITY_WEIGHTS = {"unique_viewers": 0.4, "purchases": 0.5, "rating": 0.1}


def _num(value) -> float:
    return float(value) if value is not None else 0.0


def _card(product: Product) -> Dict[str, Any]:
    data = product.to_dict()
    data["image_url"] = absolute_url(product.image_url)
    data["farm_name"] = product.farmer.farm_name if product.farmer else None
    return data


class RecommendationService:
    """
    Read-only reports built from views, orders and feedback.
    Nothing here writes; an empty catalog gives empty lists.
    """

    def __init__(self, session):
        self.session = session

    def _farmer_id(self, actor: Actor) -> int:
        farmer_id = resolve_owner(self.session, actor)
        if farmer_id is None:
            raise Forbidden("User is not a registered farmer")
        return farmer_id

    # ---------------------------------------------------------------
    # per-product counters
    # ---------------------------------------------------------------
    def _grouped(self, stmt) -> Dict[int, Any]:
        return {pid: value for pid, value in self.session.execute(stmt).all()}

    def _viewers(self, since=None) -> Dict[int, int]:
        stmt = select(ProductView.product_id, func.count(ProductView.view_id))
        if since is not None:
            stmt = stmt.where(ProductView.last_viewed_at >= since)
        return self._grouped(stmt.group_by(ProductView.product_id))

    def _purchases(self, statuses=None, since=None) -> Dict[int, int]:
        stmt = (
            select(OrderItem.product_id, func.count(OrderItem.order_item_id))
            .join(Order, OrderItem.order_id == Order.order_id)
        )
        if statuses is not None:
            stmt = stmt.where(Order.order_status.in_(list(statuses)))
        if since is not None:
            stmt = stmt.where(Order.order_date >= since)
        return self._grouped(stmt.group_by(OrderItem.product_id))

    def _ratings(self) -> Dict[int, float]:
        return self._grouped(
            select(Feedback.product_id, func.avg(Feedback.rating)).group_by(Feedback.product_id)
        )

    def _market(self) -> Dict[str, Dict[str, Any]]:
        rows = self.session.execute(
            select(
                Product.category,
                func.avg(Product.price),
                func.count(Product.product_id),
                func.count(func.distinct(Product.farmer_id)),
            )
            .where(Product.status == ProductStatus.AVAILABLE)
            .group_by(Product.category)
        ).all()
        return {
            category: {
                "avg_price": _num(avg_price),
                "total_listings": listings,
                "farmers_count": farmers,
            }
            for category, avg_price, listings, farmers in rows
        }

    # ---------------------------------------------------------------
    # farmer reports
    # ---------------------------------------------------------------
    def market_insights(self, actor: Actor) -> Dict[str, Any]:
        farmer_id = self._farmer_id(actor)
        products = self.session.execute(
            select(Product).where(Product.farmer_id == farmer_id)
        ).scalars().all()

        views = self._viewers()
        purchases = self._purchases()
        pending = self._purchases(statuses=[OrderStatus.PENDING])
        ratings = self._ratings()
        market = self._market()

        insights = []
        for p in products:
            trend = market.get(p.category)
            avg_price = trend["avg_price"] if trend else None
            price_trend = (avg_price - _num(p.price)) / avg_price if avg_price else 0.0
            bought = purchases.get(p.product_id, 0)
            unmet = pending.get(p.product_id, 0)
            insights.append({
                "product_id": p.product_id,
                "product_name": p.product_name,
                "category": p.category,
                "price": _num(p.price),
                "view_count": views.get(p.product_id, 0),
                "purchase_count": bought,
                "avg_rating": round(_num(ratings.get(p.product_id)), 2),
                "unmet_demand": unmet,
                "market_avg_price": round(avg_price, 2) if avg_price is not None else None,
                "market_competition": trend["farmers_count"] if trend else 0,
                "demand_score": round(
                    bought * DEMAND_WEIGHTS["frequency"]
                    + price_trend * DEMAND_WEIGHTS["price_trend"]
                    + unmet * DEMAND_WEIGHTS["unmet_demand"],
                    2,
                ),
            })
        insights.sort(key=lambda row: row["demand_score"], reverse=True)
        return {"insights": insights, "farmer_id": farmer_id}

    def demand_analysis(self, actor: Actor, days: int = 30) -> Dict[str, Any]:
        farmer_id = self._farmer_id(actor)
        products = self.session.execute(
            select(Product).where(
                Product.farmer_id == farmer_id, Product.status == ProductStatus.AVAILABLE
            )
        ).scalars().all()

        views = self._viewers()
        sold = self._purchases()
        pending = self._purchases(statuses=[OrderStatus.PENDING])

        per_product = []
        for p in products:
            freq = views.get(p.product_id, 0)
            price_trend = 1.0 if sold.get(p.product_id) else 0.5
            unmet = pending.get(p.product_id, 0)
            per_product.append({
                "product_id": p.product_id,
                "product_name": p.product_name,
                "category": p.category,
                "freq_c": freq,
                "price_trend_c": price_trend,
                "unmet_demand_c": unmet,
                "demand_score": round(
                    freq * DEMAND_WEIGHTS["frequency"]
                    + price_trend * DEMAND_WEIGHTS["price_trend"]
                    + unmet * DEMAND_WEIGHTS["unmet_demand"],
                    2,
                ),
            })
        per_product.sort(key=lambda row: row["demand_score"], reverse=True)

        since = utcnow() - timedelta(days=days)
        categories = [
            {"category": category, "total_ordered": int(units or 0), "order_count": orders}
            for category, units, orders in self.session.execute(
                select(
                    Product.category,
                    func.sum(OrderItem.quantity),
                    func.count(func.distinct(Order.order_id)),
                )
                .join(OrderItem, OrderItem.product_id == Product.product_id)
                .join(Order, OrderItem.order_id == Order.order_id)
                .where(Product.farmer_id == farmer_id, Order.order_date >= since)
                .group_by(Product.category)
                .order_by(func.sum(OrderItem.quantity).desc())
            ).all()
        ]
        return {
            "demand_analysis": per_product,
            "category_demand": categories,
            "weights": dict(DEMAND_WEIGHTS),
        }

    # ---------------------------------------------------------------
    # customer-facing
    # ---------------------------------------------------------------
    def customer_preferences(self, limit: int = 10) -> List[Dict[str, Any]]:
        products = self.session.execute(
            select(Product).where(Product.status == ProductStatus.AVAILABLE)
        ).scalars().all()
        viewers = self._viewers()
        purchases = self._purchases()
        ratings = self._ratings()

        rows = []
        for p in products:
            unique_viewers = viewers.get(p.product_id, 0)
            if not unique_viewers:
                continue
            bought = purchases.get(p.product_id, 0)
            rating = _num(ratings.get(p.product_id))
            rows.append({
                "product_id": p.product_id,
                "product_name": p.product_name,
                "category": p.category,
                "unique_viewers": unique_viewers,
                "total_purchases": bought,
                "avg_rating": round(rating, 2),
                "popularity_score": round(
                    unique_viewers * POPULARITY_WEIGHTS["unique_viewers"]
                    + bought * POPULARITY_WEIGHTS["purchases"]
                    + rating * POPULARITY_WEIGHTS["rating"],
                    2,
                ),
            })
        rows.sort(key=lambda row: row["popularity_score"], reverse=True)
        return rows[:limit]

    def seasonal(self) -> Dict[str, Any]:
        month = utcnow().month
        months = [month, month % 12 + 1]
        harvest_month = extract("month", Product.harvest_date)
        rows = self.session.execute(
            select(
                Product.category,
                harvest_month,
                func.count(Product.product_id),
                func.avg(Product.price),
            )
            .where(
                Product.status == ProductStatus.AVAILABLE,
                Product.harvest_date.is_not(None),
                harvest_month.in_(months),
            )
            .group_by(Product.category, harvest_month)
            .order_by(func.count(Product.product_id).desc(), Product.category)
        ).all()
        return {
            "recommendations": [
                {
                    "category": category,
                    "harvest_month": int(m),
                    "total_listings": n,
                    "avg_price": round(_num(avg), 2),
                }
                for category, m, n, avg in rows
            ],
            "current_month": month,
        }

    def personalized(self, actor: Actor) -> Dict[str, Any]:
        recent = self.session.execute(
            select(Product, ProductView.last_viewed_at)
            .join(ProductView, ProductView.product_id == Product.product_id)
            .where(ProductView.user_id == actor.user_id)
            .order_by(ProductView.last_viewed_at.desc(), ProductView.view_id.desc())
            .limit(10)
        ).all()
        recently_viewed = []
        for product, viewed_at in recent:
            card = _card(product)
            card["viewed_at"] = viewed_at.isoformat() if viewed_at else None
            recently_viewed.append(card)

        viewed_ids = select(ProductView.product_id).where(ProductView.user_id == actor.user_id)
        viewed_categories = (
            select(Product.category)
            .join(ProductView, ProductView.product_id == Product.product_id)
            .where(ProductView.user_id == actor.user_id)
            .distinct()
        )
        similar = self.session.execute(
            select(Product)
            .join(Farmer, Product.farmer_id == Farmer.farmer_id)
            .where(
                Product.status == ProductStatus.AVAILABLE,
                Product.category.in_(viewed_categories),
                Product.product_id.not_in(viewed_ids),
            )
            .order_by(Product.created_at.desc(), Product.product_id.desc())
            .limit(5)
        ).scalars().all()

        since = utcnow() - timedelta(days=7)
        recent_views = self._viewers(since=since)
        recent_sales = self._purchases(statuses=[OrderStatus.DELIVERED], since=since)
        trending = []
        for p in self.session.execute(
            select(Product).where(
                Product.status == ProductStatus.AVAILABLE, Product.farmer_id.is_not(None)
            )
        ).scalars():
            v = recent_views.get(p.product_id, 0)
            s = recent_sales.get(p.product_id, 0)
            if v or s:
                card = _card(p)
                card.update(view_count=v, purchase_count=s)
                trending.append((v * 0.6 + s * 0.4, card))
        trending.sort(key=lambda pair: pair[0], reverse=True)

        return {
            "recently_viewed": recently_viewed,
            "similar_products": [_card(p) for p in similar],
            "trending_products": [card for _, card in trending[:5]],
        }
