# tests/test_recommendations.py
import pytest

from agrimarket.models.enums import Role
from agrimarket.tables import utcnow


@pytest.fixture
def market(client, make_farmer, make_product, make_user, auth):
    """Two farms selling vegetables; one customer viewed and ordered the tomato."""
    farmer_user, farmer_id = make_farmer()
    tomato = make_product(farmer_id, product_name="Tomato", price="20.00", quantity=5)
    _, rival_id = make_farmer(farm_name="Rival Farm")
    cabbage = make_product(rival_id, product_name="Cabbage", price="40.00", quantity=5)

    customer = make_user()
    customer_h = auth(customer)
    client.get(f"/api/products/{tomato}", headers=customer_h)
    r = client.post("/api/orders", json={"items": [{"product_id": tomato, "quantity": 1}]}, headers=customer_h)
    assert r.status_code == 201

    return {
        "farmer_h": auth(farmer_user),
        "customer_h": customer_h,
        "tomato": tomato,
        "cabbage": cabbage,
    }


@pytest.mark.parametrize("path, role", [
    ("/market-insights", Role.CUSTOMER),
    ("/demand-analysis", Role.CUSTOMER),
    ("/personalized", Role.FARMER),
])
def test_role_gates(client, make_user, auth, path, role):
    r = client.get("/api/recommendations" + path, headers=auth(make_user(role=role)))
    assert r.status_code == 403


@pytest.mark.parametrize("path", ["/customer-preferences", "/seasonal", "/personalized", "/market-insights"])
def test_token_required(client, path):
    assert client.get("/api/recommendations" + path).status_code == 401


def test_farmer_role_without_record(client, make_user, auth):
    r = client.get("/api/recommendations/market-insights", headers=auth(make_user(role=Role.FARMER)))
    assert r.status_code == 403
    assert r.get_json()["error"] == "User is not a registered farmer"


def test_empty_catalog_gives_empty_reports(client, make_farmer, make_user, auth):
    farmer_user, _ = make_farmer()
    farmer_h = auth(farmer_user)
    customer_h = auth(make_user())

    assert client.get("/api/recommendations/market-insights", headers=farmer_h).get_json()["insights"] == []
    body = client.get("/api/recommendations/demand-analysis", headers=farmer_h).get_json()
    assert body["demand_analysis"] == []
    assert body["category_demand"] == []
    assert client.get("/api/recommendations/customer-preferences", headers=customer_h).get_json()["preferences"] == []
    assert client.get("/api/recommendations/seasonal", headers=customer_h).get_json()["recommendations"] == []
    body = client.get("/api/recommendations/personalized", headers=customer_h).get_json()
    assert body == {
        "success": True,
        "recently_viewed": [],
        "similar_products": [],
        "trending_products": [],
    }


def test_market_insights(client, market):
    body = client.get("/api/recommendations/market-insights", headers=market["farmer_h"]).get_json()

    [row] = body["insights"]
    assert row["product_id"] == market["tomato"]
    assert row["view_count"] == 1
    assert row["purchase_count"] == 1
    assert row["unmet_demand"] == 1
    assert row["market_avg_price"] == 30.0
    assert row["market_competition"] == 2
    # 1 * 0.4 + (30 - 20) / 30 * 0.3 + 1 * 0.3
    assert row["demand_score"] == 0.8


def test_demand_analysis(client, market):
    body = client.get("/api/recommendations/demand-analysis", headers=market["farmer_h"]).get_json()

    [row] = body["demand_analysis"]
    assert row["freq_c"] == 1
    assert row["price_trend_c"] == 1.0
    assert row["unmet_demand_c"] == 1
    assert row["demand_score"] == 1.0
    assert body["category_demand"] == [{"category": "Vegetables", "total_ordered": 1, "order_count": 1}]
    assert body["weights"] == {"frequency": 0.4, "price_trend": 0.3, "unmet_demand": 0.3}


def test_customer_preferences_only_viewed_products(client, market):
    prefs = client.get("/api/recommendations/customer-preferences", headers=market["farmer_h"]).get_json()["preferences"]

    assert [p["product_id"] for p in prefs] == [market["tomato"]]
    assert prefs[0]["unique_viewers"] == 1
    assert prefs[0]["total_purchases"] == 1
    assert prefs[0]["popularity_score"] == 0.9


def test_seasonal_uses_current_and_next_month(client, make_farmer, make_product, make_user, auth):
    _, farmer_id = make_farmer()
    this_month = utcnow().date().replace(day=1)
    make_product(farmer_id, product_name="Mango", category="Fruits", price="50.00", harvest_date=this_month)
    make_product(farmer_id, product_name="Papaya", category="Fruits", price="30.00", harvest_date=this_month)
    make_product(farmer_id, product_name="Rice", category="Grains")

    body = client.get("/api/recommendations/seasonal", headers=auth(make_user())).get_json()

    assert body["current_month"] == this_month.month
    assert body["recommendations"] == [
        {"category": "Fruits", "harvest_month": this_month.month, "total_listings": 2, "avg_price": 40.0}
    ]


def test_personalized(client, market):
    body = client.get("/api/recommendations/personalized", headers=market["customer_h"]).get_json()

    assert [p["product_id"] for p in body["recently_viewed"]] == [market["tomato"]]
    assert body["recently_viewed"][0]["viewed_at"] is not None
    assert [p["product_id"] for p in body["similar_products"]] == [market["cabbage"]]
    assert [p["product_id"] for p in body["trending_products"]] == [market["tomato"]]
    assert body["trending_products"][0]["view_count"] == 1
