# tests/test_farmers.py
import pytest

from agrimarket.database import db
from agrimarket.models.enums import ProductStatus, UserStatus
from agrimarket.tables import Farmer, Feedback


@pytest.fixture
def farm(make_farmer, auth):
    user_id, farmer_id = make_farmer()
    return {"user": user_id, "farmer_id": farmer_id, "h": auth(user_id)}


@pytest.fixture
def add_feedback(app):
    def _add(customer_id, product_id, rating, comment=""):
        with app.app_context():
            db.session.add(Feedback(customer_id=customer_id, product_id=product_id, rating=rating, comment=comment))
            db.session.commit()

    return _add


def _buy(client, headers, product_id, quantity):
    r = client.post("/api/orders", json={"items": [{"product_id": product_id, "quantity": quantity}]}, headers=headers)
    assert r.status_code == 201
    return r.get_json()["order"]["order_id"]


@pytest.mark.parametrize("path", ["/dashboard", "/inventory", "/sales-report", "/reviews"])
def test_farmer_routes_reject_customers(client, make_user, auth, path):
    r = client.get("/api/farmers" + path, headers=auth(make_user()))
    assert r.status_code == 403
    assert r.get_json()["required_roles"] == ["FARMER"]


def test_farmer_routes_require_token(client):
    assert client.get("/api/farmers/dashboard").status_code == 401


def test_suspended_farmer_is_not_served(client, make_farmer, auth):
    user_id, _ = make_farmer(status=UserStatus.SUSPENDED)
    r = client.get("/api/farmers/dashboard", headers=auth(user_id))
    assert r.status_code == 403
    assert r.get_json()["error"] == "Account is deactivated. Please contact support."


def test_dashboard(client, farm, make_product, make_user, auth, add_feedback):
    pid = make_product(farm["farmer_id"], price="10.00", quantity=4)
    make_product(farm["farmer_id"], product_name="Squash", status=ProductStatus.UNAVAILABLE, quantity=0)
    customer = make_user(full_name="Carla Buyer")
    _buy(client, auth(customer), pid, 4)
    add_feedback(customer, pid, 4, "Fresh")

    body = client.get("/api/farmers/dashboard", headers=farm["h"]).get_json()

    assert body["farmer"]["farmer_id"] == farm["farmer_id"]
    assert body["statistics"] == {
        "total_products": 2,
        "total_orders": 1,
        "total_sales": 40.0,
        "average_rating": 4.0,
    }
    assert len(body["recent_orders"]) == 1
    # the sold-out tomato and the squash
    assert {p["product_name"] for p in body["unavailable_products"]} == {"Tomato", "Squash"}
    assert body["recent_feedback"][0]["customer_name"] == "Carla Buyer"
    assert body["recent_feedback"][0]["product_name"] == "Tomato"


def test_update_profile(client, farm, fetch):
    r = client.put(
        "/api/farmers/profile",
        json={"farm_name": " Sunny Fields ", "product_categories": "Fruits,Vegetables"},
        headers=farm["h"],
    )

    assert r.status_code == 200
    farmer = fetch(Farmer, farm["farmer_id"])
    assert farmer.farm_name == "Sunny Fields"
    assert farmer.product_categories == "Fruits,Vegetables"
    assert farmer.barangay == "Poblacion"


@pytest.mark.parametrize("payload", [{}, {"farm_name": "   "}, {"verified_status": True}])
def test_update_profile_needs_data(client, farm, fetch, payload):
    r = client.put("/api/farmers/profile", json=payload, headers=farm["h"])
    assert r.status_code == 400
    assert r.get_json()["error"] == "No data provided for update"
    assert fetch(Farmer, farm["farmer_id"]).farm_name == "Green Acres"


def test_inventory(client, farm, make_product, make_user, auth):
    pid = make_product(farm["farmer_id"], price="10.00", quantity=5)
    make_product(farm["farmer_id"], product_name="Okra", category="Vegetables", price="2.00", quantity=0,
                 status=ProductStatus.UNAVAILABLE)
    customer = auth(make_user())
    _buy(client, customer, pid, 2)
    client.get(f"/api/products/{pid}", headers=customer)

    body = client.get("/api/farmers/inventory", headers=farm["h"]).get_json()
    rows = {p["product_id"]: p for p in body["inventory"]}

    assert rows[pid]["units_sold"] == 2
    assert rows[pid]["view_count"] == 1
    assert body["summary"] == {
        "total_products": 2,
        "total_available": 1,
        "total_unavailable": 1,
        "total_units_in_stock": 3,
        "total_value": 30.0,
    }

    body = client.get("/api/farmers/inventory?status=UNAVAILABLE", headers=farm["h"]).get_json()
    assert [p["product_name"] for p in body["inventory"]] == ["Okra"]
    assert client.get("/api/farmers/inventory?status=SOLD", headers=farm["h"]).status_code == 400


def test_sales_report_skips_cancelled_orders(client, farm, make_product, make_user, auth):
    pid = make_product(farm["farmer_id"], price="10.00", quantity=10)
    customer = auth(make_user())
    _buy(client, customer, pid, 3)
    cancelled = _buy(client, customer, pid, 1)
    client.put(f"/api/orders/{cancelled}/status", json={"status": "CANCELLED"}, headers=farm["h"])

    body = client.get("/api/farmers/sales-report?days=7", headers=farm["h"]).get_json()

    assert body["days"] == 7
    assert body["summary"] == {"total_sales": 30.0, "total_orders": 1, "total_items_sold": 3}
    assert body["product_performance"][0]["revenue"] == 30.0
    assert len(body["sales_report"]) == 1


def test_sales_report_periods(client, farm):
    assert client.get("/api/farmers/sales-report", headers=farm["h"]).get_json()["days"] == 30
    assert client.get("/api/farmers/sales-report?period=yearly", headers=farm["h"]).get_json()["days"] == 365
    assert client.get("/api/farmers/sales-report?days=0", headers=farm["h"]).status_code == 400


def test_reviews(client, farm, make_product, make_user, add_feedback):
    tomato = make_product(farm["farmer_id"])
    okra = make_product(farm["farmer_id"], product_name="Okra")
    customer = make_user()
    add_feedback(customer, tomato, 5)
    add_feedback(customer, tomato, 2)
    add_feedback(customer, okra, 4)

    body = client.get("/api/farmers/reviews", headers=farm["h"]).get_json()
    assert body["rating_stats"]["total"] == 3
    assert body["rating_stats"]["average"] == 3.7
    assert body["rating_stats"]["distribution"] == {"5": 1, "4": 1, "3": 0, "2": 1, "1": 0}

    body = client.get("/api/farmers/reviews?min_rating=4", headers=farm["h"]).get_json()
    assert sorted(r["rating"] for r in body["reviews"]) == [4, 5]

    body = client.get(f"/api/farmers/reviews?product_id={okra}", headers=farm["h"]).get_json()
    assert [r["product_name"] for r in body["reviews"]] == ["Okra"]
