# tests/test_orders.py
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from agrimarket.database import db
from agrimarket.errors import InsufficientStock
from agrimarket.models.enums import OrderStatus, ProductStatus, Role
from agrimarket.services.orders.order_service import OrderService
from agrimarket.tables import Order, OrderItem, Product


def _order_count(app):
    with app.app_context():
        return db.session.execute(select(func.count(Order.order_id))).scalar_one()


def _item_count(app):
    with app.app_context():
        return db.session.execute(select(func.count(OrderItem.order_item_id))).scalar_one()


def _place(client, headers, items, **extra):
    return client.post("/api/orders", json={"items": items, **extra}, headers=headers)


@pytest.fixture
def shop(make_user, make_farmer, make_product, auth):
    customer = make_user()
    farmer_user, farmer_id = make_farmer()
    product = make_product(farmer_id, quantity=5, price="20.00")
    return {
        "customer": customer,
        "customer_h": auth(customer),
        "farmer_user": farmer_user,
        "farmer_id": farmer_id,
        "farmer_h": auth(farmer_user),
        "product": product,
    }


# ------------------------------------------------------------
# scenarios
# ------------------------------------------------------------
def test_partial_purchase_keeps_product_available(client, shop, fetch):
    r = _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 3}])

    assert r.status_code == 201
    order = r.get_json()["order"]
    assert order["order_status"] == "PENDING"
    assert order["delivery_option"] == "Home Delivery"
    assert order["total_amount"] == 60.0
    assert order["farmer_id"] == shop["farmer_id"]
    assert len(order["items"]) == 1

    product = fetch(Product, shop["product"])
    assert product.quantity == 2
    assert product.status is ProductStatus.AVAILABLE


def test_buying_all_stock_marks_product_unavailable(client, shop, fetch):
    r = _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 5}])

    assert r.status_code == 201
    product = fetch(Product, shop["product"])
    assert product.quantity == 0
    assert product.status is ProductStatus.UNAVAILABLE


def test_insufficient_stock_persists_nothing(app, client, shop, fetch):
    r = _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 10}])

    assert r.status_code == 400
    body = r.get_json()
    assert body["success"] is False
    assert body["error"] == "Insufficient stock for Tomato"
    assert body["product_id"] == shop["product"]
    assert body["available"] == 5
    assert body["requested"] == 10
    assert _order_count(app) == 0
    assert fetch(Product, shop["product"]).quantity == 5


def test_items_from_two_farmers_are_rejected(app, client, shop, make_farmer, make_product, fetch):
    _, other_farmer = make_farmer(email="other@example.com", farm_name="Blue Farm")
    other_product = make_product(other_farmer, product_name="Rice", quantity=10)

    r = _place(
        client,
        shop["customer_h"],
        [
            {"product_id": shop["product"], "quantity": 1},
            {"product_id": other_product, "quantity": 1},
        ],
    )

    assert r.status_code == 400
    assert r.get_json()["error"] == "All items must be from the same farmer"
    assert _order_count(app) == 0
    assert _item_count(app) == 0
    assert fetch(Product, shop["product"]).quantity == 5
    assert fetch(Product, other_product).quantity == 10


def test_other_farmer_cannot_update_order_status(client, shop, make_farmer, auth):
    r = _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 1}])
    order_id = r.get_json()["order"]["order_id"]

    intruder, _ = make_farmer(email="intruder@example.com", farm_name="Other Farm")
    r = client.put(
        f"/api/orders/{order_id}/status", json={"status": "CONFIRMED"}, headers=auth(intruder)
    )

    assert r.status_code == 403
    assert r.get_json()["error"] == "Not authorized to update order status"


# ------------------------------------------------------------
# stock invariant
# ------------------------------------------------------------
def test_sequential_orders_never_oversell(client, shop, fetch):
    codes = [
        _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 2}]).status_code
        for _ in range(3)
    ]

    assert codes == [201, 201, 400]
    assert fetch(Product, shop["product"]).quantity == 1


def test_repeated_product_in_one_order_cannot_exceed_stock(app, client, shop, fetch):
    r = _place(
        client,
        shop["customer_h"],
        [
            {"product_id": shop["product"], "quantity": 3},
            {"product_id": shop["product"], "quantity": 3},
        ],
    )

    assert r.status_code == 400
    assert r.get_json()["error"] == "Insufficient stock for Tomato"
    assert _order_count(app) == 0
    assert fetch(Product, shop["product"]).quantity == 5


def test_conditional_decrement_loses_to_concurrent_buyer(app, shop):
    with app.app_context():
        service = OrderService(db.session)
        product = db.session.get(Product, shop["product"])
        # another order takes stock after this one has read the row
        db.session.execute(
            update(Product).where(Product.product_id == shop["product"]).values(quantity=1)
        )
        with pytest.raises(InsufficientStock) as exc:
            service._take_stock(product, 3)
        db.session.rollback()

    assert exc.value.extra["available"] == 1
    assert exc.value.extra["requested"] == 3


# ------------------------------------------------------------
# price snapshot
# ------------------------------------------------------------
def test_item_price_is_a_snapshot(app, client, shop):
    r = _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 2}])
    order_id = r.get_json()["order"]["order_id"]

    with app.app_context():
        db.session.execute(
            update(Product).where(Product.product_id == shop["product"]).values(price=Decimal("99.00"))
        )
        db.session.commit()

    r = client.get(f"/api/orders/{order_id}/items", headers=shop["customer_h"])
    item = r.get_json()["items"][0]
    assert item["price"] == 20.0
    assert item["subtotal"] == 40.0


# ------------------------------------------------------------
# validation order
# ------------------------------------------------------------
@pytest.mark.parametrize("payload", [{}, {"items": []}, {"items": "nope"}])
def test_items_are_required(client, shop, payload):
    r = client.post("/api/orders", json=payload, headers=shop["customer_h"])
    assert r.status_code == 400
    assert r.get_json()["error"] == "Order items are required"


def test_invalid_delivery_option(client, shop):
    r = _place(
        client,
        shop["customer_h"],
        [{"product_id": shop["product"], "quantity": 1}],
        delivery_option="Drone",
    )
    assert r.status_code == 400
    assert "Invalid delivery option" in r.get_json()["error"]


def test_pick_up_is_stored_as_given(client, shop):
    r = _place(
        client,
        shop["customer_h"],
        [{"product_id": shop["product"], "quantity": 1}],
        delivery_option="Pick-Up",
    )
    assert r.status_code == 201
    assert r.get_json()["order"]["delivery_option"] == "Pick-Up"


def test_unknown_product(client, shop):
    r = _place(client, shop["customer_h"], [{"product_id": 9999, "quantity": 1}])
    assert r.status_code == 404
    assert r.get_json()["error"] == "Product 9999 not found"


def test_non_positive_quantity_is_rejected(app, client, shop):
    r = _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 0}])
    assert r.status_code == 400
    assert _order_count(app) == 0


def test_first_failure_wins(client, shop):
    # unknown product comes before the stock problem
    r = _place(
        client,
        shop["customer_h"],
        [
            {"product_id": 4242, "quantity": 1},
            {"product_id": shop["product"], "quantity": 100},
        ],
    )
    assert r.status_code == 404


def test_order_requires_token(client, shop):
    r = client.post("/api/orders", json={"items": [{"product_id": shop["product"], "quantity": 1}]})
    assert r.status_code == 401
    assert r.get_json()["success"] is False


# ------------------------------------------------------------
# status updates
# ------------------------------------------------------------
def test_owning_farmer_updates_status(client, shop):
    order_id = _place(
        client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 1}]
    ).get_json()["order"]["order_id"]

    r = client.put(f"/api/orders/{order_id}/status", json={"status": "CONFIRMED"}, headers=shop["farmer_h"])
    assert r.status_code == 200
    assert r.get_json()["order"]["order_status"] == "CONFIRMED"


def test_admin_can_move_status_anywhere(client, shop, make_user, auth, fetch):
    admin = make_user(role=Role.ADMIN)
    order_id = _place(
        client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 2}]
    ).get_json()["order"]["order_id"]

    for status in ("DELIVERED", "PENDING", "CANCELLED"):
        r = client.put(f"/api/orders/{order_id}/status", json={"status": status}, headers=auth(admin))
        assert r.status_code == 200

    assert fetch(Order, order_id).order_status is OrderStatus.CANCELLED
    # cancelling does not restock
    assert fetch(Product, shop["product"]).quantity == 3


def test_customer_cannot_update_status(client, shop):
    order_id = _place(
        client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 1}]
    ).get_json()["order"]["order_id"]

    r = client.put(f"/api/orders/{order_id}/status", json={"status": "DELIVERED"}, headers=shop["customer_h"])
    assert r.status_code == 403


def test_invalid_status_checked_before_existence(client, shop):
    r = client.put("/api/orders/12345/status", json={"status": "SHIPPED"}, headers=shop["farmer_h"])
    assert r.status_code == 400
    assert r.get_json()["error"] == "Invalid status"

    r = client.put("/api/orders/12345/status", json={"status": "CONFIRMED"}, headers=shop["farmer_h"])
    assert r.status_code == 404


# ------------------------------------------------------------
# reads
# ------------------------------------------------------------
def test_order_visibility(client, shop, make_user, auth):
    order_id = _place(
        client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 1}]
    ).get_json()["order"]["order_id"]
    stranger = make_user(email="stranger@example.com")

    assert client.get(f"/api/orders/{order_id}", headers=shop["customer_h"]).status_code == 200
    assert client.get(f"/api/orders/{order_id}", headers=shop["farmer_h"]).status_code == 200

    r = client.get(f"/api/orders/{order_id}", headers=auth(stranger))
    assert r.status_code == 403
    assert r.get_json()["error"] == "Not authorized to view this order"
    assert client.get(f"/api/orders/{order_id}/items", headers=auth(stranger)).status_code == 403


def test_customer_and_farmer_order_lists(client, shop, make_user, auth):
    _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 1}])
    _place(client, shop["customer_h"], [{"product_id": shop["product"], "quantity": 1}])

    mine = client.get("/api/orders/customer", headers=shop["customer_h"]).get_json()
    assert mine["count"] == 2
    assert mine["orders"][0]["items"][0]["product_name"] == "Tomato"
    assert mine["orders"][0]["farm_name"] == "Green Acres"

    received = client.get("/api/orders/farmer", headers=shop["farmer_h"]).get_json()
    assert received["count"] == 2
    assert received["orders"][0]["customer_name"] == "Test User"

    r = client.get("/api/orders/farmer", headers=shop["customer_h"])
    assert r.status_code == 403
    assert r.get_json()["error"] == "User is not a registered farmer"
