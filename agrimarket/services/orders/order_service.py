# agrimarket/services/orders/order_service.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

from flask import current_app
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update

from agrimarket.errors import (
    CrossFarmerOrder,
    Forbidden,
    InsufficientStock,
    NotFound,
    ValidationError,
    validation_error_from,
)
from agrimarket.models.enums import (
    ORDER_STATUS_TRANSITIONS,
    DeliveryOption,
    OrderStatus,
    ProductStatus,
    parse_enum,
)
from agrimarket.models.order_models import OrderItemModel
from agrimarket.services.auth.access import (
    Actor,
    can_manage_order,
    can_view_order,
    resolve_owner,
)
from agrimarket.tables import Order, OrderItem, Product

INVALID_DELIVERY = 'Invalid delivery option. Must be either "Pick-Up" or "Home Delivery"'


def parse_delivery_option(value) -> DeliveryOption:
    if value is None or value == "":
        return DeliveryOption.HOME_DELIVERY
    option = parse_enum(DeliveryOption, value)
    if option is None:
        raise ValidationError(INVALID_DELIVERY)
    return option


def parse_order_status(value) -> OrderStatus:
    status = parse_enum(OrderStatus, value)
    if status is None:
        raise ValidationError(
            "Invalid status", valid_statuses=[s.value for s in OrderStatus]
        )
    return status


class OrderService:
    """Order placement and fulfilment. All stock changes happen here."""

    def __init__(self, session):
        self.session = session

    # ---------------------------------------------------------------
    # CreateOrder
    # ---------------------------------------------------------------
    def _validate_lines(self, raw_items: List[Any]):
        """
        Check every item in input order and lock its product row.
        Returns (farmer_id, [(product, quantity, unit_price)], total).
        """
        lines = []
        farmer_id = None
        total = Decimal("0")

        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise ValidationError("Each order item needs a product_id and a quantity")
            try:
                item = OrderItemModel(**raw)
            except PydanticValidationError as e:
                raise validation_error_from(e)

            product = self.session.execute(
                select(Product)
                .where(Product.product_id == item.product_id)
                .with_for_update()
            ).scalar_one_or_none()
            if product is None or product.farmer_id is None:
                raise NotFound(f"Product {item.product_id} not found")

            if product.quantity < item.quantity:
                raise InsufficientStock(
                    product.product_id, product.product_name, product.quantity, item.quantity
                )

            if index == 0:
                farmer_id = product.farmer_id
            elif product.farmer_id != farmer_id:
                raise CrossFarmerOrder()

            unit_price = Decimal(product.price)
            total += unit_price * item.quantity
            lines.append((product, item.quantity, unit_price))

        return farmer_id, lines, total

    def _take_stock(self, product: Product, quantity: int):
        # conditional decrement: loses cleanly to a concurrent order
        result = self.session.execute(
            update(Product)
            .where(Product.product_id == product.product_id, Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.refresh(product)
            raise InsufficientStock(
                product.product_id, product.product_name, product.quantity, quantity
            )

        self.session.execute(
            update(Product)
            .where(Product.product_id == product.product_id, Product.quantity == 0)
            .values(status=ProductStatus.UNAVAILABLE)
            .execution_options(synchronize_session=False)
        )

    def create_order(self, customer_id: int, payload: Dict[str, Any]) -> Order:
        items = payload.get("items")
        if not isinstance(items, list) or not items:
            raise ValidationError("Order items are required")
        delivery_option = parse_delivery_option(payload.get("delivery_option"))

        try:
            farmer_id, lines, total = self._validate_lines(items)

            order = Order(
                customer_id=customer_id,
                farmer_id=farmer_id,
                total_amount=total,
                delivery_option=delivery_option,
                order_status=OrderStatus.PENDING,
            )
            self.session.add(order)
            self.session.flush()

            for product, quantity, unit_price in lines:
                self.session.add(
                    OrderItem(
                        order_id=order.order_id,
                        product_id=product.product_id,
                        quantity=quantity,
                        price=unit_price,
                    )
                )
                self._take_stock(product, quantity)

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        current_app.logger.info(
            "Order %s created: customer=%s farmer=%s total=%s items=%d",
            order.order_id, customer_id, farmer_id, total, len(lines),
        )
        return order

    # ---------------------------------------------------------------
    # UpdateOrderStatus
    # ---------------------------------------------------------------
    def update_status(self, order_id: int, new_status, actor: Actor) -> Order:
        status = parse_order_status(new_status)

        order = self.session.get(Order, order_id)
        if order is None:
            raise NotFound("Order not found")

        if not can_manage_order(self.session, actor, order):
            raise Forbidden("Not authorized to update order status")

        previous = order.order_status
        if status not in ORDER_STATUS_TRANSITIONS[previous]:
            raise ValidationError(
                f"Cannot change order status from {previous.value} to {status.value}"
            )

        order.order_status = status
        self.session.commit()
        current_app.logger.info(
            "Order %s status %s -> %s by user %s",
            order_id, previous.value, status.value, actor.user_id,
        )
        return order

    # ---------------------------------------------------------------
    # reads
    # ---------------------------------------------------------------
    def for_customer(self, customer_id: int) -> List[Order]:
        return self.session.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.order_date.desc(), Order.order_id.desc())
        ).scalars().all()

    def for_farmer(self, actor: Actor) -> List[Order]:
        farmer_id = resolve_owner(self.session, actor)
        if farmer_id is None:
            raise Forbidden("User is not a registered farmer")
        return self.session.execute(
            select(Order)
            .where(Order.farmer_id == farmer_id)
            .order_by(Order.order_date.desc(), Order.order_id.desc())
        ).scalars().all()

    def get_for(self, order_id: int, actor: Actor) -> Order:
        order = self.session.get(Order, order_id)
        if order is None:
            raise NotFound("Order not found")
        if not can_view_order(self.session, actor, order):
            raise Forbidden("Not authorized to view this order")
        return order

    def items_for(self, order_id: int, actor: Actor) -> List[OrderItem]:
        return list(self.get_for(order_id, actor).items)
