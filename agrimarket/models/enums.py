# agrimarket/models/enums.py

from enum import Enum


class Role(str, Enum):
    CUSTOMER = "CUSTOMER"
    FARMER = "FARMER"
    ADMIN = "ADMIN"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class ProductStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    REMOVED = "REMOVED"
    UNDER_REVIEW = "UNDER_REVIEW"


# statuses a farmer may set on their own listing
FARMER_SETTABLE_PRODUCT_STATUSES = frozenset({ProductStatus.AVAILABLE, ProductStatus.UNAVAILABLE})


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# Status changes are gated by actor, not by value: the owning farmer or an
# admin may move an order to any status, including back out of DELIVERED
# or CANCELLED, so corrections stay possible.
ORDER_STATUS_TRANSITIONS = {status: frozenset(OrderStatus) for status in OrderStatus}


class DeliveryOption(str, Enum):
    PICK_UP = "Pick-Up"
    HOME_DELIVERY = "Home Delivery"


class AdminActionType(str, Enum):
    PRODUCT_STATUS_CHANGE = "PRODUCT_STATUS_CHANGE"
    ORDER_UPDATE = "ORDER_UPDATE"
    USER_STATUS_CHANGE = "USER_STATUS_CHANGE"
    USER_ROLE_CHANGE = "USER_ROLE_CHANGE"
    FARMER_VERIFICATION = "FARMER_VERIFICATION"
    SYSTEM_SETTINGS_UPDATE = "SYSTEM_SETTINGS_UPDATE"
    ADMIN_CREATED = "ADMIN_CREATED"


def parse_enum(enum_cls, value):
    """Return the member of `enum_cls` for `value`, or None if it is not one."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None
