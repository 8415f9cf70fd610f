"""
Name: Role-Based Access Control (RBAC) Taxonomy

Responsibilities:
  - Define the closed set of roles (UserRole)
  - Define the closed set of permission tokens (Permission)
  - Parse role/permission claims, mapping unknown values to safe sentinels
  - Build permission tokens from resource/action/scope

Collaborators:
  - identity.tokens: parses claims at decode time
  - identity.access_control: evaluates predicates against Permission sets
  - application.dashboards: declares section requirements with Permission

Constraints:
  - Exactly one role per identity
  - Permission tokens follow resource.action[.scope], scope in {own, all}
  - Unknown role -> guest; unknown permission -> Permission.UNKNOWN

Notes:
  - The backend derives permissions from the role when it issues a token;
    this module only mirrors its taxonomy, it never grants anything itself
  - Permission.UNKNOWN is never held by the permission check; only the
    admin short-circuit lets it through
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from ..logger import logger


class UserRole(str, Enum):
    """Roles issued by the auth service."""

    ADMIN = "admin"
    SELLER = "seller"
    CUSTOMER = "customer"
    DELIVERY = "delivery"
    SUPPORT = "support"
    FINANCE = "finance"
    GUEST = "guest"


ROLE_DISPLAY_NAMES: dict[UserRole, str] = {
    UserRole.ADMIN: "Administrator",
    UserRole.SELLER: "Seller",
    UserRole.CUSTOMER: "Customer",
    UserRole.DELIVERY: "Delivery Staff",
    UserRole.SUPPORT: "Support Staff",
    UserRole.FINANCE: "Finance Staff",
    UserRole.GUEST: "Guest",
}

STAFF_ROLES: tuple[UserRole, ...] = (
    UserRole.DELIVERY,
    UserRole.SUPPORT,
    UserRole.FINANCE,
)


class PermissionScope(str, Enum):
    OWN = "own"
    ALL = "all"


class Permission(str, Enum):
    """Permission tokens known to the storefront."""

    # Products
    PRODUCTS_VIEW = "products.view"
    PRODUCTS_CREATE = "products.create"
    PRODUCTS_UPDATE = "products.update"
    PRODUCTS_UPDATE_OWN = "products.update.own"
    PRODUCTS_UPDATE_ALL = "products.update.all"
    PRODUCTS_DELETE = "products.delete"
    PRODUCTS_DELETE_OWN = "products.delete.own"
    PRODUCTS_DELETE_ALL = "products.delete.all"

    # Orders
    ORDERS_CREATE = "orders.create"
    ORDERS_VIEW = "orders.view"
    ORDERS_VIEW_OWN = "orders.view.own"
    ORDERS_VIEW_ALL = "orders.view.all"
    ORDERS_UPDATE = "orders.update"
    ORDERS_UPDATE_ALL = "orders.update.all"
    ORDERS_CANCEL = "orders.cancel"
    ORDERS_CANCEL_OWN = "orders.cancel.own"
    ORDERS_CANCEL_ALL = "orders.cancel.all"

    # Users
    USERS_VIEW = "users.view"
    USERS_VIEW_ALL = "users.view.all"
    USERS_CREATE = "users.create"
    USERS_UPDATE = "users.update"
    USERS_UPDATE_ALL = "users.update.all"
    USERS_DELETE = "users.delete"
    USERS_DELETE_ALL = "users.delete.all"

    # Reviews
    REVIEWS_CREATE = "reviews.create"
    REVIEWS_UPDATE = "reviews.update"
    REVIEWS_UPDATE_OWN = "reviews.update.own"
    REVIEWS_DELETE = "reviews.delete"
    REVIEWS_DELETE_OWN = "reviews.delete.own"
    REVIEWS_DELETE_ALL = "reviews.delete.all"

    # Coupons
    COUPONS_VIEW = "coupons.view"
    COUPONS_CREATE = "coupons.create"
    COUPONS_UPDATE = "coupons.update"
    COUPONS_DELETE = "coupons.delete"

    # Payments
    PAYMENTS_VIEW = "payments.view"
    PAYMENTS_VIEW_OWN = "payments.view.own"
    PAYMENTS_VIEW_ALL = "payments.view.all"
    PAYMENTS_VERIFY = "payments.verify"
    PAYMENTS_REFUND = "payments.refund"

    # Deliveries
    DELIVERIES_VIEW = "deliveries.view"
    DELIVERIES_VIEW_OWN = "deliveries.view.own"
    DELIVERIES_VIEW_ALL = "deliveries.view.all"
    DELIVERIES_UPDATE = "deliveries.update"
    DELIVERIES_UPDATE_OWN = "deliveries.update.own"
    DELIVERIES_ASSIGN = "deliveries.assign"

    # Support tickets
    TICKETS_CREATE = "tickets.create"
    TICKETS_VIEW = "tickets.view"
    TICKETS_VIEW_OWN = "tickets.view.own"
    TICKETS_VIEW_ALL = "tickets.view.all"
    TICKETS_RESPOND = "tickets.respond"

    # Analytics / reports
    ANALYTICS_VIEW = "analytics.view"
    ANALYTICS_VIEW_OWN = "analytics.view.own"
    ANALYTICS_VIEW_ALL = "analytics.view.all"
    REPORTS_VIEW = "reports.view"
    REPORTS_EXPORT = "reports.export"

    # Customer self-service
    CART_MANAGE = "cart.manage"
    CART_MANAGE_OWN = "cart.manage.own"
    WISHLIST_MANAGE = "wishlist.manage"
    WISHLIST_MANAGE_OWN = "wishlist.manage.own"

    # Platform
    SETTINGS_MANAGE = "settings.manage"

    # Sentinel for tokens outside the taxonomy
    UNKNOWN = "unknown"


_PERMISSION_BY_VALUE: dict[str, Permission] = {p.value: p for p in Permission}


def parse_role(value: object) -> UserRole:
    """R: Map a role claim to UserRole; anything unrecognized is a guest."""
    if isinstance(value, UserRole):
        return value
    if not isinstance(value, str) or not value.strip():
        return UserRole.GUEST
    try:
        return UserRole(value.strip().lower())
    except ValueError:
        logger.warning("Unknown role claim", extra={"role_claim": value})
        return UserRole.GUEST


def parse_permission(value: object) -> Permission:
    """R: Map a permission token to Permission (UNKNOWN if outside the taxonomy)."""
    if isinstance(value, Permission):
        return value
    if isinstance(value, str):
        return _PERMISSION_BY_VALUE.get(value.strip(), Permission.UNKNOWN)
    return Permission.UNKNOWN


def parse_permissions(values: Iterable[object] | None) -> frozenset[Permission]:
    """R: Parse a permissions claim; unknown tokens collapse into UNKNOWN."""
    if not values or isinstance(values, (str, bytes)):
        return frozenset()
    parsed = [parse_permission(v) for v in values]
    unknown = parsed.count(Permission.UNKNOWN)
    if unknown:
        logger.info(
            "Permission claim outside taxonomy", extra={"unknown_count": unknown}
        )
    return frozenset(parsed)


def permission_token(resource: str, action: str, scope: str | None = None) -> str:
    """R: Build a resource.action[.scope] token."""
    if scope:
        return f"{resource}.{action}.{scope}"
    return f"{resource}.{action}"
