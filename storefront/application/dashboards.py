"""
Name: Role Dashboards

Responsibilities:
  - Declare every dashboard section once, with the roles/permissions it needs
  - Build the visible dashboard for the current identity

Collaborators:
  - identity.access_control.AccessControl: has_role / has_permission
  - web.routes: GET /dashboard/{role}

Constraints:
  - A section with roles requires one of them (OR)
  - A section with permissions requires one of them (OR)
  - Both, when set, must hold
"""

from __future__ import annotations

from dataclasses import dataclass

from ..identity.access_control import AccessControl
from ..identity.rbac import Permission, UserRole

DASHBOARD_ROLES: tuple[UserRole, ...] = (
    UserRole.ADMIN,
    UserRole.SELLER,
    UserRole.DELIVERY,
    UserRole.SUPPORT,
    UserRole.FINANCE,
)


@dataclass(frozen=True)
class DashboardSection:
    key: str
    title: str
    roles: tuple[UserRole, ...] = ()
    permissions: tuple[Permission, ...] = ()

    def visible_to(self, access: AccessControl) -> bool:
        if self.roles and not access.has_role(self.roles):
            return False
        if self.permissions and not access.has_permission(self.permissions):
            return False
        return True

    def to_dict(self) -> dict:
        return {"key": self.key, "title": self.title}


SECTIONS: tuple[DashboardSection, ...] = (
    DashboardSection("overview", "Dashboard Overview", roles=DASHBOARD_ROLES),
    DashboardSection(
        "users", "User Management", permissions=(Permission.USERS_VIEW_ALL,)
    ),
    DashboardSection(
        "product_approvals",
        "Pending Product Approvals",
        permissions=(Permission.PRODUCTS_UPDATE_ALL,),
    ),
    DashboardSection(
        "my_products",
        "My Products",
        roles=(UserRole.SELLER,),
        permissions=(Permission.PRODUCTS_CREATE, Permission.PRODUCTS_UPDATE_OWN),
    ),
    DashboardSection(
        "orders", "Order Management", permissions=(Permission.ORDERS_VIEW_ALL,)
    ),
    DashboardSection(
        "seller_orders",
        "Orders for Your Products",
        roles=(UserRole.SELLER,),
        permissions=(Permission.ORDERS_VIEW_OWN,),
    ),
    DashboardSection(
        "deliveries",
        "Assigned Deliveries",
        permissions=(Permission.DELIVERIES_VIEW_OWN, Permission.DELIVERIES_VIEW_ALL),
    ),
    DashboardSection(
        "tickets",
        "Support Tickets",
        permissions=(Permission.TICKETS_VIEW_ALL, Permission.TICKETS_RESPOND),
    ),
    DashboardSection(
        "flagged_reviews",
        "Flagged Reviews",
        permissions=(Permission.REVIEWS_DELETE_ALL,),
    ),
    DashboardSection(
        "transactions",
        "All Transactions",
        permissions=(Permission.PAYMENTS_VIEW_ALL, Permission.PAYMENTS_VERIFY),
    ),
    DashboardSection(
        "payouts", "Seller Payouts", permissions=(Permission.PAYMENTS_REFUND,)
    ),
    DashboardSection(
        "reports",
        "Financial Reports",
        permissions=(Permission.REPORTS_VIEW, Permission.REPORTS_EXPORT),
    ),
    DashboardSection(
        "analytics",
        "Analytics",
        permissions=(Permission.ANALYTICS_VIEW_ALL, Permission.ANALYTICS_VIEW_OWN),
    ),
    DashboardSection(
        "coupons", "Coupons", permissions=(Permission.COUPONS_VIEW,)
    ),
    DashboardSection("profile", "Profile Information", roles=DASHBOARD_ROLES),
)


def build_dashboard(
    access: AccessControl, sections: tuple[DashboardSection, ...] = SECTIONS
) -> list[DashboardSection]:
    """R: Sections the current identity may see, in declaration order."""
    return [section for section in sections if section.visible_to(access)]
