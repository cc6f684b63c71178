"""
Role-based access control for admin users.

Three roles exist: super_admin, product_manager and viewer. Each maps to
a fixed set of boolean permissions used by the admin routes.
"""

from enum import Enum
from typing import Dict, Iterable


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    PRODUCT_MANAGER = "product_manager"
    VIEWER = "viewer"


PERMISSIONS = [
    # Products
    "can_create_products",
    "can_edit_products",
    "can_delete_products",
    "can_view_products",
    "can_bulk_import_products",
    # Users
    "can_create_users",
    "can_edit_users",
    "can_delete_users",
    "can_view_users",
    "can_change_user_roles",
    # System
    "can_access_system_settings",
    "can_view_audit_logs",
    "can_export_data",
    "can_manage_constraints",
    # Dashboard
    "can_view_dashboard",
    "can_view_analytics",
    "can_view_reports",
    # Sessions
    "can_manage_sessions",
]


def _grant(*names: str) -> Dict[str, bool]:
    return {p: p in names for p in PERMISSIONS}


ROLE_PERMISSIONS: Dict[str, Dict[str, bool]] = {
    UserRole.SUPER_ADMIN.value: _grant(*PERMISSIONS),
    UserRole.PRODUCT_MANAGER.value: _grant(
        "can_create_products",
        "can_edit_products",
        "can_delete_products",
        "can_view_products",
        "can_bulk_import_products",
        "can_view_users",
        "can_view_audit_logs",
        "can_export_data",
        "can_manage_constraints",
        "can_view_dashboard",
        "can_view_analytics",
        "can_view_reports",
    ),
    UserRole.VIEWER.value: _grant("can_view_products", "can_view_dashboard"),
}

ROLE_HIERARCHY = {
    UserRole.VIEWER.value: 1,
    UserRole.PRODUCT_MANAGER.value: 2,
    UserRole.SUPER_ADMIN.value: 3,
}

ROLE_LABELS = {
    UserRole.SUPER_ADMIN.value: "Super Administrator",
    UserRole.PRODUCT_MANAGER.value: "Product Manager",
    UserRole.VIEWER.value: "Viewer",
}

ROLE_DESCRIPTIONS = {
    UserRole.SUPER_ADMIN.value: "Full system access including user management and system settings",
    UserRole.PRODUCT_MANAGER.value: "Can manage products and view analytics, limited user access",
    UserRole.VIEWER.value: "Read-only access to products and basic dashboard",
}

# Admin UI paths -> permission guarding them
RESOURCE_PERMISSIONS = {
    "products": "can_view_products",
    "products/create": "can_create_products",
    "products/edit": "can_edit_products",
    "products/delete": "can_delete_products",
    "products/import": "can_bulk_import_products",
    "users": "can_view_users",
    "users/create": "can_create_users",
    "users/edit": "can_edit_users",
    "users/delete": "can_delete_users",
    "settings": "can_access_system_settings",
    "audit-logs": "can_view_audit_logs",
    "analytics": "can_view_analytics",
    "reports": "can_view_reports",
    "dashboard": "can_view_dashboard",
}


def is_valid_role(role: str) -> bool:
    return role in ROLE_PERMISSIONS


def get_role_permissions(role: str) -> Dict[str, bool]:
    """Return a copy of the permission map for a role (all False if unknown)."""
    perms = ROLE_PERMISSIONS.get(role)
    if perms is None:
        return {p: False for p in PERMISSIONS}
    return dict(perms)


def has_permission(role: str, permission: str) -> bool:
    return ROLE_PERMISSIONS.get(role, {}).get(permission, False)


def can_access_resource(role: str, resource: str) -> bool:
    permission = RESOURCE_PERMISSIONS.get(resource)
    if permission is None:
        return False
    return has_permission(role, permission)


def get_highest_role(roles: Iterable[str]) -> str:
    roles = list(roles)
    if not roles:
        raise ValueError("At least one role is required")
    return max(roles, key=lambda r: ROLE_HIERARCHY.get(r, 0))


def is_role_higher_than(role1: str, role2: str) -> bool:
    return ROLE_HIERARCHY.get(role1, 0) > ROLE_HIERARCHY.get(role2, 0)
