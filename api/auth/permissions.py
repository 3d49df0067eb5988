"""
Role-based permissions for admin accounts.

Roles are static; each role maps to a fixed set of permission keys.
`super_admin` holds every permission.
"""

from __future__ import annotations

ROLE_SUPER_ADMIN = "super_admin"
ROLE_ADMIN = "admin"
ROLE_MODERATOR = "moderator"

ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_MODERATOR)

PERMISSIONS: dict[str, str] = {
    "users.view": "View users list and details",
    "users.create": "Create new users",
    "users.update": "Update user information",
    "users.delete": "Delete users",
    "users.reset_password": "Reset user passwords",
    "users.manage_cards": "Manage user discount cards",
    "users.send_emails": "Send emails to users",
    "users.export": "Export user data",
    "users.bulk_operations": "Perform bulk operations on users",
    "shops.view": "View shops list and details",
    "shops.create": "Create new shops",
    "shops.update": "Update shop information",
    "shops.delete": "Delete shops",
    "shops.approve": "Approve shop registrations",
    "shops.reject": "Reject shop registrations",
    "shops.block": "Block/unblock shops",
    "shops.send_emails": "Send emails to shops",
    "shops.export": "Export shop data",
    "shops.bulk_operations": "Perform bulk operations on shops",
    "shops.analytics": "View shop analytics",
    "discounts.view": "View discount rules",
    "discounts.create": "Create discount rules",
    "discounts.update": "Update discount rules",
    "discounts.delete": "Delete discount rules",
    "discounts.toggle": "Activate/deactivate discount rules",
    "discounts.bulk_operations": "Perform bulk operations on discount rules",
    "discounts.test_calculation": "Test discount calculations",
    "transactions.view": "View transactions",
    "transactions.create": "Record card transactions",
    "transactions.update": "Change transaction status",
    "otp.view": "View OTP sessions",
    "otp.manage": "Expire and clean up OTP sessions",
    "content.banners.view": "View banners",
    "content.banners.create": "Create banners",
    "content.banners.update": "Update banners",
    "content.banners.delete": "Delete banners",
    "content.banners.reorder": "Reorder banners",
    "content.blogs.view": "View blogs",
    "content.blogs.create": "Create blog posts",
    "content.blogs.update": "Update blog posts",
    "content.blogs.delete": "Delete blog posts",
    "content.blogs.publish": "Publish/unpublish blog posts",
    "content.faqs.view": "View FAQs",
    "content.faqs.create": "Create FAQs",
    "content.faqs.update": "Update FAQs",
    "content.faqs.delete": "Delete FAQs",
    "content.faqs.reorder": "Reorder FAQs",
    "content.upload": "Upload images and files",
    "analytics.dashboard": "View dashboard analytics",
    "analytics.users": "View user analytics",
    "analytics.shops": "View shop analytics",
    "analytics.transactions": "View transaction analytics",
    "analytics.revenue": "View revenue analytics",
    "analytics.discounts": "View discount analytics",
    "analytics.export": "Export analytics data",
    "analytics.reports": "Build custom reports and forecasts",
}

_ADMIN_DENIED = {
    "users.delete",
    "shops.create",
    "shops.delete",
    "otp.manage",
}

_MODERATOR_ALLOWED = {
    "users.view",
    "users.update",
    "users.manage_cards",
    "users.send_emails",
    "shops.view",
    "shops.update",
    "shops.send_emails",
    "shops.analytics",
    "discounts.view",
    "discounts.test_calculation",
    "transactions.view",
    "otp.view",
    "content.banners.view",
    "content.banners.create",
    "content.banners.update",
    "content.blogs.view",
    "content.blogs.create",
    "content.blogs.update",
    "content.faqs.view",
    "content.faqs.create",
    "content.faqs.update",
    "content.upload",
    "analytics.dashboard",
    "analytics.users",
    "analytics.shops",
}

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ROLE_SUPER_ADMIN: frozenset(PERMISSIONS),
    ROLE_ADMIN: frozenset(p for p in PERMISSIONS if p not in _ADMIN_DENIED),
    ROLE_MODERATOR: frozenset(p for p in PERMISSIONS if p in _MODERATOR_ALLOWED),
}


def permissions_for_role(role: str) -> list[str]:
    # Keep declaration order for stable responses.
    granted = ROLE_PERMISSIONS.get(role, frozenset())
    return [p for p in PERMISSIONS if p in granted]


def has_permission(role: str, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def _module_of(permission: str) -> str:
    return permission.split(".", 1)[0]


def grouped_permissions(role: str) -> dict[str, list[str]]:
    groups: dict[str, list[str]] = {}
    for permission in permissions_for_role(role):
        groups.setdefault(_module_of(permission), []).append(permission)
    return groups


def accessible_modules(role: str) -> list[str]:
    return list(grouped_permissions(role))
