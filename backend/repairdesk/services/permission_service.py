# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission checks.

A user's permissions are the union of the DEFAULT_ROLE_PERMISSIONS entries for
every role assigned to them. Deny by default: a user without roles can do
nothing. Denials are logged; grants are not.
"""

from flask import current_app

from ..extensions import db
from ..models import UserRole, Role
from ..permissions import DEFAULT_ROLE_PERMISSIONS


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_roles(user_id: int) -> list[str]:
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return sorted(name for (name,) in rows)


def get_user_permissions(user_id: int) -> set[str]:
    """Returns set of permission codes (e.g., {"VIEW_INVOICES", "TAKE_PAYMENT"})."""
    permission_codes: set[str] = set()
    for role_name in get_user_roles(user_id):
        permission_codes.update(DEFAULT_ROLE_PERMISSIONS.get(role_name, ()))
    return permission_codes


def user_has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    company_id: int | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Usage:
        require_permission(user.id, "TAKE_PAYMENT", resource="/api/invoices/7/payments/cash")
    """
    if not user_has_permission(user_id, permission_code):
        current_app.logger.warning(
            "Permission denied: user=%s company=%s permission=%s resource=%s",
            user_id, company_id, permission_code, resource,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")
