"""
TradeDoc Tracker - Permissions System

RBAC permissions for the international payments department.

Permission Matrix:
==================

| Permission                  | GDV_TTQT | KSV_TTQT | KTS_TTQT | ADMIN |
|-----------------------------|----------|----------|----------|-------|
| view_transactions           | X        | X        | X        | X     |
| import_transactions         | X        |          |          | X     |
| update_document_status      | X        |          |          | X     |
| censor_transactions         |          | X        |          | X     |
| post_inspect_transactions   |          |          | X        | X     |
| export_reports              | X        | X        | X        | X     |
| manage_customers            |          |          |          | X     |
| view_customers              | X        | X        | X        | X     |
| manage_email_config         |          |          |          | X     |
| manage_reminders            |          |          |          | X     |

GDV_TTQT = teller, KSV_TTQT = controller (censor), KTS_TTQT = post-inspector.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set

from tradedoc.utils.error_handling import InsufficientPermissionsException


# ===========================================
# ROLE & PERMISSION ENUMS
# ===========================================

class UserRole(str, Enum):
    """Roles carried in the `role` claim of access tokens."""
    TELLER = "GDV_TTQT"
    CONTROLLER = "KSV_TTQT"
    POST_INSPECTOR = "KTS_TTQT"
    ADMIN = "ADMIN"


class Permission(str, Enum):
    """Permissions checked by routers and the workflow engine."""

    # Transactions
    VIEW_TRANSACTIONS = "view_transactions"
    IMPORT_TRANSACTIONS = "import_transactions"
    UPDATE_DOCUMENT_STATUS = "update_document_status"
    CENSOR_TRANSACTIONS = "censor_transactions"
    POST_INSPECT_TRANSACTIONS = "post_inspect_transactions"

    # Reports
    EXPORT_REPORTS = "export_reports"

    # Customers
    MANAGE_CUSTOMERS = "manage_customers"
    VIEW_CUSTOMERS = "view_customers"

    # Administration
    MANAGE_EMAIL_CONFIG = "manage_email_config"
    MANAGE_REMINDERS = "manage_reminders"


# ===========================================
# ROLE TO PERMISSION MAPPING
# ===========================================

ROLE_PERMISSIONS = {
    UserRole.TELLER: {
        Permission.VIEW_TRANSACTIONS,
        Permission.IMPORT_TRANSACTIONS,
        Permission.UPDATE_DOCUMENT_STATUS,
        Permission.EXPORT_REPORTS,
        Permission.VIEW_CUSTOMERS,
    },
    UserRole.CONTROLLER: {
        Permission.VIEW_TRANSACTIONS,
        Permission.CENSOR_TRANSACTIONS,
        Permission.EXPORT_REPORTS,
        Permission.VIEW_CUSTOMERS,
    },
    UserRole.POST_INSPECTOR: {
        Permission.VIEW_TRANSACTIONS,
        Permission.POST_INSPECT_TRANSACTIONS,
        Permission.EXPORT_REPORTS,
        Permission.VIEW_CUSTOMERS,
    },
    UserRole.ADMIN: set(Permission),
}


# ===========================================
# PERMISSION HELPER FUNCTIONS
# ===========================================

def parse_role(value: Optional[str]) -> Optional[UserRole]:
    """Map a token claim to a role; unknown values yield None."""
    if not value:
        return None
    try:
        return UserRole(str(value).strip().upper())
    except ValueError:
        return None


def get_permissions(role: Optional[UserRole]) -> Set[Permission]:
    """Get all permissions for a role."""
    if role is None:
        return set()
    return ROLE_PERMISSIONS.get(role, set())


def has_permission(role: Optional[UserRole], permission: Permission) -> bool:
    """Check if a role has a specific permission."""
    return permission in get_permissions(role)


# ===========================================
# ACTOR
# ===========================================

@dataclass(frozen=True)
class Actor:
    """Authenticated caller, built from access-token claims."""
    id: str
    name: str
    role: Optional[UserRole]

    def can(self, permission: Permission) -> bool:
        return has_permission(self.role, permission)


def require_permission(actor: Actor, permission: Permission) -> None:
    """
    Raises:
        InsufficientPermissionsException: If the actor's role lacks the permission
    """
    if not actor.can(permission):
        raise InsufficientPermissionsException(
            permission.value,
            user_role=actor.role.value if actor.role else None,
        )
