"""
Security Core - RBAC and audit trail records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from travel_ledger.domain.exceptions import PermissionDeniedError
from travel_ledger.domain.value_objects import utc_now


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    ACCOUNTING_MANAGER = "ACC_MGR"
    ACCOUNTANT = "ACCOUNTANT"
    AGENT = "AGENT"
    VIEWER = "VIEWER"


class Permission(str, Enum):
    VOUCHER_VIEW = "VOUCHER_VIEW"
    VOUCHER_CREATE = "VOUCHER_CREATE"
    VOUCHER_DELETE = "VOUCHER_DELETE"
    VOUCHER_RESTORE = "VOUCHER_RESTORE"
    VOUCHER_PURGE = "VOUCHER_PURGE"
    SEQUENCE_VIEW = "SEQUENCE_VIEW"
    SEQUENCE_ALLOCATE = "SEQUENCE_ALLOCATE"
    SEQUENCE_EDIT = "SEQUENCE_EDIT"
    SETTINGS_VIEW = "SETTINGS_VIEW"
    SETTINGS_EDIT = "SETTINGS_EDIT"


ROLE_PERMISSIONS: dict[UserRole, list[Permission]] = {
    UserRole.ADMIN: list(Permission),
    UserRole.ACCOUNTING_MANAGER: [
        Permission.VOUCHER_VIEW,
        Permission.VOUCHER_CREATE,
        Permission.VOUCHER_DELETE,
        Permission.VOUCHER_RESTORE,
        Permission.SEQUENCE_VIEW,
        Permission.SEQUENCE_ALLOCATE,
        Permission.SEQUENCE_EDIT,
        Permission.SETTINGS_VIEW,
        Permission.SETTINGS_EDIT,
    ],
    UserRole.ACCOUNTANT: [
        Permission.VOUCHER_VIEW,
        Permission.VOUCHER_CREATE,
        Permission.VOUCHER_DELETE,
        Permission.SEQUENCE_VIEW,
        Permission.SEQUENCE_ALLOCATE,
        Permission.SETTINGS_VIEW,
    ],
    UserRole.AGENT: [
        Permission.VOUCHER_VIEW,
        Permission.VOUCHER_CREATE,
        Permission.SEQUENCE_ALLOCATE,
    ],
    UserRole.VIEWER: [Permission.VOUCHER_VIEW, Permission.SEQUENCE_VIEW],
}


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"


@dataclass(frozen=True)
class Actor:
    """The user a request acts for."""
    user_id: str
    user_name: str
    role: UserRole = UserRole.VIEWER

    @classmethod
    def system(cls) -> "Actor":
        return cls(user_id="system", user_name="system", role=UserRole.ADMIN)


@dataclass
class AuditEntry:
    user_id: str
    user_name: str
    action: AuditAction
    target_type: str
    target_id: str
    description: str = ""
    created_at: datetime = field(default_factory=utc_now)


class RBACService:
    def has_permission(self, role: UserRole, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS.get(role, [])

    def require(self, actor: Actor, permission: Permission) -> None:
        if not self.has_permission(actor.role, permission):
            raise PermissionDeniedError(
                f"Role {actor.role.value} may not perform {permission.value}",
                ctx={"user_id": actor.user_id, "permission": permission.value},
            )
