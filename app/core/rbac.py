"""
Role-based access control: roles, permissions and the policy that joins them.

``ROLE_PERMISSIONS`` and ``PAGE_ROLES`` are plain read-only data so they can be
audited and tested role by role.  Handlers never consult them directly: they go
through an :class:`RbacPolicy` built once at startup (``app.state.rbac``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    PRODUCTION_MANAGER = "PRODUCTION_MANAGER"
    CASHBOOK_MANAGER = "CASHBOOK_MANAGER"
    CUTTING_MANAGER = "CUTTING_MANAGER"
    REPORT_VIEWER = "REPORT_VIEWER"
    USER = "USER"


class PermissionType(str, Enum):
    READ_USER = "READ_USER"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    READ_PRODUCTION = "READ_PRODUCTION"
    CREATE_PRODUCTION = "CREATE_PRODUCTION"
    UPDATE_PRODUCTION = "UPDATE_PRODUCTION"
    DELETE_PRODUCTION = "DELETE_PRODUCTION"
    READ_CUTTING = "READ_CUTTING"
    CREATE_CUTTING = "CREATE_CUTTING"
    UPDATE_CUTTING = "UPDATE_CUTTING"
    DELETE_CUTTING = "DELETE_CUTTING"
    READ_CASHBOOK = "READ_CASHBOOK"
    CREATE_CASHBOOK = "CREATE_CASHBOOK"
    UPDATE_CASHBOOK = "UPDATE_CASHBOOK"
    DELETE_CASHBOOK = "DELETE_CASHBOOK"
    READ_EXPENSE = "READ_EXPENSE"
    CREATE_EXPENSE = "CREATE_EXPENSE"
    UPDATE_EXPENSE = "UPDATE_EXPENSE"
    DELETE_EXPENSE = "DELETE_EXPENSE"
    READ_TARGET = "READ_TARGET"
    CREATE_TARGET = "CREATE_TARGET"
    UPDATE_TARGET = "UPDATE_TARGET"
    DELETE_TARGET = "DELETE_TARGET"
    READ_LINE = "READ_LINE"
    CREATE_LINE = "CREATE_LINE"
    UPDATE_LINE = "UPDATE_LINE"
    DELETE_LINE = "DELETE_LINE"
    READ_SHIPMENT = "READ_SHIPMENT"
    CREATE_SHIPMENT = "CREATE_SHIPMENT"
    UPDATE_SHIPMENT = "UPDATE_SHIPMENT"
    DELETE_SHIPMENT = "DELETE_SHIPMENT"
    READ_REPORT = "READ_REPORT"
    CREATE_REPORT = "CREATE_REPORT"
    UPDATE_REPORT = "UPDATE_REPORT"
    DELETE_REPORT = "DELETE_REPORT"
    MANAGE_SYSTEM = "MANAGE_SYSTEM"
    MANAGE_ROLES = "MANAGE_ROLES"
    MANAGE_PERMISSIONS = "MANAGE_PERMISSIONS"


P = PermissionType

ALL_PERMISSIONS: frozenset[PermissionType] = frozenset(PermissionType)
ALL_ROLES: frozenset[Role] = frozenset(Role)


def _crud(resource: str, *ops: str) -> tuple[PermissionType, ...]:
    return tuple(PermissionType(f"{op}_{resource}") for op in ops)


_RCUD = ("READ", "CREATE", "UPDATE", "DELETE")
_RCU = ("READ", "CREATE", "UPDATE")


# ── Role → default permissions ──────────────────────────────────────
ROLE_PERMISSIONS: Mapping[Role, tuple[PermissionType, ...]] = MappingProxyType(
    {
        Role.SUPER_ADMIN: tuple(PermissionType),
        Role.ADMIN: (
            *_crud("USER", *_RCU),
            *_crud("PRODUCTION", *_RCUD),
            *_crud("CUTTING", *_RCUD),
            *_crud("CASHBOOK", *_RCUD),
            *_crud("EXPENSE", *_RCUD),
            *_crud("TARGET", *_RCUD),
            *_crud("LINE", *_RCUD),
            *_crud("SHIPMENT", *_RCUD),
            *_crud("REPORT", *_RCU),
        ),
        Role.MANAGER: (
            *_crud("PRODUCTION", *_RCU),
            *_crud("CUTTING", *_RCU),
            *_crud("CASHBOOK", *_RCU),
            *_crud("EXPENSE", *_RCU),
            *_crud("TARGET", *_RCU),
            *_crud("LINE", *_RCU),
            *_crud("SHIPMENT", *_RCU),
            P.READ_REPORT,
            P.CREATE_REPORT,
        ),
        Role.PRODUCTION_MANAGER: (
            *_crud("PRODUCTION", *_RCU),
            *_crud("TARGET", *_RCU),
            *_crud("LINE", *_RCU),
            P.READ_REPORT,
        ),
        Role.CASHBOOK_MANAGER: (
            *_crud("CASHBOOK", *_RCU),
            *_crud("EXPENSE", *_RCU),
            P.READ_REPORT,
        ),
        Role.CUTTING_MANAGER: (
            *_crud("PRODUCTION", *_RCU),
            *_crud("CUTTING", *_RCU),
            P.READ_REPORT,
        ),
        Role.REPORT_VIEWER: (
            P.READ_PRODUCTION,
            P.READ_CUTTING,
            P.READ_CASHBOOK,
            P.READ_EXPENSE,
            P.READ_TARGET,
            P.READ_LINE,
            P.READ_SHIPMENT,
            P.READ_REPORT,
        ),
        Role.USER: (
            P.READ_PRODUCTION,
            P.READ_REPORT,
        ),
    }
)


# ── Page → allowed roles ────────────────────────────────────────────
# Pages missing from this map are open to every authenticated user.
_PRODUCTION_READERS = frozenset(
    {
        Role.SUPER_ADMIN,
        Role.ADMIN,
        Role.MANAGER,
        Role.PRODUCTION_MANAGER,
        Role.CUTTING_MANAGER,
        Role.REPORT_VIEWER,
        Role.USER,
    }
)
_PLANNING_READERS = frozenset(
    {Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER, Role.PRODUCTION_MANAGER, Role.REPORT_VIEWER}
)
_LEDGER_READERS = frozenset(
    {Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER, Role.CASHBOOK_MANAGER, Role.REPORT_VIEWER}
)
_CUTTING_READERS = frozenset(
    {Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER, Role.CUTTING_MANAGER, Role.REPORT_VIEWER}
)
_CUTTING_WRITERS = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER, Role.CUTTING_MANAGER})
_SHIPMENT_READERS = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER, Role.REPORT_VIEWER})
_SHIPMENT_WRITERS = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER})
_USER_ADMINS = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
_SYSTEM_ADMINS = frozenset({Role.SUPER_ADMIN})

PAGE_ROLES: Mapping[str, frozenset[Role]] = MappingProxyType(
    {
        "/dashboard": ALL_ROLES,
        "/platform": ALL_ROLES,
        "/production-reports": ALL_ROLES,
        "/profit-loss": ALL_ROLES,
        "/profile": ALL_ROLES,
        # Production
        "/production-list": _PRODUCTION_READERS,
        "/daily-production": _PRODUCTION_READERS,
        "/target": _PLANNING_READERS,
        "/target/daily-report": ALL_ROLES,
        "/target/comprehensive-report": ALL_ROLES,
        "/lines": _PLANNING_READERS,
        # Expenses
        "/expenses/manpower": _LEDGER_READERS,
        "/expenses/daily-salary": _LEDGER_READERS,
        "/expenses/daily-expense": _LEDGER_READERS,
        # Cashbook
        "/cashbook": _LEDGER_READERS,
        "/cashbook/cash-received": _LEDGER_READERS,
        "/cashbook/daily-expense": _LEDGER_READERS,
        "/cashbook/monthly-express-report": ALL_ROLES,
        # Cutting
        "/cutting": _CUTTING_READERS,
        "/cutting/daily-input": _CUTTING_WRITERS,
        "/cutting/daily-output": _CUTTING_WRITERS,
        "/cutting/monthly-report": ALL_ROLES,
        # Shipments
        "/shipments": _SHIPMENT_READERS,
        "/shipments/create": _SHIPMENT_WRITERS,
        "/shipments/reports": ALL_ROLES,
        # Administration
        "/admin/users": _USER_ADMINS,
        "/admin/dashboard": _SYSTEM_ADMINS,
        "/admin/permissions": _SYSTEM_ADMINS,
        "/admin/roles": _SYSTEM_ADMINS,
        "/admin/settings": _SYSTEM_ADMINS,
        "/admin/api-routes": _SYSTEM_ADMINS,
        "/admin/logs": _SYSTEM_ADMINS,
        "/admin/database": _SYSTEM_ADMINS,
        "/admin/backup": _SYSTEM_ADMINS,
    }
)

READ_ONLY_ROLES: frozenset[Role] = frozenset({Role.REPORT_VIEWER})

# Explicit grants written for every self-registered account.
SIGN_UP_GRANTS: tuple[PermissionType, ...] = (
    P.READ_PRODUCTION,
    P.CREATE_REPORT,
    P.READ_REPORT,
)


# ── Catalog (admin UI) ──────────────────────────────────────────────
PERMISSION_CATEGORIES: Mapping[str, tuple[PermissionType, ...]] = MappingProxyType(
    {
        "User Management": _crud("USER", *_RCUD),
        "Production Management": _crud("PRODUCTION", *_RCUD),
        "Cutting Management": _crud("CUTTING", *_RCUD),
        "Cashbook Management": _crud("CASHBOOK", *_RCUD),
        "Expense Management": _crud("EXPENSE", *_RCUD),
        "Target Management": _crud("TARGET", *_RCUD),
        "Line Management": _crud("LINE", *_RCUD),
        "Shipment Management": _crud("SHIPMENT", *_RCUD),
        "Report Management": _crud("REPORT", *_RCUD),
        "System Administration": (P.MANAGE_SYSTEM, P.MANAGE_ROLES, P.MANAGE_PERMISSIONS),
    }
)

_NOUNS = {
    "USER": ("Users", "users"),
    "PRODUCTION": ("Production", "production entries"),
    "CUTTING": ("Cutting", "cutting records"),
    "CASHBOOK": ("Cashbook", "cashbook entries"),
    "EXPENSE": ("Expenses", "expense records"),
    "TARGET": ("Targets", "production targets"),
    "LINE": ("Lines", "production lines"),
    "SHIPMENT": ("Shipments", "shipments"),
    "REPORT": ("Reports", "reports"),
}
_VERBS = {"READ": "View", "CREATE": "Create", "UPDATE": "Edit", "DELETE": "Delete"}

PERMISSION_LABELS: Mapping[PermissionType, str] = MappingProxyType(
    {
        **{
            p: f"{_VERBS[p.value.split('_', 1)[0]]} {_NOUNS[p.value.split('_', 1)[1]][0]}"
            for p in PermissionType
            if not p.value.startswith("MANAGE_")
        },
        P.CREATE_CASHBOOK: "Create Cashbook Entries",
        P.DELETE_CASHBOOK: "Delete Cashbook Entries",
        P.MANAGE_SYSTEM: "System Management",
        P.MANAGE_ROLES: "Role Management",
        P.MANAGE_PERMISSIONS: "Permission Management",
    }
)

PERMISSION_DESCRIPTIONS: Mapping[PermissionType, str] = MappingProxyType(
    {
        **{
            p: f"{_VERBS[p.value.split('_', 1)[0]]} {_NOUNS[p.value.split('_', 1)[1]][1]}"
            for p in PermissionType
            if not p.value.startswith("MANAGE_")
        },
        P.MANAGE_SYSTEM: "Administer system settings, logs, backups and the database",
        P.MANAGE_ROLES: "Manage roles and their default permissions",
        P.MANAGE_PERMISSIONS: "Grant and revoke explicit user permissions",
    }
)


# ── Policy ──────────────────────────────────────────────────────────
class Principal(Protocol):
    """Anything carrying a role and a list of explicit permission grants."""

    role: Any
    permissions: Any


def as_role(value: Role | str | None) -> Role | None:
    """Coerce *value* to a :class:`Role`; unknown names map to ``None``."""
    if value is None or isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def as_permissions(values: Iterable[PermissionType | str] | None) -> frozenset[PermissionType]:
    """Coerce grant names to :class:`PermissionType`, dropping unknown names."""
    result: set[PermissionType] = set()
    for value in values or ():
        try:
            result.add(PermissionType(value))
        except ValueError:
            continue
    return frozenset(result)


@dataclass(frozen=True)
class RbacPolicy:
    role_permissions: Mapping[Role, tuple[PermissionType, ...]]
    page_roles: Mapping[str, frozenset[Role]]
    read_only_roles: frozenset[Role] = field(default=READ_ONLY_ROLES)

    def role_defaults(self, role: Role | str) -> tuple[PermissionType, ...]:
        resolved = as_role(role)
        if resolved is None:
            return ()
        return tuple(self.role_permissions.get(resolved, ()))

    def effective_permissions(
        self,
        role: Role | str | None,
        grants: Iterable[PermissionType | str] | None = (),
    ) -> frozenset[PermissionType]:
        """Role defaults ∪ explicit grants; SUPER_ADMIN always gets everything."""
        resolved = as_role(role)
        if resolved is Role.SUPER_ADMIN:
            return ALL_PERMISSIONS
        defaults = frozenset(self.role_permissions.get(resolved, ())) if resolved else frozenset()
        return defaults | as_permissions(grants)

    def has_permission(self, user: Principal, permission: PermissionType | str) -> bool:
        try:
            wanted = PermissionType(permission)
        except ValueError:
            return False
        return wanted in self.effective_permissions(user.role, user.permissions)

    def has_any_permission(
        self, user: Principal, permissions: Iterable[PermissionType | str]
    ) -> bool:
        return any(self.has_permission(user, p) for p in permissions)

    def has_all_permissions(
        self, user: Principal, permissions: Iterable[PermissionType | str]
    ) -> bool:
        return all(self.has_permission(user, p) for p in permissions)

    def can_access_page(self, user: Principal, page: str) -> bool:
        role = as_role(user.role)
        if role is Role.SUPER_ADMIN:
            return True
        allowed = self.page_roles.get(page)
        if allowed is None:
            return True
        return role in allowed

    def is_read_only_role(self, role: Role | str | None) -> bool:
        return as_role(role) in self.read_only_roles


def build_default_policy() -> RbacPolicy:
    return RbacPolicy(role_permissions=ROLE_PERMISSIONS, page_roles=PAGE_ROLES)
