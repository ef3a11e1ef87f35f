"""Role and module permission checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from ..persistence.database import fetch_permission_grants


class Role(str, Enum):
    HO_ADMIN = "ho_admin"
    BRANCH_MANAGER = "branch_manager"
    SB_BRANCH_MANAGER = "sb_branch_manager"
    FINANCE = "finance"
    BH_REPORT = "bh_report"
    RIDER = "rider"
    SB_RIDER = "sb_rider"
    BH_RIDER = "bh_rider"
    CUSTOMER = "customer"


class PermissionType(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"


class Module(str, Enum):
    DASHBOARD = "dashboard"
    SALES = "sales"
    INVENTORY = "inventory"
    FINANCE = "finance"
    REPORTS = "reports"
    ADMIN = "admin"
    SETTINGS = "settings"


def parse_module(module_name: str) -> Module:
    """Map a stored module name such as ``Inventory.Stock Transfer`` to its top-level module."""
    head = module_name.split(".", 1)[0].strip().lower()
    return Module(head)


@dataclass(frozen=True)
class CapabilitySet:
    """Permissions held by one profile, grouped by top-level module."""

    role: Role | None = None
    grants: Mapping[Module, frozenset[PermissionType]] = field(default_factory=dict)

    @property
    def is_superuser(self) -> bool:
        return self.role is Role.HO_ADMIN

    def allows(self, module: Module, permission: PermissionType) -> bool:
        if self.is_superuser:
            return True
        return permission in self.grants.get(module, frozenset())

    def has_module_access(self, module: Module) -> bool:
        if self.is_superuser:
            return True
        return bool(self.grants.get(module))

    def as_dict(self) -> dict[str, list[str]]:
        if self.is_superuser:
            every = sorted(permission.value for permission in PermissionType)
            return {module.value: every for module in Module}
        return {
            module.value: sorted(permission.value for permission in permissions)
            for module, permissions in self.grants.items()
            if permissions
        }


def build_capability_set(role: Role | None, rows: Iterable[Mapping[str, Any]]) -> CapabilitySet:
    """Fold granted permission rows into a :class:`CapabilitySet`.

    Rows naming an unknown module or permission type are skipped.
    """
    grants: dict[Module, set[PermissionType]] = {}
    for row in rows:
        if not row.get("is_granted", True):
            continue
        module_name = str(row.get("module_name") or "")
        permission_name = str(row.get("permission_type") or "").strip().lower()
        try:
            module = parse_module(module_name)
            permission = PermissionType(permission_name)
        except ValueError:
            logging.warning(f"Ignoring unknown permission grant: {module_name!r}/{permission_name!r}")
            continue
        grants.setdefault(module, set()).add(permission)
    return CapabilitySet(role=role, grants={module: frozenset(perms) for module, perms in grants.items()})


def load_capabilities(profile_id: str, role: Role | None = None) -> CapabilitySet:
    """Load a profile's granted permissions from the store."""
    if role is Role.HO_ADMIN:
        return CapabilitySet(role=role)
    return build_capability_set(role, fetch_permission_grants(profile_id))
