"""Shared fixtures: an in-memory permission store and ready-made records."""

import asyncio
from typing import Optional

import pytest

from backoffice.rbac.catalog import PermissionCatalog
from backoffice.rbac.types import (
    ActionType,
    ModuleName,
    Permission,
    Principal,
    ResourcePermission,
    Role,
    UserPermission,
)
from backoffice.utils.exceptions import BootstrapError, NotFoundError


class MemoryPermissionStore:
    """
    Dict-backed stand-in for PermissionStore.

    Failure / latency knobs:
      fail_catalog, fail_overlay, fail_seed  raise on the next call
      fail_role_seed                         raise when seeding roles only
      gate                                   asyncio.Event awaited by fetches
    """

    def __init__(self, permissions=(), roles=(), overlays=()):
        self.permissions: dict[str, Permission] = {p.id: p for p in permissions}
        self.roles: dict[str, Role] = {r.id: r for r in roles}
        self.overlays: dict[str, UserPermission] = {o.user_id: o for o in overlays}

        self.fail_catalog = False
        self.fail_overlay = False
        self.fail_seed = False
        self.fail_role_seed = False
        self.gate: Optional[asyncio.Event] = None

        self.catalog_fetches = 0
        self.overlay_fetches = 0

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()

    # read side
    async def fetch_catalog(self):
        self.catalog_fetches += 1
        await self._wait()
        if self.fail_catalog:
            raise ConnectionError("catalog unavailable")
        return list(self.permissions.values()), list(self.roles.values())

    async def fetch_overlay(self, user_id):
        self.overlay_fetches += 1
        await self._wait()
        if self.fail_overlay:
            raise ConnectionError("overlay unavailable")
        return self.overlays.get(user_id)

    async def fetch_permissions(self, module=None):
        return [
            p for p in self.permissions.values() if module is None or p.module is module
        ]

    async def count_permissions(self):
        return len(self.permissions)

    async def count_roles(self):
        return len(self.roles)

    # bootstrap side
    async def _seed(self, target: dict, records) -> int:
        if self.fail_seed:
            raise BootstrapError("seed failed")
        created = 0
        for record in records:
            if record.id not in target:
                target[record.id] = record
                created += 1
        return created

    async def create_default_permissions(self, permissions):
        return await self._seed(self.permissions, permissions)

    async def create_default_roles(self, roles):
        if self.fail_role_seed:
            raise BootstrapError("role seed failed")
        return await self._seed(self.roles, roles)

    async def upsert_roles(self, roles):
        return await self._seed(self.roles, roles)

    # administration used by the routes under test
    async def get_role(self, role_id):
        if role_id not in self.roles:
            raise NotFoundError(f"Role '{role_id}' not found")
        return self.roles[role_id]

    async def get_user_permission(self, user_id):
        if user_id not in self.overlays:
            raise NotFoundError(f"No permission overlay for user '{user_id}'")
        return self.overlays[user_id]

    async def set_user_permission(self, overlay):
        self.overlays[overlay.user_id] = overlay
        return overlay

    async def add_resource_permission(self, user_id, resource_permission, updated_by=None):
        current = self.overlays.get(user_id) or UserPermission(user_id=user_id)
        entries = [
            rp for rp in current.resource_permissions if rp.key != resource_permission.key
        ]
        entries.append(resource_permission)
        overlay = current.model_copy(
            update={"resource_permissions": tuple(entries), "updated_by": updated_by}
        )
        self.overlays[user_id] = overlay
        return overlay


# ── Records ──────────────────────────────────────────────────────
HR_READ_UPDATE = Permission(
    id="perm_hr_edit",
    name="Edit HR Data",
    module=ModuleName.HR,
    actions={ActionType.READ, ActionType.UPDATE},
)
HR_DELETE = Permission(
    id="perm_hr_delete",
    name="Delete HR Data",
    module=ModuleName.HR,
    actions={ActionType.DELETE},
)
DOCUMENTS_MANAGE = Permission(
    id="perm_documents",
    name="Manage Documents",
    module=ModuleName.DOCUMENTS,
    actions={ActionType.MANAGE},
)
ADMIN_ALL = Permission(
    id="perm_admin",
    name="Administer",
    module=ModuleName.ADMIN,
    actions={ActionType.MANAGE},
)
USERS_ALL = Permission(
    id="perm_users",
    name="Manage Users",
    module=ModuleName.USERS,
    actions={ActionType.MANAGE},
)

SUPER_ADMIN_ROLE = Role(id="super_admin", name="super_admin", permissions=[], level=100)
ADMIN_ROLE = Role(
    id="admin",
    name="admin",
    permissions=["perm_admin", "perm_users", "perm_hr_edit", "perm_hr_delete"],
    level=90,
)
MANAGER_ROLE = Role(
    id="manager",
    name="manager",
    permissions=["perm_hr_edit", "perm_documents"],
    level=70,
)
EMPTY_ROLE = Role(id="user", name="user", permissions=[], level=10)

ALL_PERMISSIONS = [HR_READ_UPDATE, HR_DELETE, DOCUMENTS_MANAGE, ADMIN_ALL, USERS_ALL]
ALL_ROLES = [SUPER_ADMIN_ROLE, ADMIN_ROLE, MANAGER_ROLE, EMPTY_ROLE]


def resource_override(resource_type, resource_id, *actions, permission_id="perm_hr_edit"):
    return ResourcePermission(
        permission_id=permission_id,
        resource_type=resource_type,
        resource_id=resource_id,
        actions=set(actions),
    )


@pytest.fixture
def catalog():
    return PermissionCatalog(ALL_PERMISSIONS, ALL_ROLES)


@pytest.fixture
def manager():
    return Principal(id="u-manager", role_id="manager")


@pytest.fixture
def store():
    return MemoryPermissionStore(ALL_PERMISSIONS, ALL_ROLES)


@pytest.fixture
def empty_store():
    return MemoryPermissionStore()
