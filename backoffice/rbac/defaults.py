"""
Default permission catalog and role matrix.

One permission per module, each granting the full action set:
  perm_users, perm_hr, perm_dashboard, ...

Roles reference modules; their permission ids are resolved against the
permissions that actually exist when roles are seeded.
"""

from .types import (
    AccessLevel,
    FULL_ACCESS,
    ModuleName,
    Permission,
    Role,
    SUPER_ADMIN_ROLE,
)

ALL_MODULES: list[ModuleName] = list(ModuleName)

# ── Role → modules matrix ────────────────────────────────────────
ROLE_MODULES: dict[str, list[ModuleName]] = {
    SUPER_ADMIN_ROLE: ALL_MODULES,
    "admin": ALL_MODULES,
    "director": [m for m in ALL_MODULES if m is not ModuleName.ADMIN],
    "leader": [
        ModuleName.USERS,
        ModuleName.HR,
        ModuleName.DASHBOARD,
        ModuleName.HELPDESK,
        ModuleName.DOCUMENTS,
        ModuleName.ASSETS,
        ModuleName.PROJECTS,
        ModuleName.TIMESHEET,
        ModuleName.TIME_TRACKING,
        ModuleName.NOTIFICATIONS,
        ModuleName.CRM,
    ],
    "department_manager": [
        ModuleName.HR,
        ModuleName.DASHBOARD,
        ModuleName.DOCUMENTS,
        ModuleName.PROJECTS,
        ModuleName.TIMESHEET,
        ModuleName.TIME_TRACKING,
        ModuleName.NOTIFICATIONS,
    ],
    "manager": [
        ModuleName.HR,
        ModuleName.DASHBOARD,
        ModuleName.DOCUMENTS,
        ModuleName.TIMESHEET,
        ModuleName.NOTIFICATIONS,
    ],
    "employee": [
        ModuleName.DASHBOARD,
        ModuleName.DOCUMENTS,
        ModuleName.NOTIFICATIONS,
    ],
    "user": [],
}

ROLE_INFO: dict[str, tuple[str, str, int]] = {
    SUPER_ADMIN_ROLE: (
        "Super Administrator",
        "Complete system access with all privileges",
        AccessLevel.SUPER_ADMIN,
    ),
    "admin": ("Administrator", "Full system access", AccessLevel.ADMIN),
    "director": (
        "Director",
        "Executive level access for organizational oversight",
        AccessLevel.DIRECTOR,
    ),
    "leader": ("Leader", "Team leadership access", AccessLevel.LEADER),
    "department_manager": (
        "Department Manager",
        "Department-level management access",
        AccessLevel.DEPARTMENT_MANAGER,
    ),
    "manager": ("Manager", "Team management and approvals", AccessLevel.MANAGER),
    "employee": ("Employee", "Standard employee access", AccessLevel.EMPLOYEE),
    "user": ("User", "Basic user with minimal access", AccessLevel.USER),
}


def permission_id_for(module: ModuleName) -> str:
    return f"perm_{module.value.replace('-', '_')}"


def default_permissions() -> list[Permission]:
    return [
        Permission(
            id=permission_id_for(module),
            name=f"Manage {module.value.replace('-', ' ').title()}",
            description=f"Full access to the {module.value} module",
            module=module,
            actions=FULL_ACCESS,
        )
        for module in ALL_MODULES
    ]


def default_roles(existing_permissions: list[Permission] | None = None) -> list[Role]:
    """
    Build the default roles.

    When `existing_permissions` is given, a role only references the
    permission ids present in it (the seeded catalog is the source of truth).
    """
    if existing_permissions is None:
        existing_permissions = default_permissions()
    by_module: dict[ModuleName, list[str]] = {}
    for perm in existing_permissions:
        by_module.setdefault(perm.module, []).append(perm.id)

    roles = []
    for role_id, modules in ROLE_MODULES.items():
        name, description, level = ROLE_INFO[role_id]
        permission_ids = [pid for m in modules for pid in by_module.get(m, [])]
        roles.append(
            Role(
                id=role_id,
                name=role_id,
                description=f"{name}: {description}",
                permissions=permission_ids,
                level=level,
            )
        )
    return roles
