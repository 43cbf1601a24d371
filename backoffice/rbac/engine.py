"""
Permission evaluation engine.

`evaluate()` is a pure function: every input is passed in, nothing is
fetched, nothing is cached, and it never raises for a well-formed
request. Order of rules (first match decides):

  1. no principal                       → deny
  2. super_admin role                   → grant (cannot be restricted)
  3. role grants
  4. ∪ custom grants
  5. − restricted permissions
  6. resource override for (type, id)   → authoritative for that resource
  7. module-level match (action or MANAGE)
  8. deny
"""

from typing import Optional

from .catalog import PermissionCatalog
from .types import (
    AccessLevel,
    Permission,
    PermissionRequest,
    PermissionResult,
    Principal,
    ResourcePermission,
    SUPER_ADMIN_ROLE,
    UserPermission,
)

NOT_AUTHENTICATED = "User not authenticated"
SUPER_ADMIN = "User is super_admin"


def is_super_admin(role_id: str, catalog: PermissionCatalog) -> bool:
    """The super_admin role is identified by id, or by a role at the top level."""
    if role_id == SUPER_ADMIN_ROLE:
        return True
    role = catalog.get_role(role_id)
    if role is None:
        return False
    return role.name == SUPER_ADMIN_ROLE or role.level >= AccessLevel.SUPER_ADMIN


def find_resource_override(
    request: PermissionRequest, overlay: Optional[UserPermission]
) -> Optional[ResourcePermission]:
    """
    First entry matching (resource.type, resource.id) wins.

    A resource without an id cannot be matched against an override.
    """
    if overlay is None or request.resource is None or not request.resource.id:
        return None
    wanted = (request.resource.type, request.resource.id)
    for entry in overlay.resource_permissions:
        if entry.key == wanted:
            return entry
    return None


def permission_matches(permission: Permission, request: PermissionRequest) -> bool:
    if permission.module is not request.module:
        return False
    if not permission.allows(request.action):
        return False
    # A resource-scoped permission must agree with the requested resource
    if permission.resource and request.resource:
        scope_type, _, scope_id = permission.resource.partition(":")
        if scope_type != request.resource.type:
            return False
        if scope_id and request.resource.id and scope_id != request.resource.id:
            return False
    return True


def _first_match(
    permission_ids, request: PermissionRequest, catalog: PermissionCatalog
) -> Optional[str]:
    for pid in sorted(permission_ids):
        perm = catalog.get_permission(pid)
        if perm is not None and permission_matches(perm, request):
            return pid
    return None


def evaluate(
    request: PermissionRequest,
    principal: Optional[Principal],
    overlay: Optional[UserPermission],
    catalog: PermissionCatalog,
) -> PermissionResult:
    if principal is None:
        return PermissionResult(granted=False, reason=NOT_AUTHENTICATED)

    if is_super_admin(principal.role_id, catalog):
        return PermissionResult(granted=True, reason=SUPER_ADMIN)

    role = catalog.get_role(principal.role_id)
    role_grants = set(role.permissions) if role else set()
    custom = set(overlay.custom_permissions) if overlay else set()
    restricted = set(overlay.restricted_permissions) if overlay else set()

    effective = (role_grants | custom) - restricted

    override = find_resource_override(request, overlay)
    if override is not None:
        res = request.resource
        if override.allows(request.action):
            return PermissionResult(
                granted=True, reason="User has resource-specific permission"
            )
        return PermissionResult(
            granted=False,
            reason=(
                f"Resource permission does not allow {request.action.value} "
                f"on {res.type}:{res.id}"
            ),
        )

    matched = _first_match(effective, request, catalog)
    if matched is not None:
        if matched in role_grants:
            return PermissionResult(granted=True, reason="Role has permission")
        return PermissionResult(granted=True, reason="User has custom permission")

    revoked = restricted & (role_grants | custom)
    if _first_match(revoked, request, catalog) is not None:
        return PermissionResult(
            granted=False, reason="Permission is restricted for this user"
        )

    return PermissionResult(
        granted=False,
        reason=f"Missing permission: {request.module.value}:{request.action.value}",
    )
