from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from backoffice.auth import require_principal
from backoffice.config import get_database
from backoffice.utils import Logger, dump_record, success_response
from backoffice.utils.exceptions import NotFoundError, PermissionDeniedError

from .decorators import get_permission_facade, require_permission
from .facade import PermissionFacade
from .schemas import (
    CreatePermissionRequest,
    CreateRoleRequest,
    SetUserPermissionRequest,
    UpdatePermissionRequest,
    UpdateRoleRequest,
)
from .store import PermissionStore
from .types import (
    ActionType,
    ModuleName,
    Permission,
    PermissionRequest,
    Principal,
    ResourcePermission,
    Role,
    UserPermission,
)

logger = Logger(__name__)

# Any authenticated user: /api/v1/permissions
permissions_router = APIRouter()
# Administration (admin module, enforced by middleware): /api/v1/rbac
rbac_router = APIRouter()


def get_permission_store(db: AsyncIOMotorDatabase = Depends(get_database)) -> PermissionStore:
    return PermissionStore(db)


# ── Self-service ─────────────────────────────────────────────────
@permissions_router.post("/check")
async def check_permission(
    body: PermissionRequest,
    principal: Principal = Depends(require_principal),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    if body.user_id and body.user_id != principal.id:
        # checking on behalf of someone else needs users:read
        allowed = await facade.check_permission(
            PermissionRequest(module=ModuleName.USERS, action=ActionType.READ),
            principal,
        )
        if not allowed:
            raise PermissionDeniedError("Permission denied. Requires: users:read")
    result = await facade.check_permission_with_result(body, principal)
    return success_response(data=dump_record(result))


@permissions_router.get("/me")
async def my_permissions(
    principal: Principal = Depends(require_principal),
    store: PermissionStore = Depends(get_permission_store),
):
    overlay = await store.fetch_overlay(principal.id)
    try:
        role = dump_record(await store.get_role(principal.role_id))
    except NotFoundError:
        role = None
    return success_response(
        data={
            "principal": dump_record(principal),
            "role": role,
            "overlay": dump_record(overlay) if overlay else None,
        }
    )


# ── Permissions ──────────────────────────────────────────────────
@rbac_router.get("/permissions")
async def list_permissions(
    module: Optional[ModuleName] = None,
    store: PermissionStore = Depends(get_permission_store),
):
    permissions = await store.fetch_permissions(module=module)
    return success_response(
        data={"permissions": [dump_record(p) for p in permissions], "total": len(permissions)}
    )


@rbac_router.get("/permissions/{permission_id}")
async def get_permission(
    permission_id: str, store: PermissionStore = Depends(get_permission_store)
):
    return success_response(data=dump_record(await store.get_permission(permission_id)))


@rbac_router.post("/permissions")
async def create_permission(
    body: CreatePermissionRequest,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    data = body.model_dump()
    data["id"] = data.get("id") or str(ObjectId())
    permission = await store.create_permission(Permission.model_validate(data))
    facade.refresh_permissions()
    return success_response(data=dump_record(permission), message="Permission created", code=201)


@rbac_router.put("/permissions/{permission_id}")
async def update_permission(
    permission_id: str,
    body: UpdatePermissionRequest,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    permission = await store.update_permission(
        permission_id, body.model_dump(exclude_unset=True)
    )
    facade.refresh_permissions()
    return success_response(data=dump_record(permission), message="Permission updated")


@rbac_router.delete("/permissions/{permission_id}")
async def delete_permission(
    permission_id: str,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    await store.delete_permission(permission_id)
    facade.refresh_permissions()
    return success_response(message="Permission deleted")


# ── Roles ────────────────────────────────────────────────────────
@rbac_router.get("/roles")
async def list_roles(store: PermissionStore = Depends(get_permission_store)):
    _, roles = await store.fetch_catalog()
    return success_response(
        data={"roles": [dump_record(r) for r in roles], "total": len(roles)}
    )


@rbac_router.get("/roles/{role_id}")
async def get_role(role_id: str, store: PermissionStore = Depends(get_permission_store)):
    return success_response(data=dump_record(await store.get_role(role_id)))


@rbac_router.post("/roles")
async def create_role(
    body: CreateRoleRequest,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    data = body.model_dump()
    data["id"] = data.get("id") or str(ObjectId())
    role = await store.create_role(Role.model_validate(data))
    facade.refresh_permissions()
    return success_response(data=dump_record(role), message="Role created", code=201)


@rbac_router.put("/roles/{role_id}")
async def update_role(
    role_id: str,
    body: UpdateRoleRequest,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    role = await store.update_role(role_id, body.model_dump(exclude_unset=True))
    facade.refresh_permissions()
    return success_response(data=dump_record(role), message="Role updated")


@rbac_router.delete("/roles/{role_id}")
async def delete_role(
    role_id: str,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    await store.delete_role(role_id)
    facade.refresh_permissions()
    return success_response(message="Role deleted")


# ── User overlays ────────────────────────────────────────────────
@rbac_router.get("/users/{user_id}/permissions")
async def get_user_permissions(
    user_id: str, store: PermissionStore = Depends(get_permission_store)
):
    return success_response(data=dump_record(await store.get_user_permission(user_id)))


@rbac_router.put("/users/{user_id}/permissions")
@require_permission(ModuleName.USERS, ActionType.ASSIGN)
async def set_user_permissions(
    request: Request,
    user_id: str,
    body: SetUserPermissionRequest,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    principal: Principal = request.state.principal
    overlay = await store.set_user_permission(
        UserPermission(
            user_id=user_id,
            role_id=body.role_id,
            custom_permissions=body.custom_permissions,
            restricted_permissions=body.restricted_permissions,
            resource_permissions=body.resource_permissions,
            updated_by=principal.id,
        )
    )
    facade.refresh_permissions()
    logger.info(f"{principal.id} updated permissions of {user_id}")
    return success_response(data=dump_record(overlay), message="User permissions updated")


@rbac_router.post("/users/{user_id}/resource-permissions")
@require_permission(ModuleName.USERS, ActionType.ASSIGN)
async def add_resource_permission(
    request: Request,
    user_id: str,
    body: ResourcePermission,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    overlay = await store.add_resource_permission(
        user_id, body, updated_by=request.state.principal.id
    )
    facade.refresh_permissions()
    return success_response(
        data=dump_record(overlay), message="Resource permission saved", code=201
    )


@rbac_router.delete("/users/{user_id}/resource-permissions/{resource_type}/{resource_id}")
@require_permission(ModuleName.USERS, ActionType.ASSIGN)
async def remove_resource_permission(
    request: Request,
    user_id: str,
    resource_type: str,
    resource_id: str,
    store: PermissionStore = Depends(get_permission_store),
    facade: PermissionFacade = Depends(get_permission_facade),
):
    overlay = await store.remove_resource_permission(
        user_id, resource_type, resource_id, updated_by=request.state.principal.id
    )
    facade.refresh_permissions()
    return success_response(data=dump_record(overlay), message="Resource permission removed")


# ── Maintenance ──────────────────────────────────────────────────
@rbac_router.post("/refresh")
async def refresh_permissions(facade: PermissionFacade = Depends(get_permission_facade)):
    epoch = facade.refresh_permissions()
    return success_response(data={"epoch": epoch}, message="Permissions refreshed")


@rbac_router.post("/bootstrap")
async def sync_default_roles(facade: PermissionFacade = Depends(get_permission_facade)):
    await facade.bootstrap.run()
    created = await facade.bootstrap.sync_default_roles()
    facade.refresh_permissions()
    return success_response(data={"created_roles": created}, message="Default roles synced")
