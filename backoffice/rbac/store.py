"""
Permission store — RBAC records on MongoDB.

Collections (document `_id` = record id):
  permissions       Permission
  roles             Role
  user_permissions  UserPermission, one per user (`_id` = userId)

The façade only calls the read side (`fetch_catalog`, `fetch_overlay`)
and the bootstrap side (`count_*`, `create_default_*`, `upsert_roles`).
Everything else is administration used by the HTTP routes.
"""

from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, DuplicateKeyError

from backoffice.utils import Logger, from_document, to_document
from backoffice.utils.exceptions import BootstrapError, DuplicateError, NotFoundError

from .types import ModuleName, Permission, ResourcePermission, Role, UserPermission

logger = Logger(__name__)

PERMISSIONS = "permissions"
ROLES = "roles"
USER_PERMISSIONS = "user_permissions"


def _overlay_from_document(doc: dict) -> UserPermission:
    data = dict(doc)
    data.setdefault("userId", data.get("_id"))
    data.pop("_id", None)
    return UserPermission.model_validate(data)


def _overlay_to_document(overlay: UserPermission) -> dict:
    doc = overlay.model_dump(mode="json", by_alias=True)
    doc["_id"] = overlay.user_id
    return doc


class PermissionStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.permissions = db[PERMISSIONS]
        self.roles = db[ROLES]
        self.user_permissions = db[USER_PERMISSIONS]

    # ── Read side ───────────────────────────────────────────────
    async def fetch_catalog(self) -> tuple[list[Permission], list[Role]]:
        permissions = [
            Permission.model_validate(from_document(doc))
            async for doc in self.permissions.find({})
        ]
        roles = [
            Role.model_validate(from_document(doc))
            async for doc in self.roles.find({}).sort("level", -1)
        ]
        return permissions, roles

    async def fetch_permissions(
        self, module: Optional[ModuleName] = None
    ) -> list[Permission]:
        query = {"module": module.value} if module is not None else {}
        return [
            Permission.model_validate(from_document(doc))
            async for doc in self.permissions.find(query)
        ]

    async def fetch_overlay(self, user_id: str) -> Optional[UserPermission]:
        doc = await self.user_permissions.find_one({"_id": user_id})
        return _overlay_from_document(doc) if doc else None

    async def count_permissions(self) -> int:
        return await self.permissions.count_documents({})

    async def count_roles(self) -> int:
        return await self.roles.count_documents({})

    # ── Bootstrap side ──────────────────────────────────────────
    async def _seed(self, collection, records: list) -> int:
        """
        Insert records that do not exist yet, keyed by `_id`.

        All-or-nothing: if any write fails, documents inserted by this
        call are removed again before BootstrapError is raised.
        """
        ops = [
            UpdateOne({"_id": doc["_id"]}, {"$setOnInsert": doc}, upsert=True)
            for doc in (to_document(r) for r in records)
        ]
        if not ops:
            return 0
        try:
            result = await collection.bulk_write(ops, ordered=True)
        except BulkWriteError as exc:
            inserted = [u["_id"] for u in exc.details.get("upserted", [])]
            if inserted:
                await collection.delete_many({"_id": {"$in": inserted}})
            raise BootstrapError(
                f"Seeding {collection.name} failed; rolled back {len(inserted)} records"
            ) from exc
        return result.upserted_count

    async def create_default_permissions(self, permissions: list[Permission]) -> int:
        return await self._seed(self.permissions, permissions)

    async def create_default_roles(self, roles: list[Role]) -> int:
        return await self._seed(self.roles, roles)

    async def upsert_roles(self, roles: list[Role]) -> int:
        """Insert any role whose id is missing; existing roles are left untouched."""
        return await self._seed(self.roles, roles)

    # ── Permissions ─────────────────────────────────────────────
    async def get_permission(self, permission_id: str) -> Permission:
        doc = await self.permissions.find_one({"_id": permission_id})
        if not doc:
            raise NotFoundError(f"Permission '{permission_id}' not found")
        return Permission.model_validate(from_document(doc))

    async def create_permission(self, permission: Permission) -> Permission:
        try:
            await self.permissions.insert_one(to_document(permission))
        except DuplicateKeyError:
            raise DuplicateError(f"Permission '{permission.id}' already exists")
        logger.info(f"Created permission {permission.id}")
        return permission

    async def update_permission(self, permission_id: str, updates: dict) -> Permission:
        current = await self.get_permission(permission_id)
        updated = Permission.model_validate(
            {**current.model_dump(), **updates, "id": permission_id}
        )
        await self.permissions.replace_one({"_id": permission_id}, to_document(updated))
        return updated

    async def delete_permission(self, permission_id: str) -> None:
        """Delete a permission and drop its id from every role that references it."""
        result = await self.permissions.delete_one({"_id": permission_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Permission '{permission_id}' not found")
        await self.roles.update_many(
            {"permissions": permission_id},
            {
                "$pull": {"permissions": permission_id},
                "$set": {"updatedAt": datetime.now(timezone.utc).isoformat()},
            },
        )

    # ── Roles ───────────────────────────────────────────────────
    async def get_role(self, role_id: str) -> Role:
        doc = await self.roles.find_one({"_id": role_id})
        if not doc:
            raise NotFoundError(f"Role '{role_id}' not found")
        return Role.model_validate(from_document(doc))

    async def create_role(self, role: Role) -> Role:
        try:
            await self.roles.insert_one(to_document(role))
        except DuplicateKeyError:
            raise DuplicateError(f"Role '{role.id}' already exists")
        logger.info(f"Created role {role.id}")
        return role

    async def update_role(self, role_id: str, updates: dict) -> Role:
        current = await self.get_role(role_id)
        updated = Role.model_validate(
            {
                **current.model_dump(),
                **updates,
                "id": role_id,
                "created_at": current.created_at,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        await self.roles.replace_one({"_id": role_id}, to_document(updated))
        return updated

    async def delete_role(self, role_id: str) -> None:
        result = await self.roles.delete_one({"_id": role_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Role '{role_id}' not found")

    # ── User overlays ───────────────────────────────────────────
    async def get_user_permission(self, user_id: str) -> UserPermission:
        overlay = await self.fetch_overlay(user_id)
        if overlay is None:
            raise NotFoundError(f"No permission overlay for user '{user_id}'")
        return overlay

    async def set_user_permission(self, overlay: UserPermission) -> UserPermission:
        """Replace (or create) a user's overlay. Duplicate resource keys keep the last entry."""
        deduped: dict[tuple[str, str], ResourcePermission] = {}
        for entry in overlay.resource_permissions:
            deduped[entry.key] = entry
        overlay = overlay.model_copy(
            update={
                "resource_permissions": tuple(deduped.values()),
                "updated_at": datetime.now(timezone.utc),
            }
        )
        await self.user_permissions.replace_one(
            {"_id": overlay.user_id}, _overlay_to_document(overlay), upsert=True
        )
        return overlay

    async def update_user_permission(
        self, user_id: str, updates: dict, updated_by: str | None = None
    ) -> UserPermission:
        current = await self.fetch_overlay(user_id)
        base = current.model_dump() if current else {"user_id": user_id}
        overlay = UserPermission.model_validate(
            {**base, **updates, "user_id": user_id, "updated_by": updated_by}
        )
        return await self.set_user_permission(overlay)

    async def add_resource_permission(
        self,
        user_id: str,
        resource_permission: ResourcePermission,
        updated_by: str | None = None,
    ) -> UserPermission:
        """
        Attach a resource override to a user.

        At most one entry exists per (resourceType, resourceId): an entry
        with the same key is replaced. Creates the overlay (with an empty
        roleId) if the user has none yet.
        """
        current = await self.fetch_overlay(user_id)
        entries = [
            rp
            for rp in (current.resource_permissions if current else ())
            if rp.key != resource_permission.key
        ]
        entries.append(resource_permission)
        base = current.model_dump() if current else {"user_id": user_id, "role_id": ""}
        overlay = UserPermission.model_validate(
            {**base, "resource_permissions": entries, "updated_by": updated_by}
        )
        return await self.set_user_permission(overlay)

    async def remove_resource_permission(
        self,
        user_id: str,
        resource_type: str,
        resource_id: str,
        updated_by: str | None = None,
    ) -> UserPermission:
        current = await self.get_user_permission(user_id)
        entries = [
            rp
            for rp in current.resource_permissions
            if rp.key != (resource_type, resource_id)
        ]
        if len(entries) == len(current.resource_permissions):
            raise NotFoundError(
                f"No resource permission for {resource_type}:{resource_id}"
            )
        overlay = current.model_copy(
            update={"resource_permissions": tuple(entries), "updated_by": updated_by}
        )
        return await self.set_user_permission(overlay)
