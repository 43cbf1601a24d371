"""
RBAC vocabulary and records.

Modules and actions are closed enums, so an unknown string is rejected
when a request is built instead of silently failing to match.

Records are frozen and hold tuples / frozensets: a catalog or overlay
snapshot handed to the engine cannot change underneath it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class ActionType(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    ASSIGN = "assign"
    EXPORT = "export"
    IMPORT = "import"
    MANAGE = "manage"  # implies every other action of its module


class ModuleName(str, Enum):
    USERS = "users"
    HR = "hr"
    DASHBOARD = "dashboard"
    HELPDESK = "helpdesk"
    DOCUMENTS = "documents"
    ASSETS = "assets"
    PROJECTS = "projects"
    TIMESHEET = "timesheet"
    INVOICING = "invoicing"
    TIME_TRACKING = "time-tracking"
    NOTIFICATIONS = "notifications"
    CRM = "crm"
    ADMIN = "admin"


class AccessLevel:
    """Role hierarchy levels (higher = more authority)."""

    SUPER_ADMIN = 100
    ADMIN = 90
    DIRECTOR = 85
    LEADER = 80
    DEPARTMENT_MANAGER = 75
    MANAGER = 70
    SUPERVISOR = 50
    EMPLOYEE = 30
    USER = 10
    GUEST = 0


SUPER_ADMIN_ROLE = "super_admin"

FULL_ACCESS: frozenset[ActionType] = frozenset(ActionType)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Record(BaseModel):
    """Immutable record that reads both snake_case and stored camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def _sorted_actions(actions: frozenset[ActionType]) -> list[str]:
    return sorted(a.value for a in actions)


# ── Catalog ─────────────────────────────────────────────────────
class Permission(_Record):
    id: str
    name: str
    description: str = ""
    module: ModuleName
    actions: frozenset[ActionType]
    resource: Optional[str] = None  # "department" or "department:123"
    conditions: Optional[dict[str, Any]] = None

    @field_validator("actions")
    @classmethod
    def _non_empty(cls, v):
        if not v:
            raise ValueError("A permission must allow at least one action")
        return v

    @field_serializer("actions")
    def _dump_actions(self, v):
        return _sorted_actions(v)

    def allows(self, action: ActionType) -> bool:
        return action in self.actions or ActionType.MANAGE in self.actions


class Role(_Record):
    id: str
    name: str
    description: str = ""
    permissions: tuple[str, ...] = ()
    level: int = AccessLevel.GUEST
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    @field_validator("permissions")
    @classmethod
    def _unique(cls, v):
        # order is irrelevant for evaluation; keep first occurrence
        return tuple(dict.fromkeys(v))


# ── Per-user overlay ────────────────────────────────────────────
class ResourcePermission(_Record):
    permission_id: str = Field(alias="permissionId")
    resource_type: str = Field(alias="resourceType")
    resource_id: str = Field(alias="resourceId")
    actions: frozenset[ActionType]

    @field_serializer("actions")
    def _dump_actions(self, v):
        return _sorted_actions(v)

    @property
    def key(self) -> tuple[str, str]:
        return self.resource_type, self.resource_id

    def allows(self, action: ActionType) -> bool:
        return action in self.actions or ActionType.MANAGE in self.actions


class UserPermission(_Record):
    user_id: str = Field(alias="userId")
    role_id: str = Field("", alias="roleId")
    custom_permissions: tuple[str, ...] = Field((), alias="customPermissions")
    restricted_permissions: tuple[str, ...] = Field((), alias="restrictedPermissions")
    resource_permissions: tuple[ResourcePermission, ...] = Field(
        (), alias="resourcePermissions"
    )
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")
    updated_by: Optional[str] = Field(None, alias="updatedBy")

    @field_validator(
        "custom_permissions",
        "restricted_permissions",
        "resource_permissions",
        mode="before",
    )
    @classmethod
    def _none_is_empty(cls, v):
        return () if v is None else v


# ── Queries ─────────────────────────────────────────────────────
class ResourceRef(_Record):
    type: str
    id: Optional[str] = None


class PermissionRequest(_Record):
    module: ModuleName
    action: ActionType
    resource: Optional[ResourceRef] = None
    user_id: Optional[str] = Field(None, alias="userId")

    @property
    def key(self) -> tuple:
        """Identity of the request as seen by a guard (who is asking is excluded)."""
        res = (self.resource.type, self.resource.id) if self.resource else None
        return self.module, self.action, res


class PermissionResult(_Record):
    granted: bool
    reason: Optional[str] = None


class Principal(_Record):
    """The authenticated caller, supplied by the auth layer."""

    id: str
    role_id: str = Field(alias="roleId")
