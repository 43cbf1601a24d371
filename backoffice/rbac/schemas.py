from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .types import ActionType, ModuleName, ResourcePermission


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreatePermissionRequest(_Body):
    id: Optional[str] = Field(None, min_length=1, max_length=100)
    name: str = Field(..., min_length=2, max_length=100)
    description: str = ""
    module: ModuleName
    actions: List[ActionType] = Field(..., min_length=1)
    resource: Optional[str] = None
    conditions: Optional[dict[str, Any]] = None


class UpdatePermissionRequest(_Body):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    module: Optional[ModuleName] = None
    actions: Optional[List[ActionType]] = Field(None, min_length=1)
    resource: Optional[str] = None
    conditions: Optional[dict[str, Any]] = None


class CreateRoleRequest(_Body):
    id: Optional[str] = Field(None, min_length=1, max_length=100)
    name: str = Field(..., min_length=2, max_length=100)
    description: str = ""
    permissions: List[str] = []
    level: int = Field(0, ge=0, le=100)


class UpdateRoleRequest(_Body):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    permissions: Optional[List[str]] = None
    level: Optional[int] = Field(None, ge=0, le=100)


class SetUserPermissionRequest(_Body):
    role_id: str = Field(..., alias="roleId")
    custom_permissions: List[str] = Field([], alias="customPermissions")
    restricted_permissions: List[str] = Field([], alias="restrictedPermissions")
    resource_permissions: List[ResourcePermission] = Field(
        [], alias="resourcePermissions"
    )
