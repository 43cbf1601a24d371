from .types import (
    AccessLevel,
    ActionType,
    ModuleName,
    Permission,
    PermissionRequest,
    PermissionResult,
    Principal,
    ResourcePermission,
    ResourceRef,
    Role,
    UserPermission,
)
from .catalog import PermissionCatalog
from .engine import evaluate
from .bootstrap import BootstrapInitializer
from .facade import FacadeState, PermissionFacade
from .guard import GuardOutcome, PermissionGuard, RenderStrategy

__all__ = [
    "AccessLevel",
    "ActionType",
    "ModuleName",
    "Permission",
    "PermissionRequest",
    "PermissionResult",
    "Principal",
    "ResourcePermission",
    "ResourceRef",
    "Role",
    "UserPermission",
    "PermissionCatalog",
    "evaluate",
    "BootstrapInitializer",
    "FacadeState",
    "PermissionFacade",
    "GuardOutcome",
    "PermissionGuard",
    "RenderStrategy",
]
