"""
Declarative permission decorators for route handlers.

Usage:
    @router.get("/")
    @require_permission(ModuleName.USERS, ActionType.READ)
    async def list_users(request: Request):
        ...
"""

from functools import wraps
from typing import Optional

from fastapi import HTTPException, status
from starlette.requests import Request

from backoffice.utils.exceptions import AuthenticationError, PermissionDeniedError

from .facade import PermissionFacade
from .types import ActionType, ModuleName, PermissionRequest, ResourceRef


def get_permission_facade(request: Request) -> PermissionFacade:
    """FastAPI dependency — the façade created in the app lifespan."""
    facade = getattr(request.app.state, "permission_facade", None)
    if facade is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Permission system not initialized",
        )
    return facade


def require_permission(
    module: ModuleName,
    action: ActionType,
    resource_type: Optional[str] = None,
    resource_id_param: Optional[str] = None,
):
    """
    Decorator that checks the current principal (set by middleware on
    request.state) is granted `module:action`.

    `resource_id_param` names a path parameter whose value becomes the
    resource id, so per-resource overrides apply.

    Must be applied AFTER the route decorator.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            # Find the Request object from args/kwargs
            request: Request | None = kwargs.get("request")
            if request is None:
                for arg in args:
                    if isinstance(arg, Request):
                        request = arg
                        break

            if request is None:
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Request object not found in handler",
                )

            principal = getattr(request.state, "principal", None)
            if principal is None:
                raise AuthenticationError("User not authenticated")

            resource = None
            if resource_type:
                resource_id = kwargs.get(resource_id_param) if resource_id_param else None
                resource = ResourceRef(type=resource_type, id=resource_id)

            facade = get_permission_facade(request)
            result = await facade.check_permission_with_result(
                PermissionRequest(module=module, action=action, resource=resource),
                principal,
            )
            if not result.granted:
                raise PermissionDeniedError(
                    f"Permission denied. Requires: {module.value}:{action.value} "
                    f"({result.reason})"
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator
