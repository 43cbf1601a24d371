"""
Route-level permission resolution.

Maps an HTTP request to the PermissionRequest it needs:
  /api/{version}/{segment}/...  +  method  →  (module, action)
"""

from typing import Optional

from starlette.requests import Request

from .types import ActionType, ModuleName, PermissionRequest


# ── Map URL path segments to module names ────────────────────────
MODULE_MAP: dict[str, ModuleName] = {
    "users": ModuleName.USERS,
    "hr": ModuleName.HR,
    "employees": ModuleName.HR,
    "departments": ModuleName.HR,
    "leave": ModuleName.HR,
    "dashboard": ModuleName.DASHBOARD,
    "helpdesk": ModuleName.HELPDESK,
    "documents": ModuleName.DOCUMENTS,
    "assets": ModuleName.ASSETS,
    "projects": ModuleName.PROJECTS,
    "timesheet": ModuleName.TIMESHEET,
    "invoicing": ModuleName.INVOICING,
    "time-tracking": ModuleName.TIME_TRACKING,
    "notifications": ModuleName.NOTIFICATIONS,
    "crm": ModuleName.CRM,
    "admin": ModuleName.ADMIN,
    "rbac": ModuleName.ADMIN,  # /api/v1/rbac → admin:* permission
}

# ── Map HTTP methods to RBAC actions ─────────────────────────────
METHOD_TO_ACTION: dict[str, ActionType] = {
    "GET": ActionType.READ,
    "POST": ActionType.CREATE,
    "PUT": ActionType.UPDATE,
    "PATCH": ActionType.UPDATE,
    "DELETE": ActionType.DELETE,
}


def resolve_permission_from_request(request: Request) -> Optional[PermissionRequest]:
    """
    Derive the required permission from the request.

    URL pattern expected:  /api/{version}/{module}/...
    Returns None when the segment is not a guarded module.
    """
    path_parts = request.url.path.strip("/").split("/")
    # path_parts = ["api", "v1", "hr", ...]
    segment = path_parts[2] if len(path_parts) > 2 and path_parts[0] == "api" else None
    module = MODULE_MAP.get(segment) if segment else None
    action = METHOD_TO_ACTION.get(request.method)

    if not module or not action:
        return None

    return PermissionRequest(module=module, action=action)
