import pytest
from starlette.requests import Request

from backoffice.rbac.permissions import resolve_permission_from_request
from backoffice.rbac.types import ActionType, ModuleName


def make_request(method: str, path: str) -> Request:
    return Request({"type": "http", "method": method, "path": path, "headers": [], "query_string": b""})


@pytest.mark.parametrize(
    "method,path,module,action",
    [
        ("GET", "/api/v1/hr/employees", ModuleName.HR, ActionType.READ),
        ("POST", "/api/v1/documents", ModuleName.DOCUMENTS, ActionType.CREATE),
        ("PATCH", "/api/v2/time-tracking/42", ModuleName.TIME_TRACKING, ActionType.UPDATE),
        ("DELETE", "/api/v1/rbac/roles/manager", ModuleName.ADMIN, ActionType.DELETE),
    ],
)
def test_route_maps_to_module_and_action(method, path, module, action):
    request = resolve_permission_from_request(make_request(method, path))
    assert request.module is module
    assert request.action is action
    assert request.resource is None


@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/health"),
        ("GET", "/api/v1/permissions/me"),
        ("OPTIONS", "/api/v1/hr"),
        ("GET", "/static/hr/logo.png"),
    ],
)
def test_unguarded_routes_resolve_to_none(method, path):
    assert resolve_permission_from_request(make_request(method, path)) is None
