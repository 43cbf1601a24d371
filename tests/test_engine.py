"""Evaluation engine: rule order, precedence and reasons."""

import pytest
from pydantic import ValidationError

from backoffice.rbac.catalog import PermissionCatalog
from backoffice.rbac.engine import evaluate
from backoffice.rbac.types import (
    ActionType,
    ModuleName,
    Permission,
    PermissionRequest,
    Principal,
    Role,
    UserPermission,
)

from tests.conftest import ALL_PERMISSIONS, HR_DELETE, HR_READ_UPDATE, resource_override


def req(module, action, resource=None, **kwargs):
    return PermissionRequest(module=module, action=action, resource=resource, **kwargs)


@pytest.mark.parametrize("module", list(ModuleName))
@pytest.mark.parametrize("action", [ActionType.READ, ActionType.DELETE, ActionType.MANAGE])
def test_unauthenticated_is_always_denied(catalog, module, action):
    result = evaluate(req(module, action), None, None, catalog)
    assert result.granted is False
    assert result.reason == "User not authenticated"


@pytest.mark.parametrize("module", list(ModuleName))
def test_super_admin_bypasses_restrictions(catalog, module):
    principal = Principal(id="root", role_id="super_admin")
    overlay = UserPermission(
        user_id="root",
        role_id="super_admin",
        restricted_permissions=[p.id for p in ALL_PERMISSIONS],
        resource_permissions=[resource_override("department", "d1", ActionType.READ)],
    )
    result = evaluate(
        req(module, ActionType.DELETE, {"type": "department", "id": "d1"}),
        principal,
        overlay,
        catalog,
    )
    assert result.granted is True
    assert result.reason == "User is super_admin"


def test_super_admin_recognised_on_empty_catalog():
    principal = Principal(id="root", role_id="super_admin")
    result = evaluate(
        req(ModuleName.HR, ActionType.READ), principal, None, PermissionCatalog.empty()
    )
    assert result.granted is True


def test_top_level_role_under_another_id_is_super_admin():
    catalog = PermissionCatalog([], [Role(id="r-root", name="Root", level=100)])
    result = evaluate(
        req(ModuleName.CRM, ActionType.EXPORT), Principal(id="x", role_id="r-root"), None, catalog
    )
    assert result.granted is True


def test_manager_scenario(catalog, manager):
    delete = req(ModuleName.HR, ActionType.DELETE)
    read = req(ModuleName.HR, ActionType.READ)

    assert evaluate(delete, manager, None, catalog).granted is False
    assert evaluate(read, manager, None, catalog).granted is True

    overlay = UserPermission(
        user_id=manager.id, role_id="manager", custom_permissions=[HR_DELETE.id]
    )
    granted = evaluate(delete, manager, overlay, catalog)
    assert granted.granted is True
    assert granted.reason == "User has custom permission"

    overlay = overlay.model_copy(update={"restricted_permissions": (HR_DELETE.id,)})
    denied = evaluate(delete, manager, overlay, catalog)
    assert denied.granted is False
    assert denied.reason == "Permission is restricted for this user"


def test_restriction_beats_role_grant(catalog, manager):
    overlay = UserPermission(
        user_id=manager.id, role_id="manager", restricted_permissions=[HR_READ_UPDATE.id]
    )
    result = evaluate(req(ModuleName.HR, ActionType.READ), manager, overlay, catalog)
    assert result.granted is False


def test_restriction_beats_custom_grant_regardless_of_role(catalog):
    principal = Principal(id="u1", role_id="user")
    overlay = UserPermission(
        user_id="u1",
        role_id="user",
        custom_permissions=[HR_READ_UPDATE.id],
        restricted_permissions=[HR_READ_UPDATE.id],
    )
    result = evaluate(req(ModuleName.HR, ActionType.UPDATE), principal, overlay, catalog)
    assert result.granted is False


def test_manage_implies_every_action(catalog, manager):
    for action in ActionType:
        result = evaluate(req(ModuleName.DOCUMENTS, action), manager, None, catalog)
        assert result.granted is True, action
    assert (
        evaluate(req(ModuleName.DOCUMENTS, ActionType.APPROVE), manager, None, catalog).reason
        == "Role has permission"
    )


def test_role_without_permissions_denies_everything(catalog):
    principal = Principal(id="u1", role_id="user")
    result = evaluate(req(ModuleName.HR, ActionType.READ), principal, None, catalog)
    assert result.granted is False
    assert result.reason == "Missing permission: hr:read"


def test_unknown_role_denies(catalog):
    principal = Principal(id="u1", role_id="ghost")
    assert evaluate(req(ModuleName.HR, ActionType.READ), principal, None, catalog).granted is False


def test_resource_override_narrows_role_grant(catalog, manager):
    overlay = UserPermission(
        user_id=manager.id,
        role_id="manager",
        resource_permissions=[resource_override("department", "d1", ActionType.READ)],
    )
    update = req(ModuleName.HR, ActionType.UPDATE, {"type": "department", "id": "d1"})
    result = evaluate(update, manager, overlay, catalog)
    assert result.granted is False
    assert result.reason == "Resource permission does not allow update on department:d1"

    read = req(ModuleName.HR, ActionType.READ, {"type": "department", "id": "d1"})
    assert evaluate(read, manager, overlay, catalog).reason == (
        "User has resource-specific permission"
    )


def test_resource_override_widens_beyond_restrictions(catalog, manager):
    overlay = UserPermission(
        user_id=manager.id,
        role_id="manager",
        restricted_permissions=[HR_READ_UPDATE.id],
        resource_permissions=[resource_override("department", "d1", ActionType.MANAGE)],
    )
    request = req(ModuleName.HR, ActionType.DELETE, {"type": "department", "id": "d1"})
    assert evaluate(request, manager, overlay, catalog).granted is True


def test_other_resource_falls_through_to_module_level(catalog, manager):
    overlay = UserPermission(
        user_id=manager.id,
        role_id="manager",
        resource_permissions=[resource_override("department", "d1", ActionType.READ)],
    )
    request = req(ModuleName.HR, ActionType.UPDATE, {"type": "department", "id": "d2"})
    result = evaluate(request, manager, overlay, catalog)
    assert result.granted is True
    assert result.reason == "Role has permission"


def test_resource_without_id_skips_override_lookup(catalog, manager):
    overlay = UserPermission(
        user_id=manager.id,
        role_id="manager",
        resource_permissions=[resource_override("department", "", ActionType.READ)],
    )
    request = req(ModuleName.HR, ActionType.UPDATE, {"type": "department", "id": ""})
    assert evaluate(request, manager, overlay, catalog).granted is True


def test_duplicate_resource_keys_first_match_wins(catalog, manager):
    overlay = UserPermission(
        user_id=manager.id,
        role_id="manager",
        resource_permissions=[
            resource_override("department", "d1", ActionType.READ),
            resource_override("department", "d1", ActionType.UPDATE),
        ],
    )
    request = req(ModuleName.HR, ActionType.UPDATE, {"type": "department", "id": "d1"})
    assert evaluate(request, manager, overlay, catalog).granted is False


def test_resource_scoped_permission_checks_only_named_resources():
    scoped = Permission(
        id="perm_leave_approve",
        name="Approve Leave",
        module=ModuleName.HR,
        actions={ActionType.APPROVE},
        resource="leave",
    )
    catalog = PermissionCatalog(
        [scoped], [Role(id="lead", name="lead", permissions=[scoped.id], level=80)]
    )
    lead = Principal(id="l1", role_id="lead")

    leave = req(ModuleName.HR, ActionType.APPROVE, {"type": "leave"})
    timesheet = req(ModuleName.HR, ActionType.APPROVE, {"type": "timesheet"})
    assert evaluate(leave, lead, None, catalog).granted is True
    assert evaluate(timesheet, lead, None, catalog).granted is False

    unscoped = req(ModuleName.HR, ActionType.APPROVE)
    assert evaluate(unscoped, lead, None, catalog).granted is True


def test_custom_permission_missing_from_catalog_is_ignored(catalog, manager):
    overlay = UserPermission(
        user_id=manager.id, role_id="manager", custom_permissions=["perm_deleted"]
    )
    result = evaluate(req(ModuleName.HR, ActionType.DELETE), manager, overlay, catalog)
    assert result.granted is False
    assert result.reason == "Missing permission: hr:delete"


def test_invalid_action_is_rejected_at_the_boundary():
    with pytest.raises(ValidationError):
        PermissionRequest(module="hr", action="destroy")
    with pytest.raises(ValidationError):
        PermissionRequest(module="payroll", action="read")
