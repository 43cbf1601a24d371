from backoffice.rbac.catalog import PermissionCatalog
from backoffice.rbac.defaults import ROLE_MODULES, default_permissions, default_roles
from backoffice.rbac.types import ActionType, FULL_ACCESS, ModuleName, Role


def test_lookup_by_id(catalog):
    assert catalog.get_permission("perm_hr_edit").module is ModuleName.HR
    assert catalog.get_role("manager").level == 70
    assert catalog.get_permission("nope") is None
    assert catalog.get_role("nope") is None
    assert catalog.get_role_by_name("admin").id == "admin"


def test_list_all_orders_roles_by_level(catalog):
    permissions, roles = catalog.list_all()
    assert len(permissions) == 5
    assert [r.id for r in roles] == ["super_admin", "admin", "manager", "user"]


def test_empty_catalog():
    catalog = PermissionCatalog.empty()
    assert catalog.is_empty()
    assert len(catalog) == 0


def test_role_permission_ids_are_deduplicated():
    role = Role(id="r", name="r", permissions=["a", "b", "a"])
    assert role.permissions == ("a", "b")


def test_default_permissions_cover_every_module_with_full_access():
    permissions = default_permissions()
    assert {p.module for p in permissions} == set(ModuleName)
    assert all(p.actions == FULL_ACCESS for p in permissions)
    assert len({p.id for p in permissions}) == len(permissions)


def test_default_roles_follow_the_module_matrix():
    roles = {r.id: r for r in default_roles()}
    assert set(roles) == set(ROLE_MODULES)
    assert roles["super_admin"].level > roles["admin"].level > roles["manager"].level
    assert "perm_admin" not in roles["director"].permissions
    assert "perm_time_tracking" in roles["leader"].permissions
    assert roles["user"].permissions == ()


def test_default_roles_only_reference_existing_permissions():
    existing = [p for p in default_permissions() if p.module is not ModuleName.HR]
    roles = {r.id: r for r in default_roles(existing)}
    assert "perm_hr" not in roles["manager"].permissions
    assert "perm_documents" in roles["manager"].permissions
    assert ActionType.MANAGE in existing[0].actions
