import asyncio

import pytest

from backoffice.rbac.bootstrap import BootstrapInitializer
from backoffice.rbac.defaults import ROLE_MODULES
from backoffice.rbac.types import ModuleName, Role
from backoffice.utils.exceptions import BootstrapError


@pytest.mark.asyncio
async def test_seeds_empty_catalog(empty_store):
    bootstrap = BootstrapInitializer(empty_store)
    assert await bootstrap.run() is True
    assert len(empty_store.permissions) == len(ModuleName)
    assert set(empty_store.roles) == set(ROLE_MODULES)


@pytest.mark.asyncio
async def test_second_run_is_a_noop(empty_store):
    bootstrap = BootstrapInitializer(empty_store)
    await bootstrap.run()
    sizes = len(empty_store.permissions), len(empty_store.roles)

    assert await bootstrap.run() is False
    assert (len(empty_store.permissions), len(empty_store.roles)) == sizes


@pytest.mark.asyncio
async def test_non_empty_catalog_is_left_alone(store):
    before = dict(store.permissions), dict(store.roles)
    assert await BootstrapInitializer(store).run() is False
    assert (store.permissions, store.roles) == before


@pytest.mark.asyncio
async def test_concurrent_runs_do_not_duplicate(empty_store):
    bootstraps = [BootstrapInitializer(empty_store) for _ in range(5)]
    await asyncio.gather(*(b.run() for b in bootstraps))
    assert len(empty_store.permissions) == len(ModuleName)
    assert len(empty_store.roles) == len(ROLE_MODULES)


@pytest.mark.asyncio
async def test_failure_persists_nothing_and_raises(empty_store):
    empty_store.fail_seed = True
    with pytest.raises(BootstrapError):
        await BootstrapInitializer(empty_store).run()
    assert empty_store.permissions == {}
    assert empty_store.roles == {}


@pytest.mark.asyncio
async def test_unexpected_store_error_becomes_bootstrap_error(empty_store):
    async def broken(_permissions):
        raise ConnectionError("write refused")

    empty_store.create_default_permissions = broken
    with pytest.raises(BootstrapError, match="write refused"):
        await BootstrapInitializer(empty_store).initialize_default_permissions()


@pytest.mark.asyncio
async def test_sync_adds_only_missing_default_roles(empty_store):
    bootstrap = BootstrapInitializer(empty_store)
    await bootstrap.run()
    custom_admin = Role(id="admin", name="admin", description="edited", level=90)
    empty_store.roles["admin"] = custom_admin
    del empty_store.roles["leader"]

    assert await bootstrap.sync_default_roles() == 1
    assert "leader" in empty_store.roles
    assert empty_store.roles["admin"] is custom_admin
