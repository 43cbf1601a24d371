"""
Bootstrap initializer — seeds the default catalog on first use.

Both steps are idempotent: a non-empty collection means "already
initialized" and nothing is written. Records are keyed by fixed ids, so
two initializers racing on an empty catalog still produce one copy.
"""

from backoffice.utils import Logger
from backoffice.utils.exceptions import BootstrapError

from .defaults import default_permissions, default_roles

logger = Logger(__name__)


class BootstrapInitializer:
    def __init__(self, store):
        self.store = store

    async def initialize_default_permissions(self) -> bool:
        """Seed default permissions. Returns False when there was nothing to do."""
        if await self.store.count_permissions() > 0:
            logger.debug("Permissions already initialized")
            return False
        try:
            created = await self.store.create_default_permissions(default_permissions())
        except BootstrapError:
            logger.exception("Error initializing default permissions")
            raise
        except Exception as exc:
            logger.exception("Error initializing default permissions")
            raise BootstrapError(f"Could not seed default permissions: {exc}") from exc
        logger.info(f"Default permissions initialized ({created} created)")
        return True

    async def initialize_default_roles(self) -> bool:
        """Seed default roles against the permissions that exist now."""
        if await self.store.count_roles() > 0:
            logger.debug("Roles already initialized")
            return False
        try:
            permissions, _ = await self.store.fetch_catalog()
            created = await self.store.create_default_roles(default_roles(permissions))
        except BootstrapError:
            logger.exception("Error initializing default roles")
            raise
        except Exception as exc:
            logger.exception("Error initializing default roles")
            raise BootstrapError(f"Could not seed default roles: {exc}") from exc
        logger.info(f"Default roles initialized ({created} created)")
        return True

    async def run(self) -> bool:
        """Seed permissions, then roles. True if anything was written."""
        seeded_permissions = await self.initialize_default_permissions()
        seeded_roles = await self.initialize_default_roles()
        return seeded_permissions or seeded_roles

    async def sync_default_roles(self) -> int:
        """Add default roles that are missing from a non-empty catalog."""
        permissions, _ = await self.store.fetch_catalog()
        created = await self.store.upsert_roles(default_roles(permissions))
        if created:
            logger.info(f"Added {created} missing default roles")
        return created
