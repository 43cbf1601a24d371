"""Permission catalog — id-keyed, read-only lookup of permissions and roles."""

from types import MappingProxyType
from typing import Iterable, Optional

from .types import Permission, Role


class PermissionCatalog:
    def __init__(
        self,
        permissions: Iterable[Permission] = (),
        roles: Iterable[Role] = (),
    ):
        self._permissions = MappingProxyType({p.id: p for p in permissions})
        self._roles = MappingProxyType({r.id: r for r in roles})

    @classmethod
    def empty(cls) -> "PermissionCatalog":
        return cls()

    def get_permission(self, permission_id: str) -> Optional[Permission]:
        return self._permissions.get(permission_id)

    def get_role(self, role_id: str) -> Optional[Role]:
        return self._roles.get(role_id)

    def get_role_by_name(self, name: str) -> Optional[Role]:
        for role in self._roles.values():
            if role.name == name:
                return role
        return None

    def list_all(self) -> tuple[list[Permission], list[Role]]:
        """Return (permissions, roles); roles ordered by level, highest first."""
        roles = sorted(self._roles.values(), key=lambda r: r.level, reverse=True)
        return list(self._permissions.values()), roles

    def is_empty(self) -> bool:
        return not self._permissions

    def __len__(self) -> int:
        return len(self._permissions) + len(self._roles)

    def __repr__(self) -> str:
        return (
            f"<PermissionCatalog permissions={len(self._permissions)} "
            f"roles={len(self._roles)}>"
        )
