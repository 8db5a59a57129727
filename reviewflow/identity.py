"""Role membership lookups supplied by the identity provider."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Set

from .config import DirectoryConfig


class RoleDirectory(Protocol):
    """Answers who holds which role on which brand.

    reviewflow performs no authentication; implementations wrap whatever
    identity provider the host application uses.
    """

    async def has_role(self, user_id: str, brand_id: str, role: str) -> bool:
        """Return ``True`` if ``user_id`` holds ``role`` on ``brand_id``."""

    async def users_with_role(self, brand_id: str, role: str) -> Set[str]:
        """Return every user holding ``role`` on ``brand_id``."""

    async def has_brand_access(self, user_id: str, brand_id: str) -> bool:
        """Return ``True`` if ``user_id`` holds any role on ``brand_id``."""

    async def is_brand_admin(self, user_id: str, brand_id: str) -> bool:
        """Return ``True`` if ``user_id`` administers ``brand_id``."""

    async def is_global_admin(self, user_id: str) -> bool:
        """Return ``True`` for system-wide administrators."""


class StaticRoleDirectory(RoleDirectory):
    """Role directory backed by an in-process mapping.

    ``grants`` maps brand id -> user id -> roles. Suitable for tests, the CLI
    and deployments that sync permissions into configuration.
    """

    def __init__(
        self,
        grants: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None,
        global_admins: Iterable[str] = (),
        admin_role: str = "admin",
    ) -> None:
        self._grants: Dict[str, Dict[str, Set[str]]] = {
            brand: {user: set(roles) for user, roles in users.items()}
            for brand, users in (grants or {}).items()
        }
        self._global_admins: Set[str] = set(global_admins)
        self.admin_role = admin_role

    @classmethod
    def from_config(cls, config: DirectoryConfig) -> "StaticRoleDirectory":
        return cls(
            grants=config.brands,
            global_admins=config.global_admins,
            admin_role=config.admin_role,
        )

    def grant(self, user_id: str, brand_id: str, role: str) -> None:
        self._grants.setdefault(brand_id, {}).setdefault(user_id, set()).add(role)

    def revoke(self, user_id: str, brand_id: str, role: Optional[str] = None) -> None:
        """Remove one role, or all access to the brand when ``role`` is None."""
        users = self._grants.get(brand_id, {})
        if role is None:
            users.pop(user_id, None)
        elif user_id in users:
            users[user_id].discard(role)
            if not users[user_id]:
                del users[user_id]

    def roles_for(self, user_id: str, brand_id: str) -> List[str]:
        return sorted(self._grants.get(brand_id, {}).get(user_id, set()))

    async def has_role(self, user_id: str, brand_id: str, role: str) -> bool:
        return role in self._grants.get(brand_id, {}).get(user_id, set())

    async def users_with_role(self, brand_id: str, role: str) -> Set[str]:
        return {
            user
            for user, roles in self._grants.get(brand_id, {}).items()
            if role in roles
        }

    async def has_brand_access(self, user_id: str, brand_id: str) -> bool:
        return bool(self._grants.get(brand_id, {}).get(user_id))

    async def is_brand_admin(self, user_id: str, brand_id: str) -> bool:
        return await self.has_role(user_id, brand_id, self.admin_role)

    async def is_global_admin(self, user_id: str) -> bool:
        return user_id in self._global_admins
