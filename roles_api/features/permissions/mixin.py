"""
Role and permission checks for a user-like model.

Compose HasRolesAndPermissions into a model and implement get_role_store():

    class User(Base, TimestampMixin, HasRolesAndPermissions):
        def get_role_store(self) -> RoleStore:
            return SQLAlchemyRoleStore(async_object_session(self))

    if await user.can("manage_users"):
        ...

Roles and permissions are matched by slug. Both are loaded on first use and
cached on the instance until a successful attach or detach.
"""
from typing import Any, Iterable, Mapping, Optional

from roles_api.features.permissions.cache import UNLOADED, Loaded, Unloaded
from roles_api.features.permissions.models import Permission, Role
from roles_api.features.permissions.store import PendingRoles, RoleStore
from roles_api.utils import get_logger


log = get_logger(__name__)


class HasRolesAndPermissions:
    """
    Authorization mixin.

    The caches are plain instance attributes, not mapped columns, and are
    not safe to share between concurrent tasks.
    """

    _roles_cache = UNLOADED
    _permissions_cache = UNLOADED

    def get_role_store(self) -> RoleStore:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def get_roles(self, params: Optional[Mapping[str, Any]] = None) -> list[Role]:
        """
        Return the roles linked to this principal.

        params (where, order_by, limit, offset) only apply to the load that
        fills the cache; later calls return the cached roles.
        """
        if isinstance(self._roles_cache, Unloaded):
            roles = await self.get_role_store().load_roles(self, params)
            self._roles_cache = Loaded(tuple(roles))
            log.debug("Loaded %d role(s) for %r", len(roles), self)
        return list(self._roles_cache.items)

    async def has_role(self, role: Role) -> bool:
        return await self._holds_role(role.slug)

    async def is_role(self, slug: str) -> bool:
        """Check if the principal holds the role with this slug."""
        return await self._holds_role(slug)

    async def _holds_role(self, slug: str) -> bool:
        return any(held.slug == slug for held in await self.get_roles())

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def get_permissions(self) -> list[Permission]:
        """
        Return every permission granted by any held role, once per permission.

        Fetched with a single query across all role ids.
        """
        if isinstance(self._permissions_cache, Unloaded):
            role_ids = [role.id for role in await self.get_roles()]
            permissions = await self.get_role_store().load_permissions(role_ids)
            self._permissions_cache = Loaded(tuple(permissions))
            log.debug("Loaded %d permission(s) for %r", len(permissions), self)
        return list(self._permissions_cache.items)

    async def has_permission(self, permission: Permission) -> bool:
        return await self.can(permission.slug)

    async def can(self, slug: str) -> bool:
        """Check if any held role grants the permission with this slug."""
        return any(granted.slug == slug for granted in await self.get_permissions())

    async def is_allowed(self, slug: str) -> bool:
        return await self.can(slug)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def attach_role(self, role: Role) -> bool:
        """
        Attach a role. Already holding a role with the same slug is a
        successful no-op.
        """
        if await self.has_role(role):
            return True
        return await self._save_roles([role])

    async def attach_all_roles(self, roles: Iterable[Role]) -> bool:
        """
        Attach every role not already held, in a single save.

        The save runs even when nothing is left to attach.
        """
        held = {role.slug for role in await self.get_roles()}
        to_attach = []
        for role in roles:
            if role.slug in held:
                continue
            held.add(role.slug)
            to_attach.append(role)
        return await self._save_roles(to_attach)

    async def detach_role(self, role: Role) -> int:
        """
        Detach the role with this role's slug and return the number of
        assignments removed. Not holding it is not an error (0).
        """
        removed = await self.get_role_store().delete_role_links(self, slugs=[role.slug])
        log.debug("Detached role %r from %r (%d row(s))", role.slug, self, removed)
        self._forget_roles()
        return removed

    async def detach_all_roles(self) -> int:
        """Detach every role and return the number of assignments removed."""
        removed = await self.get_role_store().delete_role_links(self)
        log.debug("Detached all roles from %r (%d row(s))", self, removed)
        self._forget_roles()
        return removed

    async def _save_roles(self, roles: list[Role]) -> bool:
        saved = await self.get_role_store().persist(self, PendingRoles(attach=tuple(roles)))
        if saved:
            self._forget_roles()
        return saved

    def _forget_roles(self) -> None:
        # permissions are derived from roles
        self._roles_cache = UNLOADED
        self._permissions_cache = UNLOADED
