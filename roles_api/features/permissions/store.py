"""
Storage collaborator for the role/permission mixin.

The mixin never talks to the database directly. It asks its principal for a
RoleStore and calls the four operations below. SQLAlchemyRoleStore is the
production implementation over an AsyncSession.
"""
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from sqlalchemy import Select, delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from roles_api.features.permissions.models import Permission, Role, role_permissions, role_users
from roles_api.utils import get_logger


log = get_logger(__name__)


class RoleStoreUnavailable(RuntimeError):
    """Raised when a principal has no storage to load or persist roles with."""


@dataclass(frozen=True)
class PendingRoles:
    """Roles staged for attachment, handed to RoleStore.persist in one piece."""

    attach: tuple[Role, ...] = ()

    @property
    def slugs(self) -> list[str]:
        return [role.slug for role in self.attach]

    def __bool__(self) -> bool:
        return bool(self.attach)


class RoleStore(Protocol):
    """What the authorization mixin needs from persistence."""

    async def load_roles(self, principal: Any, params: Optional[Mapping[str, Any]] = None) -> Sequence[Role]:
        ...

    async def load_permissions(self, role_ids: Iterable[int]) -> Sequence[Permission]:
        ...

    async def persist(self, principal: Any, pending: PendingRoles) -> bool:
        ...

    async def delete_role_links(self, principal: Any, slugs: Optional[Iterable[str]] = None) -> int:
        ...


def apply_role_params(stmt: Select, params: Optional[Mapping[str, Any]]) -> Select:
    """
    Apply optional filter/sort parameters to a role query.

    Supported keys:
        where:    a SQLAlchemy clause, or a list of clauses
        order_by: a column/clause or list of them (default: Role.id)
        limit:    int
        offset:   int
    """
    params = params or {}

    where = params.get("where")
    if where is not None:
        clauses = where if isinstance(where, (list, tuple)) else [where]
        stmt = stmt.where(*clauses)

    order_by = params.get("order_by", Role.id)
    order_by = order_by if isinstance(order_by, (list, tuple)) else [order_by]
    stmt = stmt.order_by(*order_by)

    if params.get("limit") is not None:
        stmt = stmt.limit(params["limit"])
    if params.get("offset") is not None:
        stmt = stmt.offset(params["offset"])
    return stmt


class SQLAlchemyRoleStore:
    """
    RoleStore over an AsyncSession.

    persist and delete_role_links own the transaction: they commit on
    success and roll back before re-raising any SQLAlchemyError. The session
    should be created with expire_on_commit=False so the principal stays
    readable after a commit.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def load_roles(self, principal, params=None) -> list[Role]:
        stmt = (
            select(Role)
            .join(role_users, role_users.c.role_id == Role.id)
            .where(role_users.c.user_id == principal.id)
        )
        stmt = apply_role_params(stmt, params)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def load_permissions(self, role_ids) -> list[Permission]:
        # DISTINCT: several roles may grant the same permission
        stmt = (
            select(Permission)
            .distinct()
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id.in_(list(role_ids)))
            .order_by(Permission.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def persist(self, principal, pending: PendingRoles) -> bool:
        """
        Save the principal and write the pivot rows for the staged roles.

        Staged roles are resolved to persisted ids by slug. Returns False,
        writing nothing, when a staged slug does not name an existing role.
        """
        try:
            resolved: dict[str, int] = {}
            if pending:
                slugs = set(pending.slugs)
                result = await self.session.execute(
                    select(Role.id, Role.slug).where(Role.slug.in_(slugs))
                )
                resolved = {row.slug: row.id for row in result}
                missing = slugs - resolved.keys()
                if missing:
                    log.warning("Cannot attach unknown roles %s to user %s", sorted(missing), principal.id)
                    return False

            self.session.add(principal)
            await self.session.flush()

            if pending:
                result = await self.session.execute(
                    select(role_users.c.role_id).where(role_users.c.user_id == principal.id)
                )
                held = set(result.scalars().all())
                rows = [
                    {"user_id": principal.id, "role_id": role_id}
                    for role_id in dict.fromkeys(resolved[slug] for slug in pending.slugs)
                    if role_id not in held
                ]
                if rows:
                    await self.session.execute(insert(role_users), rows)
                log.debug("Attached %d role(s) to user %s", len(rows), principal.id)

            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return True

    async def delete_role_links(self, principal, slugs=None) -> int:
        stmt = delete(role_users).where(role_users.c.user_id == principal.id)
        if slugs is not None:
            stmt = stmt.where(
                role_users.c.role_id.in_(select(Role.id).where(Role.slug.in_(list(slugs))))
            )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return result.rowcount
