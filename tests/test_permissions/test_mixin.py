"""Tests for the HasRolesAndPermissions mixin against an in-memory store."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from roles_api.features.permissions.cache import UNLOADED, Loaded
from roles_api.features.permissions.mixin import HasRolesAndPermissions
from roles_api.features.permissions.models import Permission, Role
from roles_api.features.permissions.store import PendingRoles


class FakeRoleStore:
    """Keeps pivot rows in lists and records every call."""

    def __init__(self, roles=(), grants=None, persist_result=True):
        self.links = list(roles)
        self.grants = grants or {}
        self.persist_result = persist_result
        self.role_loads = 0
        self.permission_loads: list[list[int]] = []
        self.persisted: list[PendingRoles] = []
        self.deleted: list = []

    async def load_roles(self, principal, params=None):
        self.role_loads += 1
        return list(self.links)

    async def load_permissions(self, role_ids):
        role_ids = list(role_ids)
        self.permission_loads.append(role_ids)
        unique = {}
        for role_id in role_ids:
            for permission in self.grants.get(role_id, []):
                unique.setdefault(permission.id, permission)
        return list(unique.values())

    async def persist(self, principal, pending):
        self.persisted.append(pending)
        if isinstance(self.persist_result, Exception):
            raise self.persist_result
        if self.persist_result:
            self.links.extend(pending.attach)
        return self.persist_result

    async def delete_role_links(self, principal, slugs=None):
        self.deleted.append(slugs)
        before = len(self.links)
        if slugs is None:
            self.links = []
        else:
            self.links = [role for role in self.links if role.slug not in set(slugs)]
        return before - len(self.links)


class Principal(HasRolesAndPermissions):
    def __init__(self, store):
        self.id = 1
        self.store = store

    def get_role_store(self):
        return self.store


ADMIN = Role(id=1, slug="admin", name="Admin")
EDITOR = Role(id=2, slug="editor", name="Editor")
VIEWER = Role(id=3, slug="viewer", name="Viewer")

MANAGE_USERS = Permission(id=10, slug="manage_users", name="Manage users")
VIEW_REPORTS = Permission(id=11, slug="view_reports", name="View reports")


@pytest.fixture
def store():
    return FakeRoleStore(
        roles=[ADMIN],
        grants={
            ADMIN.id: [MANAGE_USERS, VIEW_REPORTS],
            EDITOR.id: [VIEW_REPORTS],
        },
    )


@pytest.fixture
def principal(store):
    return Principal(store)


class TestMembership:
    """Tests for role and permission membership checks."""

    @pytest.mark.asyncio
    async def test_roles_are_loaded_once(self, principal, store):
        await principal.get_roles()
        await principal.get_roles()
        await principal.is_role("admin")

        assert store.role_loads == 1

    @pytest.mark.asyncio
    async def test_has_role_matches_by_slug_not_id(self, principal):
        assert await principal.has_role(Role(id=999, slug="admin")) is True
        assert await principal.has_role(Role(id=ADMIN.id, slug="other")) is False

    @pytest.mark.asyncio
    async def test_is_role_agrees_with_has_role(self, principal):
        for slug in ("admin", "editor", "", "ADMIN"):
            assert await principal.is_role(slug) == await principal.has_role(Role(slug=slug))

    @pytest.mark.asyncio
    async def test_duplicate_slugs_in_cache_are_tolerated(self):
        principal = Principal(FakeRoleStore(roles=[ADMIN, Role(id=7, slug="admin")]))

        assert await principal.is_role("admin") is True
        assert len(await principal.get_roles()) == 2

    @pytest.mark.asyncio
    async def test_permissions_fetched_in_one_call_for_all_roles(self, store):
        store.links = [ADMIN, EDITOR]
        principal = Principal(store)

        permissions = await principal.get_permissions()

        assert store.permission_loads == [[ADMIN.id, EDITOR.id]]
        assert [p.id for p in permissions] == [MANAGE_USERS.id, VIEW_REPORTS.id]

    @pytest.mark.asyncio
    async def test_can_and_is_allowed(self, principal, store):
        assert await principal.can("manage_users") is True
        assert await principal.is_allowed("manage_users") is True
        assert await principal.has_permission(Permission(slug="view_reports")) is True
        assert await principal.can("delete_org") is False
        assert len(store.permission_loads) == 1

    @pytest.mark.asyncio
    async def test_no_roles_means_no_permissions(self):
        principal = Principal(FakeRoleStore())

        assert await principal.get_roles() == []
        assert await principal.get_permissions() == []
        assert await principal.can("manage_users") is False


class TestAttach:
    """Tests for attach_role and attach_all_roles."""

    @pytest.mark.asyncio
    async def test_attach_held_role_does_not_persist(self, principal, store):
        assert await principal.attach_role(Role(slug="admin")) is True
        assert store.persisted == []

    @pytest.mark.asyncio
    async def test_attach_new_role_stages_it(self, principal, store):
        assert await principal.attach_role(EDITOR) is True

        assert store.persisted == [PendingRoles(attach=(EDITOR,))]
        assert await principal.is_role("editor") is True

    @pytest.mark.asyncio
    async def test_attach_is_idempotent(self, principal, store):
        assert await principal.attach_role(EDITOR) is True
        slugs = {role.slug for role in await principal.get_roles()}

        assert await principal.attach_role(EDITOR) is True
        assert {role.slug for role in await principal.get_roles()} == slugs
        assert len(store.persisted) == 1

    @pytest.mark.asyncio
    async def test_attach_all_skips_held_roles(self, principal, store):
        assert await principal.attach_all_roles([ADMIN, EDITOR, VIEWER]) is True

        assert len(store.persisted) == 1
        assert store.persisted[0].slugs == ["editor", "viewer"]

    @pytest.mark.asyncio
    async def test_attach_all_drops_repeats_in_input(self, principal, store):
        await principal.attach_all_roles([EDITOR, Role(id=2, slug="editor")])

        assert store.persisted[0].slugs == ["editor"]

    @pytest.mark.asyncio
    async def test_attach_all_redundant_still_persists_empty_diff(self, principal, store):
        assert await principal.attach_all_roles([ADMIN]) is True

        assert store.persisted == [PendingRoles()]
        assert not store.persisted[0]

    @pytest.mark.asyncio
    async def test_successful_attach_invalidates_both_caches(self, principal, store):
        await principal.get_permissions()

        await principal.attach_role(EDITOR)

        assert principal._roles_cache is UNLOADED
        assert principal._permissions_cache is UNLOADED

    @pytest.mark.asyncio
    async def test_failed_attach_keeps_caches(self, principal, store):
        store.persist_result = False
        await principal.get_permissions()
        cached = principal._roles_cache

        assert await principal.attach_role(EDITOR) is False

        assert principal._roles_cache is cached
        assert isinstance(principal._permissions_cache, Loaded)
        assert store.role_loads == 1

    @pytest.mark.asyncio
    async def test_storage_error_propagates_and_keeps_caches(self, principal, store):
        store.persist_result = SQLAlchemyError("database is gone")
        await principal.get_roles()

        with pytest.raises(SQLAlchemyError):
            await principal.attach_role(EDITOR)

        assert isinstance(principal._roles_cache, Loaded)


class TestDetach:
    """Tests for detach_role and detach_all_roles."""

    @pytest.mark.asyncio
    async def test_detach_role_by_slug(self, principal, store):
        assert await principal.detach_role(Role(id=42, slug="admin")) == 1

        assert store.deleted == [["admin"]]
        assert await principal.has_role(ADMIN) is False

    @pytest.mark.asyncio
    async def test_detach_role_not_held_is_not_an_error(self, principal, store):
        assert await principal.detach_role(VIEWER) == 0
        assert await principal.is_role("admin") is True

    @pytest.mark.asyncio
    async def test_detach_all_roles(self, principal, store):
        assert await principal.can("manage_users") is True

        assert await principal.detach_all_roles() == 1

        assert store.deleted == [None]
        assert await principal.get_roles() == []
        assert await principal.can("manage_users") is False

    @pytest.mark.asyncio
    async def test_failed_detach_keeps_caches(self, principal, store):
        async def broken(principal, slugs=None):
            raise SQLAlchemyError("locked")

        store.delete_role_links = broken
        await principal.get_roles()

        with pytest.raises(SQLAlchemyError):
            await principal.detach_all_roles()

        assert isinstance(principal._roles_cache, Loaded)
        assert await principal.is_role("admin") is True
