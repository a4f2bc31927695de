"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roles_api.core.database.engine import create_engine, init_db
from roles_api.features.permissions.models import Permission, Role
from roles_api.features.users.models import User


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file with all tables created."""
    db_engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(bind=db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def seeded(session_factory):
    """
    Roles and permissions:

        admin   -> manage_users, view_reports
        manager -> manage_users, export_reports
        viewer  -> view_reports
        empty   -> (nothing)
        role_manager -> manage_roles, view_roles, view_users
        auditor -> view_roles, view_users

    Users: alice@example.com (no roles), root@example.com (is_admin).
    """
    async with session_factory() as session:
        permissions = {
            slug: Permission(slug=slug, name=slug.replace("_", " ").title())
            for slug in (
                "manage_users", "view_reports", "export_reports", "delete_org",
                "manage_roles", "view_roles", "view_users",
            )
        }
        session.add_all(permissions.values())
        session.add_all([
            Role(slug="admin", name="Admin",
                 permissions=[permissions["manage_users"], permissions["view_reports"]]),
            Role(slug="manager", name="Manager",
                 permissions=[permissions["manage_users"], permissions["export_reports"]]),
            Role(slug="viewer", name="Viewer", permissions=[permissions["view_reports"]]),
            Role(slug="empty", name="Empty"),
            Role(slug="role_manager", name="Role manager", permissions=[
                permissions["manage_roles"], permissions["view_roles"], permissions["view_users"],
            ]),
            Role(slug="auditor", name="Auditor",
                 permissions=[permissions["view_roles"], permissions["view_users"]]),
            User(email="alice@example.com", name="Alice"),
            User(email="root@example.com", name="Root", is_admin=True),
        ])
        await session.commit()


@pytest.fixture
async def session(session_factory, seeded):
    async with session_factory() as db_session:
        yield db_session
