"""Shared test helpers."""

from sqlalchemy import select

from roles_api.features.permissions.models import Role
from roles_api.features.users.models import User


async def get_user(session, email: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one()


async def get_role(session, slug: str) -> Role:
    result = await session.execute(select(Role).where(Role.slug == slug))
    return result.scalar_one()
