"""
User model. Users are the principals that hold roles.
"""
from datetime import datetime
from sqlalchemy import String, Boolean
from sqlalchemy.ext.asyncio import async_object_session
from sqlalchemy.orm import Mapped, mapped_column

from roles_api.core.database.base import Base, TimestampMixin
from roles_api.features.permissions.mixin import HasRolesAndPermissions
from roles_api.features.permissions.store import RoleStore, RoleStoreUnavailable, SQLAlchemyRoleStore


class User(Base, TimestampMixin, HasRolesAndPermissions):
    """
    User model representing authenticated users.

    Role checks go through the HasRolesAndPermissions methods
    (get_roles, is_role, can, attach_role, ...), which use the session the
    instance is attached to.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Track last login
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def get_role_store(self) -> RoleStore:
        session = async_object_session(self)
        if session is None:
            raise RoleStoreUnavailable(f"{self!r} is not attached to a database session")
        return SQLAlchemyRoleStore(session)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
