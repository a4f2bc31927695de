"""
Database engine configuration and session management.

SQLite through aiosqlite by default; point DATABASE_URL at
postgresql+asyncpg://... to run against PostgreSQL.
"""
from collections.abc import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from roles_api.core import config


def create_engine(url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite connections get foreign keys switched on so that pivot rows
    follow their role/user on delete.
    """
    is_sqlite = url.startswith("sqlite")
    if is_sqlite and ":memory:" not in url:
        # NullPool for file-backed SQLite to avoid connection pool issues
        kwargs.setdefault("poolclass", NullPool)
    new_engine = create_async_engine(url, echo=False, future=True, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = create_engine(config.SQLALCHEMY_DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Usage in FastAPI routes:
        @router.get("/roles")
        async def list_roles(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Role))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None):
    """
    Create all tables.
    Called on application startup and by the seed script.
    """
    from roles_api.core.database.base import Base

    # Import all models to ensure they're registered with SQLAlchemy
    from roles_api.features.users.models import User  # noqa: F401
    from roles_api.features.permissions.models import Permission, Role  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
