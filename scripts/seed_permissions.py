"""
Seed script to populate default permissions and roles.

Run this script after database initialization to create:
- Default permissions
- Default roles with their permissions
- An admin user holding the admin role, when ADMIN_EMAIL is set

Safe to run repeatedly: existing rows are matched by slug and skipped.

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roles_api.core import config
from roles_api.core.database.engine import AsyncSessionLocal, init_db
from roles_api.features.permissions.models import Permission, Role
from roles_api.features.users.models import User
from roles_api.utils import get_logger


log = get_logger(__name__)


DEFAULT_PERMISSIONS = [
    # (slug, name, description)
    ("manage_users", "Manage users", "Create, update and deactivate users"),
    ("view_users", "View users", "View user information"),
    ("manage_roles", "Manage roles", "Create roles and assign them to users"),
    ("view_roles", "View roles", "View roles and their permissions"),
    ("view_reports", "View reports", "View reports"),
    ("export_reports", "Export reports", "Export reports"),
    ("delete_org", "Delete organization", "Delete the organization"),
]


DEFAULT_ROLES = {
    "admin": {
        "name": "Administrator",
        "description": "Administrator with all permissions",
        "permissions": "ALL",
    },
    "manager": {
        "name": "Manager",
        "description": "Manages users and reads reports",
        "permissions": ["manage_users", "view_users", "view_roles", "view_reports", "export_reports"],
    },
    "viewer": {
        "name": "Viewer",
        "description": "Read-only access",
        "permissions": ["view_users", "view_roles", "view_reports"],
    },
}


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create default permissions.

    Returns:
        Dictionary mapping permission slugs to Permission objects
    """
    log.info("Creating default permissions...")
    permissions_map = {}

    for slug, name, description in DEFAULT_PERMISSIONS:
        result = await db.execute(select(Permission).where(Permission.slug == slug))
        existing = result.scalars().first()

        if existing:
            log.debug("Permission '%s' already exists, skipping", slug)
            permissions_map[slug] = existing
            continue

        permission = Permission(slug=slug, name=name, description=description)
        db.add(permission)
        permissions_map[slug] = permission
        log.info("Created permission: %s", slug)

    await db.commit()
    return permissions_map


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]) -> None:
    """
    Create default roles and assign permissions.
    """
    log.info("Creating default roles...")

    for slug, role_config in DEFAULT_ROLES.items():
        result = await db.execute(select(Role).where(Role.slug == slug))
        if result.scalars().first():
            log.debug("Role '%s' already exists, skipping", slug)
            continue

        role = Role(slug=slug, name=role_config["name"], description=role_config["description"])

        if role_config["permissions"] == "ALL":
            role.permissions = list(permissions_map.values())
        else:
            granted = []
            for perm_slug in role_config["permissions"]:
                if perm_slug in permissions_map:
                    granted.append(permissions_map[perm_slug])
                else:
                    log.warning("Permission '%s' not found for role '%s'", perm_slug, slug)
            role.permissions = granted

        db.add(role)
        log.info("Created role '%s' with %d permissions", slug, len(role.permissions))

    await db.commit()


async def seed_admin(db: AsyncSession, email: str) -> None:
    """Ensure a user with this email exists and holds the admin role."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(email=email, name="Administrator")
        db.add(user)
        await db.commit()
        log.info("Created admin user %s", email)

    result = await db.execute(select(Role).where(Role.slug == "admin"))
    if await user.attach_role(result.scalars().one()):
        log.info("User %s holds the admin role", email)
    else:
        log.error("Could not attach the admin role to %s", email)


async def main():
    """Main function to seed permissions and roles."""
    log.info("Starting permission seeding...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            permissions_map = await seed_permissions(db)
            await seed_roles(db, permissions_map)
            if config.ADMIN_EMAIL:
                await seed_admin(db, config.ADMIN_EMAIL)
        except Exception as e:
            log.error("Error seeding permissions: %s", e, exc_info=True)
            await db.rollback()
            raise

    log.info("Permission seeding completed successfully!")
    for slug, role_config in DEFAULT_ROLES.items():
        log.info("  - %s: %s", slug, role_config["description"])


if __name__ == "__main__":
    asyncio.run(main())
