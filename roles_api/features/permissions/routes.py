"""
Role and permission management API routes.

Roles and permissions are addressed by slug.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from roles_api.core.database.engine import get_db
from roles_api.features.users.dependencies import get_current_user
from roles_api.features.users.models import User
from roles_api.features.permissions.models import Permission, Role
from roles_api.features.permissions.schemas import (
    PermissionCreate,
    PermissionResponse,
    RoleCreate,
    RoleResponse,
    RoleWithPermissions,
    PermissionCheckResponse,
)
from roles_api.features.permissions.dependencies import require_permission
from roles_api.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def get_role_by_slug(db: AsyncSession, slug: str) -> Role:
    result = await db.execute(select(Role).where(Role.slug == slug))
    role = result.scalars().first()
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


async def get_permission_by_slug(db: AsyncSession, slug: str) -> Permission:
    result = await db.execute(select(Permission).where(Permission.slug == slug))
    permission = result.scalars().first()
    if not permission:
        raise HTTPException(status_code=404, detail="Permission not found")
    return permission


# ============================================================================
# Permission Routes
# ============================================================================

@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission: PermissionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("manage_roles"))
):
    """Create a new permission (requires manage_roles)."""
    try:
        db_permission = Permission(**permission.model_dump())
        db.add(db_permission)
        await db.commit()
        await db.refresh(db_permission)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Permission with this slug already exists"
        )

    log.info("User %s created permission %s", current_user.id, db_permission.slug)
    return db_permission


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_roles"))
):
    """List all permissions (requires view_roles)."""
    stmt = select(Permission).order_by(Permission.id).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/check/{slug}", response_model=PermissionCheckResponse)
async def check_permission(
    slug: str,
    current_user: User = Depends(get_current_user)
):
    """Check whether the current user holds a permission."""
    return PermissionCheckResponse(permission=slug, allowed=await current_user.can(slug))


# ============================================================================
# Role Routes
# ============================================================================

@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("manage_roles"))
):
    """Create a new role (requires manage_roles)."""
    try:
        db_role = Role(**role.model_dump())
        db.add(db_role)
        await db.commit()
        await db.refresh(db_role)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this slug already exists"
        )

    log.info("User %s created role %s", current_user.id, db_role.slug)
    return db_role


@router.get("/roles", response_model=List[RoleWithPermissions])
async def list_roles(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_roles"))
):
    """List all roles with their permissions (requires view_roles)."""
    stmt = select(Role).order_by(Role.id).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/roles/{slug}", response_model=RoleWithPermissions)
async def get_role(
    slug: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_roles"))
):
    """Get a role and its permissions."""
    return await get_role_by_slug(db, slug)


@router.post("/roles/{slug}/permissions/{permission_slug}", response_model=RoleWithPermissions)
async def grant_permission_to_role(
    slug: str,
    permission_slug: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("manage_roles"))
):
    """Grant a permission to a role (requires manage_roles). Granting twice is a no-op."""
    role = await get_role_by_slug(db, slug)
    permission = await get_permission_by_slug(db, permission_slug)

    if permission not in role.permissions:
        role.permissions.append(permission)
        await db.commit()
        log.info("User %s granted %s to role %s", current_user.id, permission_slug, slug)

    await db.refresh(role, ["permissions"])
    return role


@router.delete("/roles/{slug}/permissions/{permission_slug}", response_model=RoleWithPermissions)
async def revoke_permission_from_role(
    slug: str,
    permission_slug: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("manage_roles"))
):
    """Revoke a permission from a role (requires manage_roles)."""
    role = await get_role_by_slug(db, slug)
    permission = await get_permission_by_slug(db, permission_slug)

    if permission in role.permissions:
        role.permissions.remove(permission)
        await db.commit()
        log.info("User %s revoked %s from role %s", current_user.id, permission_slug, slug)

    await db.refresh(role, ["permissions"])
    return role
