"""
User feature routes, including role assignment.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roles_api.core.database.engine import get_db
from roles_api.features.permissions.models import Role
from roles_api.features.permissions.schemas import RoleResponse
from roles_api.features.users.models import User
from roles_api.features.users.schemas import (
    AttachRoles,
    RoleChangeResponse,
    UserResponse,
    UserRolesResponse,
    UserWithAccess,
)
from roles_api.features.users.dependencies import get_current_user
from roles_api.features.permissions.dependencies import require_any_permission, require_permission
from roles_api.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])

# Reading users and their roles is open to anyone who may view or manage them
USER_READ_PERMISSIONS = ["view_users", "manage_roles"]


async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


async def role_change_response(user: User, success: bool, removed: int | None = None) -> RoleChangeResponse:
    return RoleChangeResponse(
        success=success,
        roles=[role.slug for role in await user.get_roles()],
        removed=removed,
    )


@router.get("/me", response_model=UserWithAccess)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile with roles and permissions."""
    profile = UserResponse.model_validate(user)
    return UserWithAccess(
        **profile.model_dump(),
        roles=[role.slug for role in await user.get_roles()],
        permissions=[permission.slug for permission in await user.get_permissions()],
    )


@router.get("/", response_model=list[UserResponse])
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_any_permission(USER_READ_PERMISSIONS))],
    skip: int = 0,
    limit: int = 50
):
    """List active users (requires view_users or manage_roles)."""
    result = await db.execute(
        select(User)
        .where(User.is_active == True)  # noqa: E712
        .order_by(User.id)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()


# Role assignment
@router.get("/{user_id}/roles", response_model=UserRolesResponse)
async def list_user_roles(
    user_id: int,
    admin: Annotated[User, Depends(require_any_permission(USER_READ_PERMISSIONS))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List the roles a user holds."""
    user = await get_user_or_404(db, user_id)
    roles = [RoleResponse.model_validate(role) for role in await user.get_roles()]
    return UserRolesResponse(user_id=user.id, roles=roles)


@router.post("/{user_id}/roles", response_model=RoleChangeResponse)
async def attach_user_roles(
    user_id: int,
    payload: AttachRoles,
    admin: Annotated[User, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Attach roles to a user by slug. Roles already held are skipped."""
    user = await get_user_or_404(db, user_id)

    result = await db.execute(select(Role).where(Role.slug.in_(payload.roles)))
    roles = result.scalars().all()
    missing = set(payload.roles) - {role.slug for role in roles}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Role not found: {', '.join(sorted(missing))}"
        )

    if len(roles) == 1:
        success = await user.attach_role(roles[0])
    else:
        success = await user.attach_all_roles(roles)

    log.info("User %s attached roles %s to user %s", admin.id, payload.roles, user.id)
    return await role_change_response(user, success)


@router.delete("/{user_id}/roles/{slug}", response_model=RoleChangeResponse)
async def detach_user_role(
    user_id: int,
    slug: str,
    admin: Annotated[User, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Detach one role from a user. Detaching a role the user lacks succeeds."""
    user = await get_user_or_404(db, user_id)

    result = await db.execute(select(Role).where(Role.slug == slug))
    role = result.scalars().first()
    if role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")

    removed = await user.detach_role(role)
    log.info("User %s detached role %s from user %s", admin.id, slug, user.id)
    return await role_change_response(user, True, removed)


@router.delete("/{user_id}/roles", response_model=RoleChangeResponse)
async def detach_all_user_roles(
    user_id: int,
    admin: Annotated[User, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Detach every role from a user."""
    user = await get_user_or_404(db, user_id)
    removed = await user.detach_all_roles()
    log.info("User %s detached all roles from user %s", admin.id, user.id)
    return await role_change_response(user, True, removed)
