"""
FastAPI dependencies for route protection.

Users with the is_admin flag pass every check; everyone else needs a held
role (require_role) or a permission granted by one (require_permission).
"""
from fastapi import Depends, HTTPException, status

from roles_api.features.users.dependencies import get_current_user
from roles_api.features.users.models import User
from roles_api.utils import get_logger


log = get_logger(__name__)


def require_role(slug: str):
    """
    FastAPI dependency to require a role.

    Usage:
        @router.get("/reports")
        async def reports(user: User = Depends(require_role("manager"))):
            ...

    Raises:
        HTTPException: 403 if the user does not hold the role
    """
    async def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.is_admin or await current_user.is_role(slug):
            return current_user

        log.debug("User %s denied: missing role %s", current_user.id, slug)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role required: {slug}"
        )

    return role_dependency


def require_permission(slug: str):
    """
    FastAPI dependency to require a permission granted by any held role.

    Usage:
        @router.post("/roles")
        async def create_role(user: User = Depends(require_permission("manage_roles"))):
            ...

    Raises:
        HTTPException: 403 if no held role grants the permission
    """
    async def permission_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.is_admin or await current_user.can(slug):
            return current_user

        log.debug("User %s denied: missing permission %s", current_user.id, slug)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: {slug}"
        )

    return permission_dependency


def require_any_permission(slugs: list[str]):
    """
    FastAPI dependency to require ANY of the given permissions.

    Usage:
        @router.get("/users")
        async def list_users(user: User = Depends(require_any_permission(["view_users", "manage_users"]))):
            ...
    """
    async def permission_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.is_admin:
            return current_user
        for slug in slugs:
            if await current_user.can(slug):
                return current_user

        log.debug("User %s denied: needs one of %s", current_user.id, slugs)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: requires one of {slugs}"
        )

    return permission_dependency
