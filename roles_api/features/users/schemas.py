"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from roles_api.features.permissions.schemas import RoleResponse


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: int
    email: str
    name: str
    is_active: bool
    is_admin: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserWithAccess(UserResponse):
    """User with the slugs of the roles it holds and the permissions they grant."""
    roles: list[str] = []
    permissions: list[str] = []


class UserRolesResponse(BaseModel):
    user_id: int
    roles: list[RoleResponse] = []


class AttachRoles(BaseModel):
    """Schema for attaching roles to a user by slug."""
    roles: list[str] = Field(..., min_length=1, description="Role slugs")


class RoleChangeResponse(BaseModel):
    success: bool
    roles: list[str] = []
    # assignments deleted by a detach
    removed: int | None = None
