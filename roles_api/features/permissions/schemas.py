"""
Pydantic schemas for permission management.

Request and response models for roles, permissions and permission checks.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


def _check_slug(v: str) -> str:
    if not v.replace('_', '').replace('-', '').replace('.', '').isalnum():
        raise ValueError('Slug must contain only alphanumeric characters, underscores, hyphens, and dots')
    return v.lower()


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionBase(BaseModel):
    """Base permission schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    slug: str = Field(..., min_length=1, max_length=100, description="Unique matching key, e.g. 'manage_users'")
    description: Optional[str] = Field(None, max_length=1000)


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission."""

    @field_validator('slug')
    @classmethod
    def slug_format(cls, v: str) -> str:
        return _check_slug(v)


class PermissionResponse(PermissionBase):
    """Schema for permission response."""
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Display name")
    slug: str = Field(..., min_length=1, max_length=50, description="Unique matching key, e.g. 'admin'")
    description: Optional[str] = Field(None, max_length=1000)


class RoleCreate(RoleBase):
    """Schema for creating a new role."""

    @field_validator('slug')
    @classmethod
    def slug_format(cls, v: str) -> str:
        return _check_slug(v)


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with permissions."""
    permissions: List[PermissionResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    permission: str
    allowed: bool
