from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from choreograph.schemas.auth import UserResponse


class ProjectBase(BaseModel):
    """Base schema for project data"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


class ProjectCreate(ProjectBase):
    """Schema for project creation"""
    pass


class ProjectUpdate(BaseModel):
    """Schema for project update"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


class ProjectResponse(ProjectBase):
    """Schema for project response"""
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectMemberResponse(UserResponse):
    is_owner: bool = False


class ProjectDetailResponse(ProjectResponse):
    """Schema for a single project with its members"""
    members: List[ProjectMemberResponse] = []


class AddMemberRequest(BaseModel):
    """Schema for adding a user to a project by email"""
    email: EmailStr


class UserProjectsSummary(BaseModel):
    """Projects of the current user split by ownership"""
    total: int = 0
    owned: int = 0
    member: int = 0
    projects: List[ProjectResponse] = []
