from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from choreograph.db.database import get_async_session
from choreograph.schemas.auth import UserResponse, UserUpdate
from choreograph.schemas.project import UserProjectsSummary
from choreograph.services.user_service import UserService
from choreograph.services.project_service import ProjectService
from choreograph.api.dependencies.auth import get_current_user
from choreograph.models.user import User

# Create router
router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    current_user: User = Depends(get_current_user)
):
    """
    Get the profile of the current user
    """
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """
    Update the profile of the current user
    """
    updated_user = await UserService.update(db, current_user.id, name=user_data.name)
    if not updated_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return updated_user


@router.get("/profile/projects", response_model=UserProjectsSummary)
async def get_profile_projects(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """
    Projects of the current user with owned/member counts
    """
    projects = await ProjectService.get_projects_by_user(db=db, user_id=current_user.id)
    owned = sum(1 for project in projects if project.owner_id == current_user.id)
    return {
        "total": len(projects),
        "owned": owned,
        "member": len(projects) - owned,
        "projects": projects
    }


@router.get("/search/{query}", response_model=List[UserResponse])
async def search_users(
    query: str = Path(..., min_length=2),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """
    Find other users by name or email, e.g. to invite them to a project
    """
    return await UserService.search(db, query, exclude_user_id=current_user.id)
