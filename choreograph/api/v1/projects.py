from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from choreograph.db.database import get_async_session
from choreograph.api.dependencies.auth import get_current_user
from choreograph.api.dependencies.permissions import get_member_project, get_owned_project
from choreograph.models.user import User
from choreograph.models.project import Project
from choreograph.schemas.project import (
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
    ProjectDetailResponse,
    ProjectMemberResponse,
    AddMemberRequest
)
from choreograph.services.project_service import ProjectService
from choreograph.services.user_service import UserService
from choreograph.logs import debug_logger

router = APIRouter(
    prefix="/projects",
    tags=["projects"],
)


async def build_member_list(db: AsyncSession, project: Project) -> List[dict]:
    members = await ProjectService.get_members(db=db, project=project)
    return [
        {
            "id": member.id,
            "email": member.email,
            "name": member.name,
            "is_owner": member.id == project.owner_id
        }
        for member in members
    ]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_create: ProjectCreate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Create a new project owned by the current user"""
    return await ProjectService.create(
        db=db,
        name=project_create.name,
        description=project_create.description,
        owner_id=current_user.id,
    )


@router.get("", response_model=List[ProjectResponse])
async def get_projects(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Get all projects the current user owns or is a member of"""
    return await ProjectService.get_projects_by_user(db=db, user_id=current_user.id)


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Get a project together with its members"""
    response = ProjectResponse.model_validate(project).model_dump()
    response["members"] = await build_member_list(db, project)
    return response


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_update: ProjectUpdate,
    project: Project = Depends(get_owned_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Update name and description of a project (owner only)"""
    return await ProjectService.update(
        db=db,
        project_id=project.id,
        name=project_update.name,
        description=project_update.description
    )


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project: Project = Depends(get_owned_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Delete a project with its columns and tasks (owner only)"""
    deleted = await ProjectService.delete(db=db, project_id=project.id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    debug_logger.info(f"Project {project.id} deleted")


@router.get("/{project_id}/members", response_model=List[ProjectMemberResponse])
async def get_project_members(
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """List owner and members of a project"""
    return await build_member_list(db, project)


@router.post(
    "/{project_id}/members",
    response_model=List[ProjectMemberResponse],
    status_code=status.HTTP_201_CREATED
)
async def add_project_member(
    member_request: AddMemberRequest,
    project: Project = Depends(get_owned_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Add a registered user to a project by email (owner only)"""
    user = await UserService.get_by_email(db, member_request.email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if user.id == project.owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already a member of this project"
        )

    added = await ProjectService.add_member(db=db, project_id=project.id, user_id=user.id)
    if not added:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already a member of this project"
        )

    debug_logger.info(f"User {user.id} added to project {project.id}")
    return await build_member_list(db, project)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_project_member(
    user_id: int,
    project: Project = Depends(get_owned_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Remove a member from a project (owner only)"""
    if user_id == project.owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The project owner cannot be removed"
        )

    removed = await ProjectService.remove_member(db=db, project_id=project.id, user_id=user_id)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User is not a member of this project"
        )
