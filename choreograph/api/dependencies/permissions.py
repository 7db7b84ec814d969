from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from choreograph.api.dependencies.auth import get_current_user
from choreograph.db.database import get_async_session
from choreograph.models.user import User
from choreograph.models.project import Project, ProjectRole
from choreograph.services.project_service import ProjectService


async def check_project_permissions(
    db: AsyncSession,
    project: Project,
    user_id: int,
    required_roles: list[ProjectRole]
) -> bool:
    """
    Check if a user has the required role for a project

    Args:
        db: Database session
        project: Project to check
        user_id: User ID
        required_roles: List of roles that have permission for the operation

    Returns:
        True if the user has permission, otherwise raises HTTPException
    """
    user_role = await ProjectService.get_user_role(db, project, user_id)

    if not user_role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have access to this project"
        )

    # Owner always has all permissions
    if user_role == ProjectRole.OWNER:
        return True

    if user_role not in required_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Operation not allowed with your role: {user_role.value}"
        )

    return True


async def check_project_access(
    project_id: int,
    db: AsyncSession,
    current_user: User,
    require_owner: bool = False
) -> Project:
    """
    Load a project and make sure the user may work with it

    Args:
        project_id: ID of the project to check
        db: Database session
        current_user: Current authenticated user
        require_owner: If True only the owner passes, otherwise owner and members
    """
    project = await ProjectService.get_by_id(db=db, project_id=project_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )

    required_roles = [ProjectRole.OWNER] if require_owner else [ProjectRole.OWNER, ProjectRole.MEMBER]

    await check_project_permissions(
        db=db,
        project=project,
        user_id=current_user.id,
        required_roles=required_roles
    )

    return project


# Resolved before the request body is validated, so a caller without
# access gets 403 even for a malformed payload
async def get_member_project(
    project_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
) -> Project:
    return await check_project_access(project_id, db, current_user)


async def get_owned_project(
    project_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
) -> Project:
    return await check_project_access(project_id, db, current_user, require_owner=True)
