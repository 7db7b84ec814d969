from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from choreograph.db.database import get_async_session
from choreograph.api.dependencies.permissions import get_member_project
from choreograph.models.project import Project
from choreograph.models.task import Task
from choreograph.schemas.task import TaskCreate, TaskResponse, TaskUpdate, TaskAssignment
from choreograph.services.column_service import ColumnService
from choreograph.services.project_service import ProjectService
from choreograph.services.task_service import TaskService

router = APIRouter(
    prefix="/projects/{project_id}/tasks",
    tags=["tasks"],
)


async def get_project_task(db: AsyncSession, project: Project, task_id: int) -> Task:
    task = await TaskService.get_in_project(db=db, project_id=project.id, task_id=task_id)
    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found"
        )
    return task


async def validate_column(db: AsyncSession, project: Project, column_id: Optional[int]) -> None:
    if column_id is None:
        return
    column = await ColumnService.get_in_project(db=db, project_id=project.id, column_id=column_id)
    if not column:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Column does not belong to this project"
        )


async def validate_assignee(db: AsyncSession, project: Project, assignee_id: Optional[int]) -> None:
    if assignee_id is None:
        return
    if not await ProjectService.get_user_role(db, project, assignee_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Assignee must be a member of this project"
        )


@router.get("", response_model=List[TaskResponse])
async def get_tasks(
    column_id: Optional[int] = Query(None),
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Get tasks of a project, optionally only those of one column"""
    return await TaskService.get_by_project_id(db=db, project_id=project.id, column_id=column_id)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_create: TaskCreate,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a task; without an explicit order it goes to the end of its column"""
    await validate_column(db, project, task_create.column_id)
    await validate_assignee(db, project, task_create.assignee_id)

    return await TaskService.create(
        db=db,
        project_id=project.id,
        title=task_create.title,
        description=task_create.description,
        priority=task_create.priority,
        column_id=task_create.column_id,
        assignee_id=task_create.assignee_id,
        order=task_create.order,
        deadline=task_create.deadline
    )


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    return await get_project_task(db, project, task_id)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_update: TaskUpdate,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Update a task; moving it to another column without an order appends it there"""
    task = await get_project_task(db, project, task_id)
    update_data = task_update.model_dump(exclude_unset=True)

    # Only deadline and the references may be cleared with null
    for field in ("title", "priority", "order"):
        if field in update_data and update_data[field] is None:
            del update_data[field]

    if "column_id" in update_data:
        await validate_column(db, project, update_data["column_id"])
        if "order" not in update_data and update_data["column_id"] != task.column_id:
            update_data["order"] = await TaskService.get_next_order(db, project.id, update_data["column_id"])
    if "assignee_id" in update_data:
        await validate_assignee(db, project, update_data["assignee_id"])
    if "title" in update_data:
        update_data["title"] = update_data["title"].strip()

    return await TaskService.update(
        db=db,
        project_id=project.id,
        task_id=task.id,
        update_data=update_data
    )


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    task = await get_project_task(db, project, task_id)
    await TaskService.delete(db=db, project_id=project.id, task_id=task.id)


@router.post("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: int,
    assignment: TaskAssignment,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Assign a task to the owner or a member of the project"""
    task = await get_project_task(db, project, task_id)
    await validate_assignee(db, project, assignment.assignee_id)
    return await TaskService.set_assignee(db, project.id, task.id, assignment.assignee_id)


@router.delete("/{task_id}/assign", response_model=TaskResponse)
async def unassign_task(
    task_id: int,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    task = await get_project_task(db, project, task_id)
    return await TaskService.set_assignee(db, project.id, task.id, None)
