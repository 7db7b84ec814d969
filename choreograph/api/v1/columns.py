from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from choreograph.db.database import get_async_session
from choreograph.api.dependencies.permissions import get_member_project
from choreograph.core.errors import DuplicateNameError, OrderConflictError
from choreograph.logs import debug_logger
from choreograph.models.column import Column
from choreograph.models.project import Project
from choreograph.services.column_service import ColumnService
from choreograph.services.column_order_service import ColumnOrderService
from choreograph.schemas.column import (
    ColumnCreate,
    ColumnResponse,
    ColumnUpdate,
    ColumnReorderRequest,
    ColumnListResponse
)

router = APIRouter(
    prefix="/projects/{project_id}/columns",
    tags=["columns"],
)


async def get_project_column(
    db: AsyncSession,
    project: Project,
    column_id: int
) -> Column:
    column = await ColumnService.get_in_project(db=db, project_id=project.id, column_id=column_id)
    if not column:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Column not found"
        )
    return column


@router.get("", response_model=List[ColumnResponse])
async def get_columns(
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Get all columns of a project sorted by order"""
    return await ColumnService.get_by_project_id(db=db, project_id=project.id)


@router.patch("/reorder", response_model=ColumnListResponse)
async def reorder_columns(
    reorder: ColumnReorderRequest,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Assign explicit orders to several columns at once"""
    columns = await ColumnOrderService.reorder(
        db,
        project.id,
        [(item.id, item.order) for item in reorder.columns]
    )
    return {"message": "Columns reordered successfully", "columns": columns}


@router.post("/fix-order", response_model=ColumnListResponse)
async def fix_column_order(
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Rewrite column orders of a project to 0..N-1"""
    columns = await ColumnOrderService.repair_ordering(db, project.id)
    return {"message": "Column ordering has been fixed", "columns": columns}


@router.post("", response_model=ColumnResponse, status_code=status.HTTP_201_CREATED)
async def create_column(
    column_create: ColumnCreate,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a column; without an explicit order it is appended at the end"""
    if await ColumnService.find_by_name(db=db, project_id=project.id, name=column_create.name):
        raise DuplicateNameError(column_create.name)

    order = column_create.order
    if order is None:
        order = await ColumnOrderService.get_next_order(db, project.id)
    elif not await ColumnOrderService.is_order_available(db, project.id, order):
        suggested = await ColumnOrderService.get_next_order(db, project.id)
        debug_logger.debug(f"Order {order} taken in project {project.id}, suggesting {suggested}")
        raise OrderConflictError(order, suggested)

    return await ColumnService.create(
        db=db,
        project_id=project.id,
        name=column_create.name,
        order=order
    )


@router.get("/{column_id}", response_model=ColumnResponse)
async def get_column(
    column_id: int,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Get a specific column of a project"""
    return await get_project_column(db, project, column_id)


@router.patch("/{column_id}", response_model=ColumnResponse)
async def update_column(
    column_id: int,
    column_update: ColumnUpdate,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Rename and/or move a column"""
    column = await get_project_column(db, project, column_id)

    if column_update.name is not None:
        duplicate = await ColumnService.find_by_name(
            db=db,
            project_id=project.id,
            name=column_update.name,
            exclude_column_id=column.id
        )
        if duplicate:
            raise DuplicateNameError(column_update.name)

    if column_update.order is not None and not await ColumnOrderService.is_order_available(
        db, project.id, column_update.order, exclude_column_id=column.id
    ):
        suggested = await ColumnOrderService.get_next_order(db, project.id)
        raise OrderConflictError(column_update.order, suggested)

    return await ColumnService.update(
        db=db,
        project_id=project.id,
        column_id=column.id,
        name=column_update.name,
        order=column_update.order
    )


@router.delete("/{column_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_column(
    column_id: int,
    project: Project = Depends(get_member_project),
    db: AsyncSession = Depends(get_async_session),
):
    """Delete a column; its tasks are kept without a column"""
    column = await get_project_column(db, project, column_id)

    deleted = await ColumnService.delete(db=db, project_id=project.id, column_id=column.id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Column not found"
        )
