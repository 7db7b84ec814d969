"""Repair the column ordering of every project (or of a single one).

Usage::

    python -m choreograph.scripts.fix_column_ordering [--project-id ID]
"""
import argparse
import asyncio
import sys
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from choreograph.db import async_session_factory
from choreograph.logs import api_logger
from choreograph.models.project import Project
from choreograph.services.column_order_service import ColumnOrderService


async def fix_column_ordering(
    session_factory: async_sessionmaker = async_session_factory,
    project_id: Optional[int] = None
) -> int:
    """Run the repair on each project; returns how many projects had misplaced columns"""
    async with session_factory() as db:
        query = select(Project.id, Project.name).order_by(Project.id)
        if project_id is not None:
            query = query.where(Project.id == project_id)
        projects = (await db.execute(query)).all()
        api_logger.info(f"Found {len(projects)} projects")

        fixed = 0
        for pid, name in projects:
            before = [
                (column.id, column.order)
                for column in await ColumnOrderService.get_ordered_columns(db, pid)
            ]
            after = [
                (column.id, column.order)
                for column in await ColumnOrderService.repair_ordering(db, pid)
            ]
            if before != after:
                fixed += 1
                api_logger.info(f'Column ordering fixed for project "{name}" ({pid})')
            else:
                api_logger.info(f'Project "{name}" ({pid}) is already in order')

    return fixed


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(
        description="Rewrite column orders of projects to 0..N-1"
    )
    ap.add_argument(
        "--project-id", type=int, default=None,
        help="Only repair this project (default: all projects)",
    )
    args = ap.parse_args(argv)

    try:
        fixed = asyncio.run(fix_column_ordering(project_id=args.project_id))
    except Exception as e:
        api_logger.error(f"Error fixing column ordering: {e}")
        return 1

    api_logger.info(f"Column ordering fix completed, {fixed} projects changed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
