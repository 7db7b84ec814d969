import pytest
from unittest.mock import AsyncMock, patch

from choreograph.scripts import fix_column_ordering as script
from choreograph.services.column_order_service import ColumnOrderService


class TestFixColumnOrderingScript:
    """Тесты скрипта восстановления порядка колонок"""

    @pytest.mark.asyncio
    async def test_repairs_every_project(self, session_factory, db, project, add_columns):
        await add_columns(project.id, [2, 4, 9])

        fixed = await script.fix_column_ordering(session_factory)

        assert fixed == 1
        columns = await ColumnOrderService.get_ordered_columns(db, project.id)
        assert [column.order for column in columns] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, session_factory, project, add_columns):
        await add_columns(project.id, [0, 1, 2])

        assert await script.fix_column_ordering(session_factory) == 0
        assert await script.fix_column_ordering(session_factory, project_id=project.id) == 0

    def test_main_reports_failure(self):
        with patch.object(script, "fix_column_ordering", new=AsyncMock(side_effect=RuntimeError("db down"))):
            assert script.main([]) == 1

    def test_main_passes_project_id(self):
        with patch.object(script, "fix_column_ordering", new=AsyncMock(return_value=0)) as mock_fix:
            assert script.main(["--project-id", "5"]) == 0

        mock_fix.assert_called_once_with(project_id=5)
