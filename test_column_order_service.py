import pytest
from unittest.mock import AsyncMock, patch

from choreograph.core.errors import DuplicateOrderError, InvalidColumnIdsError
from choreograph.logs import debug_logger
from choreograph.services.column_order_service import ColumnOrderService
from choreograph.services.column_service import ColumnService


def orders_by_id(columns):
    return {column.id: column.order for column in columns}


class TestOrderAllocator:
    """Тесты выдачи и проверки свободных значений order"""

    @pytest.mark.asyncio
    async def test_next_order_empty_project(self, db, project):
        """Для проекта без колонок следующий order равен 0"""
        assert await ColumnOrderService.get_next_order(db, project.id) == 0

    @pytest.mark.asyncio
    async def test_next_order_after_gaps(self, db, project, add_columns):
        """Следующий order - максимум плюс один, пропуски не заполняются"""
        await add_columns(project.id, [0, 2, 5])

        assert await ColumnOrderService.get_next_order(db, project.id) == 6

    @pytest.mark.asyncio
    async def test_next_order_is_per_project(self, db, project, add_columns):
        """Колонки другого проекта не влияют на результат"""
        await add_columns(project.id, [0, 1, 2])

        assert await ColumnOrderService.get_next_order(db, project.id + 1) == 0

    @pytest.mark.asyncio
    async def test_order_taken(self, db, project, add_columns):
        await add_columns(project.id, [0, 2])

        assert await ColumnOrderService.is_order_available(db, project.id, 2) is False
        assert await ColumnOrderService.is_order_available(db, project.id, 1) is True

    @pytest.mark.asyncio
    async def test_order_available_when_excluding_holder(self, db, project, add_columns):
        """Колонка не конфликтует сама с собой при обновлении"""
        first, holder = await add_columns(project.id, [0, 2])

        assert await ColumnOrderService.is_order_available(
            db, project.id, 2, exclude_column_id=holder.id
        ) is True
        assert await ColumnOrderService.is_order_available(
            db, project.id, 2, exclude_column_id=first.id
        ) is False


class TestReorder:
    """Тесты массового изменения порядка колонок"""

    @pytest.mark.asyncio
    async def test_swap_three_columns(self, db, project, add_columns):
        """[A:0, B:1, C:2] -> [A:2, B:0, C:1] без нарушения уникальности"""
        a, b, c = await add_columns(project.id, [0, 1, 2])

        result = await ColumnOrderService.reorder(
            db, project.id, [(a.id, 2), (b.id, 0), (c.id, 1)]
        )

        assert orders_by_id(result) == {a.id: 2, b.id: 0, c.id: 1}
        assert [column.id for column in result] == [b.id, c.id, a.id]

    @pytest.mark.asyncio
    async def test_unlisted_columns_appended(self, db, project, add_columns):
        """Колонки, не попавшие в запрос, встают после запрошенных в прежнем порядке"""
        a, b, c = await add_columns(project.id, [0, 1, 2])

        result = await ColumnOrderService.reorder(db, project.id, [(c.id, 0)])

        assert orders_by_id(result) == {c.id: 0, a.id: 1, b.id: 2}
        assert all(column.order >= 0 for column in result)

    @pytest.mark.asyncio
    async def test_invalid_ids_rejected(self, db, project, add_columns):
        """Неизвестные id - ошибка и никаких изменений"""
        a, b = await add_columns(project.id, [0, 1])

        with pytest.raises(InvalidColumnIdsError) as exc_info:
            await ColumnOrderService.reorder(db, project.id, [(a.id, 1), (9999, 0)])

        assert exc_info.value.to_dict()["invalidIds"] == [9999]
        columns = await ColumnOrderService.get_ordered_columns(db, project.id)
        assert orders_by_id(columns) == {a.id: 0, b.id: 1}

    @pytest.mark.asyncio
    async def test_client_errors_not_logged_as_failures(self, db, project, add_columns):
        await add_columns(project.id, [0])

        with patch.object(debug_logger, "log_exception") as mock_log_exception:
            with pytest.raises(InvalidColumnIdsError):
                await ColumnOrderService.reorder(db, project.id, [(9999, 0)])

        mock_log_exception.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_request_writes_nothing(self, db, project, add_columns):
        """Пустой список - никаких записей, возвращаются текущие колонки"""
        a, b = await add_columns(project.id, [0, 1])

        with patch.object(ColumnOrderService, "_apply_atomically", new=AsyncMock()) as mock_apply:
            result = await ColumnOrderService.reorder(db, project.id, [])

        mock_apply.assert_not_called()
        assert orders_by_id(result) == {a.id: 0, b.id: 1}

    @pytest.mark.asyncio
    async def test_column_of_other_project_is_invalid(self, db, project, add_columns):
        (foreign,) = await add_columns(project.id + 1, [0])
        await add_columns(project.id, [0])

        with pytest.raises(InvalidColumnIdsError):
            await ColumnOrderService.reorder(db, project.id, [(foreign.id, 3)])

    @pytest.mark.asyncio
    async def test_duplicate_orders_roll_back(self, db, project, add_columns):
        """Нарушение уникальности откатывает все фазы целиком"""
        a, b = await add_columns(project.id, [0, 1])

        with pytest.raises(DuplicateOrderError) as exc_info:
            await ColumnOrderService.reorder(db, project.id, [(a.id, 5), (b.id, 5)])

        assert exc_info.value.status_code == 409
        assert exc_info.value.to_dict()["suggestedOrder"] == 2
        columns = await ColumnOrderService.get_ordered_columns(db, project.id)
        assert orders_by_id(columns) == {a.id: 0, b.id: 1}


class TestRepairOrdering:
    """Тесты восстановления порядка 0..N-1"""

    @pytest.mark.asyncio
    async def test_gaps_compacted(self, db, project, add_columns):
        a, b, c = await add_columns(project.id, [0, 2, 5])

        result = await ColumnOrderService.repair_ordering(db, project.id)

        assert orders_by_id(result) == {a.id: 0, b.id: 1, c.id: 2}

    @pytest.mark.asyncio
    async def test_idempotent(self, db, project, add_columns):
        """Повторный запуск ничего не записывает и дает тот же результат"""
        await add_columns(project.id, [3, 7, 1])

        first = orders_by_id(await ColumnOrderService.repair_ordering(db, project.id))

        with patch.object(ColumnOrderService, "_set_order", new_callable=AsyncMock) as mock_set_order:
            second = orders_by_id(await ColumnOrderService.repair_ordering(db, project.id))

        assert first == second
        mock_set_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_leftover_negative_orders(self, db, project, add_columns):
        """Отрицательные значения после прерванного reorder тоже исправляются"""
        a, b, c = await add_columns(project.id, [-1001, -1000, 3])

        result = await ColumnOrderService.repair_ordering(db, project.id)

        assert orders_by_id(result) == {a.id: 0, b.id: 1, c.id: 2}

    @pytest.mark.asyncio
    async def test_empty_project(self, db, project):
        assert await ColumnOrderService.repair_ordering(db, project.id) == []


class TestUniqueness:
    """Уникальность order сохраняется после любой последовательности операций"""

    @pytest.mark.asyncio
    async def test_orders_unique_after_mixed_operations(self, db, project):
        todo = await ColumnService.create(db, project.id, "Todo", 0)
        doing = await ColumnService.create(db, project.id, "Doing", 4)
        done = await ColumnService.create(db, project.id, "Done", 9)

        await ColumnService.update(db, project.id, doing.id, order=2)
        await ColumnOrderService.reorder(db, project.id, [(done.id, 0), (todo.id, 1)])
        await ColumnOrderService.repair_ordering(db, project.id)

        columns = await ColumnOrderService.get_ordered_columns(db, project.id)
        orders = [column.order for column in columns]
        assert len(set(orders)) == len(orders)
        assert orders_by_id(columns) == {done.id: 0, todo.id: 1, doing.id: 2}

    @pytest.mark.asyncio
    async def test_taken_order_on_insert_is_duplicate_order(self, db, project, add_columns):
        """Гонка при создании: база отклоняет запись, клиент получает новый suggestedOrder"""
        await add_columns(project.id, [0, 1])

        with pytest.raises(DuplicateOrderError) as exc_info:
            await ColumnService.create(db, project.id, "Late", 1)

        body = exc_info.value.to_dict()
        assert body["error"] == "DUPLICATE_ORDER"
        assert body["conflictingOrder"] == 1
        assert body["suggestedOrder"] == 2
        assert len(await ColumnOrderService.get_ordered_columns(db, project.id)) == 2

    @pytest.mark.asyncio
    async def test_taken_order_on_update_is_duplicate_order(self, db, project, add_columns):
        first, second = await add_columns(project.id, [0, 1])

        with pytest.raises(DuplicateOrderError):
            await ColumnService.update(db, project.id, second.id, order=0)

        columns = await ColumnOrderService.get_ordered_columns(db, project.id)
        assert orders_by_id(columns) == {first.id: 0, second.id: 1}
