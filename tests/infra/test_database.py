# tests/infra/test_database.py
"""
Тесты для менеджера базы данных.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.infra.database import (
    SCHEMA_LOCK_KEY,
    DatabaseManager,
    _init_schema,
    retry_on_connection_error,
)


class TestRetryOnConnectionError:
    """Тесты для декоратора retry_on_connection_error."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        """Проверяет успешное выполнение с первой попытки."""
        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def successful_func():
            return "success"

        assert await successful_func() == "success"

    @pytest.mark.asyncio
    async def test_retry_on_connection_error(self) -> None:
        """Проверяет повторную попытку при обрыве соединения."""
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def failing_then_success():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionRefusedError("Connection refused")
            return "success"

        result = await failing_then_success()

        assert result == "success"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_max_attempts_exceeded(self) -> None:
        @retry_on_connection_error(max_attempts=2, delay=0.01)
        async def always_failing():
            raise ConnectionRefusedError("Connection refused")

        with pytest.raises(ConnectionRefusedError):
            await always_failing()

    @pytest.mark.asyncio
    async def test_sql_error_not_retried(self) -> None:
        """Ошибки, не связанные с соединением, пробрасываются сразу."""
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def raises_value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("constraint violated")

        with pytest.raises(ValueError):
            await raises_value_error()

        assert call_count == 1


class TestDatabaseManager:
    """Тесты для DatabaseManager."""

    @pytest.fixture
    def db_manager(self) -> DatabaseManager:
        # Сбрасываем синглтон для каждого теста
        DatabaseManager._instance = None
        DatabaseManager._pool = None
        return DatabaseManager()

    @staticmethod
    def _pool_with(conn: AsyncMock) -> MagicMock:
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = conn
        pool.acquire.return_value.__aexit__.return_value = False
        return pool

    def test_singleton(self, db_manager: DatabaseManager) -> None:
        assert DatabaseManager() is db_manager

    def test_pool_not_initialized(self, db_manager: DatabaseManager) -> None:
        """Обращение к пулу до connect() даёт понятную ошибку."""
        with pytest.raises(RuntimeError, match="Пул PostgreSQL не создан"):
            _ = db_manager.pool
        assert db_manager.is_connected is False

    @pytest.mark.asyncio
    async def test_connect(self, db_manager: DatabaseManager) -> None:
        mock_pool = MagicMock()

        with patch("asyncpg.create_pool", new_callable=AsyncMock, return_value=mock_pool) as create_pool:
            await db_manager.connect(dsn="postgresql://u:p@localhost/rides", min_size=1, max_size=2)

        create_pool.assert_awaited_once_with(
            dsn="postgresql://u:p@localhost/rides",
            min_size=1,
            max_size=2,
            command_timeout=60,
        )
        assert db_manager.pool is mock_pool

    @pytest.mark.asyncio
    async def test_connect_twice_keeps_pool(self, db_manager: DatabaseManager) -> None:
        existing = MagicMock()
        db_manager._pool = existing

        with patch("asyncpg.create_pool", new_callable=AsyncMock) as create_pool:
            await db_manager.connect(dsn="postgresql://localhost/rides")

        create_pool.assert_not_called()
        assert db_manager.pool is existing

    @pytest.mark.asyncio
    async def test_disconnect(self, db_manager: DatabaseManager) -> None:
        pool = AsyncMock()
        db_manager._pool = pool

        await db_manager.disconnect()

        pool.close.assert_awaited_once()
        assert db_manager.is_connected is False

    @pytest.mark.asyncio
    async def test_fetchrow_uses_pool_connection(self, db_manager: DatabaseManager) -> None:
        conn = AsyncMock()
        conn.fetchrow.return_value = {"id": 1}
        db_manager._pool = self._pool_with(conn)

        row = await db_manager.fetchrow("SELECT * FROM rides WHERE id = $1", "abc")

        assert row == {"id": 1}
        conn.fetchrow.assert_awaited_once_with("SELECT * FROM rides WHERE id = $1", "abc")

    @pytest.mark.asyncio
    async def test_execute_returns_status(self, db_manager: DatabaseManager) -> None:
        conn = AsyncMock()
        conn.execute.return_value = "UPDATE 1"
        db_manager._pool = self._pool_with(conn)

        assert await db_manager.execute("UPDATE rides SET status = $1", "accepted") == "UPDATE 1"

    @pytest.mark.asyncio
    async def test_health_check_ok(self, db_manager: DatabaseManager) -> None:
        conn = AsyncMock()
        conn.fetchval.return_value = 1
        db_manager._pool = self._pool_with(conn)

        assert await db_manager.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_without_pool(self, db_manager: DatabaseManager) -> None:
        """Без пула health check возвращает False, а не бросает исключение."""
        assert await db_manager.health_check() is False


class TestInitSchema:
    """Тесты применения схемы."""

    @pytest.mark.asyncio
    async def test_schema_applied_under_advisory_lock(self) -> None:
        conn = AsyncMock()
        db = MagicMock()
        db.transaction.return_value.__aenter__.return_value = conn
        db.transaction.return_value.__aexit__.return_value = False

        await _init_schema(db)

        calls = conn.execute.await_args_list
        assert len(calls) == 2
        assert calls[0].args == ("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_KEY)
        assert "CREATE TABLE IF NOT EXISTS rides" in calls[1].args[0]
