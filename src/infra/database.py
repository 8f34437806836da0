# src/infra/database.py
"""
Пул соединений PostgreSQL для сервиса поездок.

Все изменения поездок выражаются одиночными условными UPDATE,
поэтому менеджер не держит собственных блокировок: атомарность
обеспечивает сама база.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncGenerator, Callable, TypeVar

import asyncpg
from asyncpg import Connection, Pool, Record

from src.common.logger import log_error, log_info, log_warning

T = TypeVar("T")

# Ключ advisory-лока для применения схемы
SCHEMA_LOCK_KEY = 740_221_001

_CONNECTION_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


def retry_on_connection_error(
    max_attempts: int = 3,
    delay: float = 1.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Повторяет вызов при обрыве соединения с базой.

    Ошибки SQL (нарушение ограничений и т.п.) не повторяются.

    Args:
        max_attempts: Максимальное количество попыток
        delay: Базовая задержка между попытками (секунды), растёт линейно
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Exception | None = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except _CONNECTION_ERRORS as e:
                    last_error = e
                    if attempt < max_attempts:
                        await log_warning(
                            f"Нет связи с PostgreSQL (попытка {attempt}/{max_attempts}): {e}",
                            logger_name="database",
                        )
                        await asyncio.sleep(delay * attempt)
                    else:
                        await log_error(
                            f"PostgreSQL недоступен после {max_attempts} попыток: {e}",
                            logger_name="database",
                        )

            raise last_error  # type: ignore

        return wrapper  # type: ignore

    return decorator


class DatabaseManager:
    """
    Singleton над пулом asyncpg.
    Репозитории работают только через execute/fetch/fetchrow/fetchval.
    """

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._pool = None

    @property
    def pool(self) -> Pool:
        """Возвращает пул соединений."""
        if self._pool is None:
            raise RuntimeError("Пул PostgreSQL не создан, сначала вызовите connect()")
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @retry_on_connection_error(max_attempts=3, delay=1.0)
    async def connect(
        self,
        dsn: str,
        min_size: int = 5,
        max_size: int = 20,
        command_timeout: int = 60,
    ) -> None:
        """
        Создаёт пул соединений. Повторный вызов ничего не делает.

        Args:
            dsn: Строка подключения postgresql://
            min_size: Минимальный размер пула
            max_size: Максимальный размер пула
            command_timeout: Таймаут одной команды (секунды)
        """
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )

    async def disconnect(self) -> None:
        """Закрывает пул соединений."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        """
        Выдаёт соединение из пула.

        Example:
            async with db.acquire() as conn:
                await conn.fetch("SELECT * FROM rides")
        """
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """Соединение внутри транзакции: commit при успехе, rollback при ошибке."""
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                yield connection

    @retry_on_connection_error()
    async def execute(self, query: str, *args: Any) -> str:
        """Выполняет запрос без возврата строк, возвращает статус команды."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @retry_on_connection_error()
    async def fetch(self, query: str, *args: Any) -> list[Record]:
        """Выполняет запрос и возвращает все строки."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @retry_on_connection_error()
    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        """
        Выполняет запрос и возвращает первую строку.

        Для UPDATE ... RETURNING результат None означает,
        что условие WHERE не совпало ни с одной строкой.
        """
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @retry_on_connection_error()
    async def fetchval(self, query: str, *args: Any, column: int = 0) -> Any:
        """Выполняет запрос и возвращает одно значение."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, column=column)

    async def health_check(self) -> bool:
        """True, если база отвечает на SELECT 1."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            await log_error(f"Health check PostgreSQL не пройден: {e}", logger_name="database")
            return False


_db_manager: DatabaseManager | None = None


def get_db() -> DatabaseManager:
    """Возвращает глобальный DatabaseManager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def init_db() -> DatabaseManager:
    """Создаёт пул по настройкам и применяет схему."""
    from src.config import settings

    db = get_db()
    await db.connect(
        dsn=settings.database.dsn,
        min_size=settings.database.DB_MIN_POOL_SIZE,
        max_size=settings.database.DB_MAX_POOL_SIZE,
        command_timeout=settings.database.DB_COMMAND_TIMEOUT,
    )
    await log_info(
        f"PostgreSQL подключён: {settings.database.DB_HOST}:"
        f"{settings.database.DB_PORT}/{settings.database.DB_NAME}",
        logger_name="database",
    )

    await _init_schema(db)
    return db


async def _init_schema(db: DatabaseManager) -> None:
    """Применяет migrations/init.sql под advisory-локом."""
    from src.config.loader import get_project_root

    schema_path = get_project_root() / "migrations" / "init.sql"
    if not schema_path.exists():
        await log_error(f"Файл схемы БД не найден: {schema_path}", logger_name="database")
        return

    schema_sql = schema_path.read_text(encoding="utf-8")

    try:
        # Лок живёт до конца транзакции, параллельные процессы ждут здесь
        async with db.transaction() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_KEY)
            await conn.execute(schema_sql)
    except asyncpg.PostgresError as e:
        if "already exists" in str(e):
            await log_warning(f"Схема уже применена другим процессом: {e}", logger_name="database")
            return
        await log_error(f"Ошибка применения схемы БД: {e}", logger_name="database")
        raise

    await log_info("Схема БД применена", logger_name="database")


async def close_db() -> None:
    """Закрывает пул соединений."""
    await get_db().disconnect()
    await log_info("PostgreSQL отключён", logger_name="database")
