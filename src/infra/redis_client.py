# src/infra/redis_client.py
"""
Клиент Redis для кэша чтения поездок.
Хранит Pydantic модели в JSON под ключами с namespace.
"""

from __future__ import annotations

from typing import Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from src.common.logger import log_info, log_warning

T = TypeVar("T", bound=BaseModel)

# Запись только если версия не сменилась с момента чтения.
# Отсутствующая версия сравнивается как пустая строка.
_SET_IF_VERSION_SCRIPT = """
local current = redis.call("GET", KEYS[2]) or ""
if current ~= ARGV[1] then
    return 0
end
redis.call("SET", KEYS[1], ARGV[2], "EX", ARGV[3])
return 1
"""


class RedisClient:
    """
    Асинхронный клиент Redis (Singleton).
    Все ключи получают префикс namespace, например rides:ride:<id>.
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "rides"

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован, сначала вызовите connect()")
        return self._client

    def _make_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str,
        max_connections: int = 50,
        namespace: str = "rides",
    ) -> None:
        """
        Подключается к Redis и проверяет соединение через PING.

        Args:
            url: redis:// URL
            max_connections: Размер пула соединений
            namespace: Префикс всех ключей
        """
        if self._client is not None:
            return

        self._namespace = namespace
        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        await self._client.ping()

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def get(self, key: str) -> str | None:
        return await self.client.get(self._make_key(key))

    async def delete(self, key: str) -> int:
        return await self.client.delete(self._make_key(key))

    async def incr(self, key: str, ttl: int | None = None) -> int:
        """Увеличивает счётчик, ttl продлевается при каждом вызове."""
        full_key = self._make_key(key)
        value = await self.client.incr(full_key)
        if ttl:
            await self.client.expire(full_key, ttl)
        return value

    # =========================================================================
    # ТИПИЗИРОВАННЫЕ ОПЕРАЦИИ (PYDANTIC)
    # =========================================================================

    async def get_model(self, key: str, model_class: Type[T]) -> T | None:
        """
        Читает и валидирует Pydantic модель.
        Повреждённая запись считается промахом кэша.
        """
        data = await self.get(key)
        if data is None:
            return None

        try:
            return model_class.model_validate_json(data)
        except ValidationError as e:
            await log_warning(
                f"Повреждённая запись кэша {key} ({model_class.__name__}): {e}",
                logger_name="redis",
            )
            return None

    async def set_model_if_version(
        self,
        key: str,
        model: BaseModel,
        ttl: int,
        version_key: str,
        expected_version: str,
    ) -> bool:
        """
        Сохраняет модель, только если version_key всё ещё равен expected_version.
        Сравнение и запись выполняются одним Lua скриптом.

        Returns:
            False, если версия сменилась и запись пропущена
        """
        written = await self.client.eval(
            _SET_IF_VERSION_SCRIPT,
            2,
            self._make_key(key),
            self._make_key(version_key),
            expected_version,
            model.model_dump_json(),
            ttl,
        )
        return bool(written)

    async def health_check(self) -> bool:
        """True, если Redis отвечает на PING."""
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_warning(f"Health check Redis не пройден: {e}", logger_name="redis")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный RedisClient."""
    return RedisClient()


async def init_redis() -> RedisClient:
    """Подключается к Redis по настройкам."""
    from src.config import settings

    redis_client = get_redis()
    await redis_client.connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        logger_name="redis",
    )
    return redis_client


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()
    await log_info("Redis отключён", logger_name="redis")
