# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    env_path = os.getenv("RIDES_CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без _comment_ ключей."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


def _env_first(key: str, data: dict[str, Any], default: Any) -> Any:
    """Значение из окружения, затем из config.json, затем по умолчанию."""
    env_value = os.getenv(key)
    if env_value:
        return env_value
    return data.get(key, default)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "rides_backend"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Настройки развертывания HTTP сервиса."""
    RIDES_API_HOST: str = "0.0.0.0"
    RIDES_API_PORT: int = 5000
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Разрешены только colored и json."""
        if v not in ("colored", "json"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class DomainSettings(BaseModel):
    """Настройки календаря для отчётов."""
    TIMEZONE: str = "UTC"


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "rides"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "rides"
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RedisTTLSettings(BaseModel):
    """Настройки TTL кэша."""
    RIDE_TTL: int = 60


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "rides.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class FareSettings(BaseModel):
    """Тарифы (в минимальных денежных единицах)."""
    BASE_FARE: int = 1000
    PER_KM_RATE: int = 2500
    CURRENCY: str = "usd"


class EarningsSettings(BaseModel):
    """Параметры расчёта заработка водителя."""
    PLATFORM_FEE_RATE: float = Field(0.20, ge=0.0, le=1.0)
    # Упрощённая доля водителя для разбивки по периодам
    PERIOD_EARNINGS_SHARE: float = Field(0.80, ge=0.0, le=1.0)
    RECENT_RIDES_LIMIT: int = Field(10, ge=1)


class AuthSettings(BaseModel):
    """Настройки JWT."""
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    @field_validator("JWT_SECRET", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает секрет из переменных окружения."""
        if not v:
            return os.getenv("JWT_SECRET", "")
        return v


class PaymentSettings(BaseModel):
    """Настройки платёжного провайдера (Stripe)."""
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com"
    WEBHOOK_TOLERANCE_SECONDS: int = 300
    REQUEST_TIMEOUT: float = 10.0


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    redis_ttl: RedisTTLSettings = Field(default_factory=RedisTTLSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    fares: FareSettings = Field(default_factory=FareSettings)
    earnings: EarningsSettings = Field(default_factory=EarningsSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """
        Создаёт объект Settings из плоского словаря config.json.
        Секреты и адреса переопределяются из переменных окружения.
        """
        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "rides_backend"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=data.get("DEBUG", False),
                ENVIRONMENT=_env_first("ENVIRONMENT", data, "development"),
            ),
            deployment=DeploymentSettings(
                RIDES_API_HOST=_env_first("RIDES_API_HOST", data, "0.0.0.0"),
                RIDES_API_PORT=int(_env_first("RIDES_API_PORT", data, 5000)),
                CORS_ORIGINS=data.get("CORS_ORIGINS", ["http://localhost:3000"]),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=_env_first("LOG_LEVEL", data, "INFO"),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
            ),
            domain=DomainSettings(
                TIMEZONE=data.get("TIMEZONE", "UTC"),
            ),
            database=DatabaseSettings(
                DB_HOST=_env_first("DB_HOST", data, "localhost"),
                DB_PORT=int(_env_first("DB_PORT", data, 5432)),
                DB_NAME=_env_first("DB_NAME", data, "rides"),
                DB_USER=_env_first("DB_USER", data, "postgres"),
                DB_PASSWORD=_env_first("DB_PASSWORD", data, ""),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 60),
            ),
            redis=RedisSettings(
                REDIS_HOST=_env_first("REDIS_HOST", data, "localhost"),
                REDIS_PORT=int(_env_first("REDIS_PORT", data, 6379)),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=_env_first("REDIS_PASSWORD", data, ""),
                REDIS_NAMESPACE=data.get("REDIS_NAMESPACE", "rides"),
                REDIS_MAX_CONNECTIONS=data.get("REDIS_MAX_CONNECTIONS", 50),
            ),
            redis_ttl=RedisTTLSettings(
                RIDE_TTL=data.get("RIDE_TTL", 60),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_HOST=_env_first("RABBITMQ_HOST", data, "localhost"),
                RABBITMQ_PORT=int(_env_first("RABBITMQ_PORT", data, 5672)),
                RABBITMQ_USER=_env_first("RABBITMQ_USER", data, "guest"),
                RABBITMQ_PASSWORD=_env_first("RABBITMQ_PASSWORD", data, "guest"),
                RABBITMQ_VHOST=data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=data.get("RABBITMQ_EXCHANGE", "rides.events"),
                RABBITMQ_PREFETCH_COUNT=data.get("RABBITMQ_PREFETCH_COUNT", 10),
            ),
            fares=FareSettings(
                BASE_FARE=data.get("BASE_FARE", 1000),
                PER_KM_RATE=data.get("PER_KM_RATE", 2500),
                CURRENCY=data.get("CURRENCY", "usd"),
            ),
            earnings=EarningsSettings(
                PLATFORM_FEE_RATE=data.get("PLATFORM_FEE_RATE", 0.20),
                PERIOD_EARNINGS_SHARE=data.get("PERIOD_EARNINGS_SHARE", 0.80),
                RECENT_RIDES_LIMIT=data.get("RECENT_RIDES_LIMIT", 10),
            ),
            auth=AuthSettings(
                JWT_SECRET=_env_first("JWT_SECRET", data, ""),
                JWT_ALGORITHM=data.get("JWT_ALGORITHM", "HS256"),
                ACCESS_TOKEN_EXPIRE_MINUTES=data.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7),
            ),
            payments=PaymentSettings(
                STRIPE_SECRET_KEY=_env_first("STRIPE_SECRET_KEY", data, ""),
                STRIPE_WEBHOOK_SECRET=_env_first("STRIPE_WEBHOOK_SECRET", data, ""),
                STRIPE_API_BASE=data.get("STRIPE_API_BASE", "https://api.stripe.com"),
                WEBHOOK_TOLERANCE_SECONDS=data.get("WEBHOOK_TOLERANCE_SECONDS", 300),
                REQUEST_TIMEOUT=data.get("PAYMENTS_REQUEST_TIMEOUT", 10.0),
            ),
        )

    @classmethod
    def from_config_json(cls) -> "Settings":
        """Создаёт объект Settings из config.json."""
        return cls.from_dict(load_config_json())


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
