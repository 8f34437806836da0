# src/services/rides_api/app.py
"""
FastAPI приложение Rides API.

Endpoints (префикс /api):
- /rides/* - заявки, статусы, отмена, оценки
- /drivers/stats - заработок водителя
- /users/* - профиль, координаты, полученные оценки
- /payments/* - оплата и webhook провайдера
- GET /health - состояние сервиса
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.common.constants import TypeMsg
from src.common.logger import log_info, log_warning, setup_logging
from src.config import settings
from src.services.rides_api.dependencies import (
    cleanup_dependencies,
    get_health_components,
    init_dependencies,
)
from src.services.rides_api.errors import register_exception_handlers
from src.services.rides_api.routes import (
    drivers_router,
    payments_router,
    rides_router,
    users_router,
)
from src.services.rides_api.schemas import HealthStatus

SERVICE_NAME = "rides_api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Жизненный цикл приложения.

    PostgreSQL обязателен. Без Redis сервис работает без кэша,
    без RabbitMQ события не публикуются.
    """
    from src.core.billing import PaymentGateway
    from src.infra.database import close_db, init_db
    from src.infra.event_bus import close_event_bus, init_event_bus
    from src.infra.redis_client import close_redis, init_redis

    setup_logging()
    await log_info("Starting Rides API...", type_msg=TypeMsg.INFO)

    db = await init_db()

    redis = None
    try:
        redis = await init_redis()
    except Exception as e:
        await log_warning(f"Redis недоступен, кэш отключён: {e}")

    event_bus = None
    try:
        event_bus = await init_event_bus()
    except Exception as e:
        await log_warning(f"RabbitMQ недоступен, события не публикуются: {e}")

    await init_dependencies(
        db=db,
        redis=redis,
        event_bus=event_bus,
        gateway=PaymentGateway.from_settings(),
    )

    yield

    await log_info("Shutting down Rides API...", type_msg=TypeMsg.INFO)
    await cleanup_dependencies()
    if event_bus is not None:
        await close_event_bus()
    if redis is not None:
        await close_redis()
    await close_db()


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Собирает приложение.

    Args:
        use_lifespan: False для тестов, где зависимости подменяются
    """
    app = FastAPI(
        title="Rides API",
        description="Заказ поездок, диспетчеризация водителей, оценки и оплата",
        version=settings.system.VERSION,
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.deployment.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    for router in (rides_router, drivers_router, users_router, payments_router):
        app.include_router(router, prefix="/api")

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        components = await get_health_components()
        return HealthStatus(
            status="healthy" if all(components.values()) else "degraded",
            service=SERVICE_NAME,
            version=settings.system.VERSION,
            components=components,
        )

    return app


app = create_app()
