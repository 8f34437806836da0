#!/usr/bin/env python3
# main.py
"""
Главная точка входа Rides Backend.

Использование:
    python main.py [api|migrate]

    api       - HTTP API (по умолчанию)
    migrate   - применить migrations/init.sql и выйти
"""

from __future__ import annotations

import asyncio
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg

MODES = ("api", "migrate")


async def run_api() -> None:
    """Запускает Rides API через uvicorn."""
    import uvicorn

    await log_info(
        f"Запуск Rides API на порту {settings.deployment.RIDES_API_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.rides_api.app:app",
        host=settings.deployment.RIDES_API_HOST,
        port=settings.deployment.RIDES_API_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Rides API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_migrate() -> None:
    """Создаёт схему БД и закрывает подключение."""
    from src.infra.database import init_db, close_db

    await init_db()
    await close_db()
    await log_info("Схема БД применена", type_msg=TypeMsg.INFO)


async def main(mode: str = "api") -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (api, migrate)
    """
    setup_logging()
    await log_info(
        f"Rides Backend v{settings.system.VERSION} - режим '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        match mode:
            case "api":
                await run_api()
            case "migrate":
                await run_migrate()
            case _:
                await log_error(f"Неизвестный режим: {mode}")
    except KeyboardInterrupt:
        await log_info("Получен сигнал остановки (Ctrl+C)", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}")
        raise


if __name__ == "__main__":
    mode = "api"

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print(__doc__)
            sys.exit(0)
        if arg not in MODES:
            print(f"Неизвестный режим: {arg}")
            print(__doc__)
            sys.exit(1)
        mode = arg

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
