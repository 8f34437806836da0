#!/usr/bin/env python3
# entrypoint_rides_api.py
"""
Точка входа для Rides API.
Порт: RIDES_API_PORT (5000)
"""

import asyncio

import uvicorn

from src.config import settings
from src.common.logger import log_info, setup_logging
from src.common.constants import TypeMsg


async def main() -> None:
    """Запуск Rides API."""
    setup_logging()
    await log_info(
        f"Запуск Rides API на {settings.deployment.RIDES_API_HOST}:{settings.deployment.RIDES_API_PORT}",
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
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
