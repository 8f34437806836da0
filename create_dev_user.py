"""
Создаёт тестового пассажира и водителя и печатает их access-токены.

    python create_dev_user.py
"""

import asyncio

from src.common.constants import UserRole
from src.config import settings
from src.core.users import UserRepository
from src.infra.database import get_db
from src.services.rides_api.auth import create_access_token

DEV_USERS = (
    ("rider@example.com", UserRole.RIDER, "Dev", "Rider"),
    ("driver@example.com", UserRole.DRIVER, "Dev", "Driver"),
)


async def main():
    db = get_db()
    await db.connect(
        dsn=settings.database.dsn,
        min_size=1,
        max_size=1,
    )
    print("Connected to DB")

    try:
        users = UserRepository(db)
        for email, role, first_name, last_name in DEV_USERS:
            user = await users.create(
                email=email,
                user_type=role,
                first_name=first_name,
                last_name=last_name,
            )
            print(f"{role.value}: {user.id}")
            print(f"  token: {create_access_token(user.id, role)}")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
