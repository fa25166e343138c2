#!/usr/bin/env python3
"""Create an admin account, or promote an existing user to admin.

Usage:
    python create_admin.py admin@example.com 'S3cret-pass' "Admin Name"
"""

import asyncio
import sys

from sqlalchemy import select

from tipline.db.database import async_session_maker, init_db
from tipline.models.user import User
from tipline.services.security import password_hasher


async def create_admin(email: str, password: str, name: str) -> None:
    """Create or promote the admin account."""
    await init_db()

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user:
            user.type = "admin"
            user.password = password_hasher.hash(password)
            action = "Promoted"
        else:
            user = User(
                name=name,
                email=email,
                password=password_hasher.hash(password),
                type="admin",
            )
            session.add(user)
            action = "Created"

        await session.commit()
        print(f"{action} admin {user.email} ({user.id})")


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    admin_name = sys.argv[3] if len(sys.argv) > 3 else "Admin"
    asyncio.run(create_admin(sys.argv[1], sys.argv[2], admin_name))
