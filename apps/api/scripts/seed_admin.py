"""
Seed Admin User

Creates the initial administrator account. Credentials are read from the
environment so none are committed to the repository.

Usage:
    cd apps/api
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD='...' python scripts/seed_admin.py
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from app.core.database import async_session_maker, close_db
from app.core.security import hash_password
from app.modules.users.models import UserRole
from app.modules.users.repository import UserRepository

MIN_ADMIN_PASSWORD_LENGTH = 8


async def seed_admin() -> int:
    """Create the admin user if it doesn't exist. Returns a process exit code."""
    email = os.getenv("ADMIN_EMAIL", "").strip()
    password = os.getenv("ADMIN_PASSWORD", "")
    full_name = os.getenv("ADMIN_FULL_NAME", "Administrator").strip()

    if not email or len(password) < MIN_ADMIN_PASSWORD_LENGTH:
        print(f"ADMIN_EMAIL and ADMIN_PASSWORD (at least {MIN_ADMIN_PASSWORD_LENGTH} characters) are required")
        return 1

    try:
        async with async_session_maker() as db:
            existing_user = await UserRepository.get_by_email(db, email)
            if existing_user:
                if existing_user.role != UserRole.ADMIN:
                    await UserRepository.assign_role(db, existing_user, UserRole.ADMIN)
                    await db.commit()
                    print(f"Existing user promoted to admin: {email}")
                else:
                    print(f"Admin already exists: {email}")
                print(f"  ID: {existing_user.id}")
                return 0

            admin_user = await UserRepository.create(
                db,
                email=email,
                password_hash=hash_password(password),
                full_name=full_name,
                role=UserRole.ADMIN,
            )
            await db.commit()

            print("Admin created successfully!")
            print(f"  Email: {email}")
            print(f"  Name: {full_name}")
            print(f"  ID: {admin_user.id}")
            print(f"  Role: {admin_user.role.value}")
    finally:
        await close_db()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(seed_admin()))
