"""
User Repository

Database operations for account management.
"""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import Gender, User, UserRole

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        full_name: str,
        role: UserRole = UserRole.STUDENT,
        student_id: str | None = None,
        date_of_birth: date | None = None,
        age: int = 0,
        height_cm: Decimal = Decimal("0"),
        gender: Gender = Gender.UNKNOWN,
        mobile_number: str | None = None,
        is_active: bool = True,
        must_change_password: bool = False,
    ) -> User:
        """
        Create a new user record.

        The row is flushed (so it gets an id) but not committed; the caller
        owns the transaction.

        Args:
            db: Database session
            email: Email address (unique)
            password_hash: bcrypt hash of the password
            full_name: Display name
            role: Account role
            student_id: Human-readable student identifier (students only)
            date_of_birth: Date of birth
            age: Age in whole years at registration
            height_cm: Height in centimetres
            gender: Gender value
            mobile_number: Mobile number
            is_active: Whether the account can sign in
            must_change_password: Force a password change on next login

        Returns:
            Created User instance
        """
        user = User(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            student_id=student_id,
            date_of_birth=date_of_birth,
            age=age,
            height_cm=height_cm,
            gender=gender,
            mobile_number=mobile_number,
            is_active=is_active,
            must_change_password=must_change_password,
        )

        db.add(user)
        await db.flush()

        logger.info(f"Created user: {user.id} ({role.value}, student_id={student_id})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: str | UUID) -> User | None:
        """Get a user by ID."""
        result = await db.execute(select(User).where(User.id == str(user_id)))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """
        Get a user by email address.

        Args:
            db: Database session
            email: Email address (exact match)

        Returns:
            User instance or None if not found
        """
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        """Check if an email address is already registered."""
        user = await UserRepository.get_by_email(db, email)
        return user is not None

    @staticmethod
    async def student_id_exists(db: AsyncSession, student_id: str) -> bool:
        """Check if a student identifier is already taken."""
        result = await db.execute(select(User.id).where(User.student_id == student_id))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def assign_role(db: AsyncSession, user: User, role: UserRole) -> User:
        """
        Assign a role to a user.

        Not committed; the caller owns the transaction.
        """
        if user.role != role:
            logger.info(f"Assigning role {role.value} to user {user.id}")
        user.role = role
        await db.flush()
        return user
