"""
User Models

Account records for administrators and students. A student's profile
fields and permanent media paths live on the account row.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import ENUM
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class UserRole(str, Enum):
    """User roles in the system."""

    ADMIN = "admin"
    STUDENT = "student"


class Gender(str, Enum):
    """Gender values. UNKNOWN is the "not specified" sentinel."""

    UNKNOWN = "unknown"
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class User(BaseModel):
    """
    Account model.

    Students get a human-readable student_id at registration; admins have none.
    Media paths are relative to the media root, e.g.
    uploads/images/{student_id}/{file}.jpg.
    """

    __tablename__ = "users"

    # Authentication fields
    email: Mapped[str] = mapped_column(
        String(256),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # Role and status
    role: Mapped[UserRole] = mapped_column(
        ENUM(UserRole, name="user_role", create_type=True),
        nullable=False,
        default=UserRole.STUDENT,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    must_change_password: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Student profile
    student_id: Mapped[str | None] = mapped_column(
        String(30),
        unique=True,
        index=True,
        nullable=True,
    )
    full_name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    date_of_birth: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    age: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    height_cm: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("0"),
        nullable=False,
    )
    gender: Mapped[Gender] = mapped_column(
        ENUM(Gender, name="gender", create_type=True),
        default=Gender.UNKNOWN,
        nullable=False,
    )
    mobile_number: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    # Permanent media (populated by draft promotion or direct upload)
    profile_image_path: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    profile_video_path: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
