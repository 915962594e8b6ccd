"""
Registration Draft Models

A draft holds a partially completed student registration form. Drafts are
anonymous (no user yet) and short-lived: each one ends by promotion into a
student account, explicit abandonment, or the expiry sweep.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, Index, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.modules.users.models import Gender


class RegistrationDraft(Base):
    """
    In-progress registration form.

    All form fields are nullable; the draft is filled in one field at a time.
    Media paths are relative to the media root and always point inside the
    draft's own folders: uploads/{images|videos}/{draft_id}/{file}.
    """

    __tablename__ = "registration_drafts"

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Form fields
    full_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    height_cm: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    gender: Mapped[Gender | None] = mapped_column(Enum(Gender, name="gender"), nullable=True)
    mobile_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)

    # Uploaded media
    profile_image_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    profile_video_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Timestamps (set by the application so the expiry cutoff is exact)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_registration_drafts_last_updated_at", "last_updated_at"),)

    def __repr__(self) -> str:
        return f"<RegistrationDraft(id={self.id}, last_updated_at={self.last_updated_at})>"
