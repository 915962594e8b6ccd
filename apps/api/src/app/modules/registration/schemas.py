"""
Registration Schemas

Pydantic schemas for the registration endpoints. The browser form speaks
camelCase (draftId, fullName, ...); models accept either spelling and
serialize with the camelCase aliases.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.modules.users.models import Gender


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================
# Drafts
# ============================================


class DraftCreatedResponse(CamelModel):
    """Response for POST /drafts."""

    draft_id: UUID


class DraftResponse(CamelModel):
    """Response for GET /drafts/{draft_id}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    draft_id: UUID = Field(validation_alias="id")
    full_name: str | None = None
    date_of_birth: date | None = None
    height_cm: Decimal | None = None
    gender: Gender | None = None
    mobile_number: str | None = None
    email: str | None = None
    profile_image_path: str | None = None
    profile_video_path: str | None = None
    created_at: datetime
    last_updated_at: datetime


class SuccessResponse(CamelModel):
    """Bare success flag returned by draft mutations."""

    success: bool


class UploadResponse(CamelModel):
    """Response for POST /uploads: the stored path or the rejection reason."""

    success: bool
    path: str | None = None
    error: str | None = None


# ============================================
# Submission
# ============================================


class StudentRegistrationCreate(CamelModel):
    """Request body for POST /submit."""

    draft_id: UUID | None = None
    full_name: str = Field(..., min_length=1, max_length=150)
    email: EmailStr = Field(..., max_length=256)
    date_of_birth: date
    height_cm: Decimal = Field(..., ge=0, le=300, max_digits=5, decimal_places=2)
    gender: Gender
    mobile_number: str | None = Field(None, max_length=20)

    @field_validator("full_name", "mobile_number", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("date_of_birth")
    @classmethod
    def date_of_birth_not_in_future(cls, v: date) -> date:
        if v > datetime.now(UTC).date():
            raise ValueError("Date of birth cannot be in the future")
        return v

    @field_validator("gender")
    @classmethod
    def gender_specified(cls, v: Gender) -> Gender:
        if v is Gender.UNKNOWN:
            raise ValueError("Gender must be specified")
        return v


class RegistrationResultResponse(CamelModel):
    """Response for POST /submit."""

    success: bool
    message: str
    student_id: str | None = None
    email: str | None = None
    # Only returned when the credentials email could not be sent
    password: str | None = None
    email_sent: bool = False
    errors: list[str] = Field(default_factory=list)
    failed_stage: str | None = None
