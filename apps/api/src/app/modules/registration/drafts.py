"""
Registration Draft Service

Incremental persistence of the registration form. The browser creates a
draft on first interaction and then writes one field at a time; uploads
store their relative path through the same field-update path.

Field updates are all-or-nothing: a value that fails validation leaves the
draft untouched, and a successful write commits the field together with the
last_updated_at bump.

Expiry:
- delete_expired_drafts removes rows idle for longer than the expiry window,
  deleting each draft's folders before its row
- The Draft File Manager's own folder sweep runs alongside it and catches
  folders whose rows are already gone
"""

import asyncio
import logging
import math
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import PurePosixPath
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.media.storage import UPLOADS_DIR, DraftFileManager
from app.modules.media.validation import MEDIA_POLICIES, MediaClass
from app.modules.registration import repository
from app.modules.registration.models import RegistrationDraft
from app.modules.users.models import Gender

logger = logging.getLogger(__name__)

# Field limits
FULL_NAME_MAX_LENGTH = 150
MOBILE_NUMBER_MAX_LENGTH = 20
EMAIL_MAX_LENGTH = 256
HEIGHT_MIN_CM = Decimal("0")
HEIGHT_MAX_CM = Decimal("300")

TIMESTAMP_RESOLUTION = timedelta(microseconds=1)


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ------------------------------------------------------------------
# Field parsers
#
# Each parser receives the raw form value and the draft, and returns the
# value to store or raises ValueError.
# ------------------------------------------------------------------


def _optional_text(raw: str | None, max_length: int) -> str | None:
    value = (raw or "").strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValueError(f"value longer than {max_length} characters")
    return value


def _parse_full_name(raw: str | None, draft: RegistrationDraft) -> str | None:
    return _optional_text(raw, FULL_NAME_MAX_LENGTH)


def _parse_mobile_number(raw: str | None, draft: RegistrationDraft) -> str | None:
    return _optional_text(raw, MOBILE_NUMBER_MAX_LENGTH)


def _parse_date_of_birth(raw: str | None, draft: RegistrationDraft) -> date:
    value = date.fromisoformat((raw or "").strip())
    if value > _utcnow().date():
        raise ValueError("date of birth is in the future")
    return value


def _parse_height(raw: str | None, draft: RegistrationDraft) -> Decimal:
    try:
        value = Decimal((raw or "").strip())
    except InvalidOperation as e:
        raise ValueError("height is not a number") from e
    if not value.is_finite() or not HEIGHT_MIN_CM <= value <= HEIGHT_MAX_CM:
        raise ValueError("height out of range")
    return value


def parse_gender(raw: str | None) -> Gender:
    """
    Parse a gender by enum name or value, case-insensitively.

    Raises:
        ValueError: For unknown values and the UNKNOWN sentinel
    """
    value = (raw or "").strip().lower()
    for gender in Gender:
        if value in (gender.value, gender.name.lower()):
            if gender is Gender.UNKNOWN:
                raise ValueError("gender must be specified")
            return gender
    raise ValueError(f"unknown gender: {raw}")


def _parse_gender(raw: str | None, draft: RegistrationDraft) -> Gender:
    return parse_gender(raw)


def is_plausible_email(value: str) -> bool:
    """Exactly one '@' with something on both sides."""
    local, at, domain = value.partition("@")
    return bool(at) and bool(local) and bool(domain) and "@" not in domain


def _parse_email(raw: str | None, draft: RegistrationDraft) -> str | None:
    value = _optional_text(raw, EMAIL_MAX_LENGTH)
    if value is not None and not is_plausible_email(value):
        raise ValueError("malformed email address")
    return value


def is_draft_media_path(path: str, media_class: MediaClass, draft_id: UUID) -> bool:
    """True when `path` is uploads/{subdir}/{draft_id}/{file} for this draft."""
    parts = PurePosixPath(path).parts
    return (
        len(parts) == 4
        and parts[0] == UPLOADS_DIR
        and parts[1] == MEDIA_POLICIES[media_class].subdir
        and parts[2] == str(draft_id)
        and parts[3] not in (".", "..")
    )


def _media_path_parser(media_class: MediaClass) -> Callable[[str | None, RegistrationDraft], str | None]:
    def parse(raw: str | None, draft: RegistrationDraft) -> str | None:
        value = (raw or "").strip()
        if not value:
            return None
        if not is_draft_media_path(value, media_class, draft.id):
            raise ValueError(f"path is not inside the draft's {media_class.value} folder")
        return value

    return parse


# Lower-cased wire field name -> (model attribute, parser)
DRAFT_FIELDS: dict[str, tuple[str, Callable[[str | None, RegistrationDraft], Any]]] = {
    "fullname": ("full_name", _parse_full_name),
    "dateofbirth": ("date_of_birth", _parse_date_of_birth),
    "heightcm": ("height_cm", _parse_height),
    "gender": ("gender", _parse_gender),
    "mobilenumber": ("mobile_number", _parse_mobile_number),
    "email": ("email", _parse_email),
    "profileimagepath": ("profile_image_path", _media_path_parser(MediaClass.IMAGE)),
    "profilevideopath": ("profile_video_path", _media_path_parser(MediaClass.VIDEO)),
}


# ------------------------------------------------------------------
# Operations
# ------------------------------------------------------------------


async def create_draft(db: AsyncSession) -> UUID:
    """
    Create an empty draft.

    Returns:
        The new draft's ID
    """
    draft = await repository.create(db, _utcnow())
    logger.info(f"Created registration draft {draft.id}")
    return draft.id


async def get_draft(db: AsyncSession, draft_id: UUID) -> RegistrationDraft | None:
    """Get a draft by ID, or None if it does not exist."""
    return await repository.get_by_id(db, draft_id)


async def update_field(
    db: AsyncSession,
    draft_id: UUID,
    field_name: str | None,
    raw_value: str | None,
) -> bool:
    """
    Validate and store a single draft field.

    Field names are matched case-insensitively against DRAFT_FIELDS.

    Args:
        db: Database session
        draft_id: Draft to update
        field_name: Wire field name, e.g. "fullName" or "dateofbirth"
        raw_value: Raw string value from the form

    Returns:
        True if the field was written; False for a missing draft, unknown
        field or invalid value (the draft is then unchanged)
    """
    entry = DRAFT_FIELDS.get((field_name or "").strip().lower())
    if entry is None:
        logger.debug(f"Rejected update of unknown draft field '{field_name}'")
        return False

    draft = await repository.get_by_id(db, draft_id)
    if draft is None:
        return False

    attribute, parser = entry
    try:
        value = parser(raw_value, draft)
    except ValueError as e:
        logger.debug(f"Rejected draft {draft_id} {attribute} update: {e}")
        return False

    setattr(draft, attribute, value)

    # Strictly advance even when the clock has not moved since the last write
    now = _utcnow()
    draft.last_updated_at = max(now, draft.last_updated_at + TIMESTAMP_RESOLUTION)

    await repository.save(db, draft)
    return True


async def delete_draft(db: AsyncSession, file_manager: DraftFileManager, draft_id: UUID) -> bool:
    """
    Abandon a draft: delete its media folders, then its row.

    Returns:
        True if a draft row was deleted
    """
    await asyncio.to_thread(file_manager.delete_draft_files, draft_id)
    deleted = await repository.delete_by_id(db, draft_id)
    if deleted:
        logger.info(f"Deleted registration draft {draft_id}")
    return deleted


async def delete_expired_drafts(
    db: AsyncSession,
    file_manager: DraftFileManager,
    expiry_minutes: int,
) -> int:
    """
    Delete drafts not updated within the last `expiry_minutes`.

    The rows are removed first, in one batch that re-checks the cutoff, so
    a draft written to after selection keeps both its row and its folders.
    Folders are then deleted only for the rows that were actually removed.
    If the task is cancelled while folders are being deleted, the rest are
    left for the folder sweep.

    Returns:
        Number of draft rows removed
    """
    cutoff = _utcnow() - timedelta(minutes=expiry_minutes)
    expired_ids = await repository.get_expired_ids(db, cutoff)
    if not expired_ids:
        return 0

    removed_ids = await repository.delete_expired_by_ids(db, expired_ids, cutoff)

    for index, draft_id in enumerate(removed_ids):
        try:
            await asyncio.to_thread(file_manager.delete_draft_files, draft_id)
        except asyncio.CancelledError:
            logger.warning(
                f"Draft expiry sweep cancelled; {len(removed_ids) - index} folders left for the folder sweep"
            )
            raise

    logger.info(f"Expired {len(removed_ids)} registration drafts (cutoff {cutoff.isoformat()})")
    return len(removed_ids)
