"""
Registration Service Layer

Turns a submitted registration form into a student account.

Stages of one attempt:
1. VALIDATING       - reject duplicate emails and invalid direct uploads
2. ACCOUNT_CREATING - generate student ID and temporary password, create the account
3. PROMOTING        - move the draft's media to the student's folders, drop the draft
4. EMAIL_NOTIFYING  - send the credentials email (best-effort)
5. DONE

A failure in stages 1-3 rolls back the transaction, returns any promoted
media to the draft (deleting direct uploads) and short-circuits to a failed
RegistrationResult naming the stage. Compression is queued only after the
commit. Email failure never fails the registration; the credentials are
returned for inline display instead.

Media arrives one of two ways:
- Draft flow: files were uploaded into the draft's folders while the form
  was being filled in, and are promoted by renaming the folders
- Direct flow: files are submitted together with the form and written
  straight into the student's folders
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import BinaryIO
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.email import send_student_credentials
from app.core.security import hash_password
from app.modules.media.storage import DraftFileManager, MediaStorageError, PromotionResult, stream_size
from app.modules.media.validation import MediaClass, validate_file
from app.modules.registration import repository
from app.modules.registration.schemas import StudentRegistrationCreate
from app.modules.students.cache import StudentListCache
from app.modules.students.credentials import generate_password, generate_student_id
from app.modules.students.helpers import calculate_age
from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Registration could not be completed. Please try again."

CredentialsSender = Callable[[str, str, str, str], Awaitable[bool]]


class RegistrationStage(str, Enum):
    """Stages of a registration attempt, in order."""

    VALIDATING = "validating"
    ACCOUNT_CREATING = "account_creating"
    PROMOTING = "promoting"
    EMAIL_NOTIFYING = "email_notifying"
    DONE = "done"


class RegistrationError(Exception):
    """Base exception for registration errors reported to the user."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class DuplicateEmailError(RegistrationError):
    """Raised when the email already belongs to an account."""

    def __init__(self):
        super().__init__(
            message="Email is already registered.",
            error_code="DUPLICATE_EMAIL",
            status_code=409,
        )


class InvalidUploadError(RegistrationError):
    """Raised when a directly submitted file fails validation."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_UPLOAD",
            status_code=400,
        )


@dataclass
class DirectUpload:
    """A media file submitted together with the registration form."""

    media_class: MediaClass
    stream: BinaryIO
    file_name: str | None
    size: int | None = None


@dataclass
class RegistrationResult:
    """Outcome of a registration attempt."""

    success: bool
    student_id: str | None = None
    email: str | None = None
    password: str | None = None
    email_sent: bool = False
    errors: list[str] = field(default_factory=list)
    failed_stage: RegistrationStage | None = None
    error_code: str | None = None
    status_code: int = 201

    @property
    def message(self) -> str:
        """User-facing summary; shows the credentials when email failed."""
        if not self.success:
            return self.errors[0] if self.errors else GENERIC_FAILURE_MESSAGE

        if self.email_sent:
            return "Registration successful. Credentials have been emailed."

        return (
            "Registration successful! Please save your credentials:\n\n"
            f"Student ID: {self.student_id}\n"
            f"Email: {self.email}\n"
            f"Password: {self.password}\n\n"
            "(Email delivery failed - please save these credentials now!)"
        )

    @classmethod
    def failed(
        cls,
        stage: RegistrationStage,
        message: str,
        error_code: str = "REGISTRATION_FAILED",
        status_code: int = 500,
    ) -> "RegistrationResult":
        return cls(
            success=False,
            errors=[message],
            failed_stage=stage,
            error_code=error_code,
            status_code=status_code,
        )


@dataclass
class AttachedMedia:
    """Media moved into a student's folders during one registration attempt."""

    student_id: str
    draft_id: UUID | None = None
    promotion: PromotionResult | None = None
    direct: list[tuple[MediaClass, str]] = field(default_factory=list)

    def paths(self) -> list[tuple[MediaClass, str]]:
        promoted = self.promotion.paths() if self.promotion else []
        return promoted + self.direct

    def queue_compression(self, file_manager: DraftFileManager) -> None:
        for media_class, path in self.paths():
            file_manager.queue_compression(path, media_class)

    def undo(self, file_manager: DraftFileManager) -> None:
        """Return promoted folders to the draft and delete direct uploads."""
        for _, path in self.direct:
            file_manager.discard_file(path)
        if self.promotion is not None and self.draft_id is not None:
            file_manager.revert_promotion(self.draft_id, self.student_id, self.promotion)


def _validate_direct_uploads(uploads: Sequence[DirectUpload]) -> None:
    for upload in uploads:
        size = upload.size if upload.size is not None else stream_size(upload.stream)
        validation = validate_file(upload.file_name, size, upload.media_class)
        if not validation.accepted:
            raise InvalidUploadError(validation.error or "Invalid file.")


async def _attach_media(
    db: AsyncSession,
    user: User,
    data: StudentRegistrationCreate,
    uploads: Sequence[DirectUpload],
    file_manager: DraftFileManager,
    attached: AttachedMedia,
) -> None:
    """
    Promote the draft's media, store direct uploads, and delete the draft row.

    Everything moved on disk is recorded in `attached` as it happens, so the
    caller can undo it if the transaction does not commit. Compression is
    left to the caller as well.
    """
    if data.draft_id is not None:
        draft = await repository.get_by_id(db, data.draft_id)
        if draft is None:
            logger.warning(f"Draft {data.draft_id} not found at submission; registering without its media")
        else:
            attached.draft_id = draft.id
            attached.promotion = await asyncio.to_thread(
                partial(file_manager.promote, draft, user.student_id, queue_compression=False)
            )
            user.profile_image_path = attached.promotion.image_path
            user.profile_video_path = attached.promotion.video_path
            await repository.delete_by_id(db, draft.id, commit=False)

    for upload in uploads:
        attribute = "profile_image_path" if upload.media_class is MediaClass.IMAGE else "profile_video_path"
        if getattr(user, attribute):
            # Draft media wins over a duplicate direct upload
            continue

        result = await asyncio.to_thread(
            partial(
                file_manager.save_student_file,
                upload.media_class,
                upload.stream,
                upload.file_name,
                user.student_id,
                upload.size,
                queue_compression=False,
            )
        )
        if not result.success:
            raise MediaStorageError(result.error or "Direct upload could not be stored")
        attached.direct.append((upload.media_class, result.relative_path))
        setattr(user, attribute, result.relative_path)

    await db.flush()


async def _undo_media(file_manager: DraftFileManager, attached: AttachedMedia | None) -> None:
    """Put media back where it was before a registration that did not commit."""
    if attached is None or not (attached.promotion or attached.direct):
        return
    logger.warning(f"Undoing media moves for uncommitted student {attached.student_id}")
    await asyncio.to_thread(attached.undo, file_manager)


async def register_student(
    db: AsyncSession,
    data: StudentRegistrationCreate,
    *,
    file_manager: DraftFileManager,
    cache: StudentListCache,
    direct_uploads: Sequence[DirectUpload] = (),
    send_credentials: CredentialsSender = send_student_credentials,
) -> RegistrationResult:
    """
    Register a student from a submitted form.

    Args:
        db: Database session (committed on success, rolled back on failure)
        data: Validated registration form
        file_manager: Media storage used for promotion and direct uploads
        cache: Student list cache, invalidated once on success
        direct_uploads: Files submitted with the form (non-draft flow)
        send_credentials: Credentials email sender

    Returns:
        RegistrationResult describing success or the failed stage
    """
    email = str(data.email).strip()
    stage = RegistrationStage.VALIDATING
    attached: AttachedMedia | None = None

    try:
        # Stage 1: Validate
        if await UserRepository.email_exists(db, email):
            raise DuplicateEmailError()
        _validate_direct_uploads(direct_uploads)

        # Stage 2: Create the account
        stage = RegistrationStage.ACCOUNT_CREATING
        student_id = await generate_student_id(
            lambda candidate: UserRepository.student_id_exists(db, candidate)
        )
        password = generate_password()
        password_hash = await asyncio.to_thread(hash_password, password)

        user = await UserRepository.create(
            db,
            email=email,
            password_hash=password_hash,
            full_name=data.full_name,
            student_id=student_id,
            date_of_birth=data.date_of_birth,
            age=calculate_age(data.date_of_birth),
            height_cm=data.height_cm,
            gender=data.gender,
            mobile_number=data.mobile_number,
            must_change_password=True,
        )
        await UserRepository.assign_role(db, user, UserRole.STUDENT)

        # Stage 3: Move media into place
        stage = RegistrationStage.PROMOTING
        attached = AttachedMedia(student_id=student_id)
        await _attach_media(db, user, data, direct_uploads, file_manager, attached)

        await db.commit()

    except RegistrationError as e:
        await db.rollback()
        await _undo_media(file_manager, attached)
        logger.info(f"Registration rejected at {stage.value}: {e.error_code}")
        return RegistrationResult.failed(stage, e.message, e.error_code, e.status_code)

    except IntegrityError as e:
        await db.rollback()
        await _undo_media(file_manager, attached)
        # Lost a race with a concurrent registration for the same email
        if await UserRepository.email_exists(db, email):
            logger.info(f"Registration rejected at {stage.value}: concurrent duplicate email")
            duplicate = DuplicateEmailError()
            return RegistrationResult.failed(
                RegistrationStage.VALIDATING, duplicate.message, duplicate.error_code, duplicate.status_code
            )
        logger.error(f"Registration failed at {stage.value}: {e}", exc_info=True)
        return RegistrationResult.failed(stage, GENERIC_FAILURE_MESSAGE)

    except (MediaStorageError, SQLAlchemyError, OSError) as e:
        await db.rollback()
        await _undo_media(file_manager, attached)
        logger.error(f"Registration failed at {stage.value}: {e}", exc_info=True)
        return RegistrationResult.failed(stage, GENERIC_FAILURE_MESSAGE)

    except Exception:
        await _undo_media(file_manager, attached)
        raise

    logger.info(f"Registered student {student_id} (user {user.id})")

    attached.queue_compression(file_manager)

    await cache.invalidate()

    # Stage 4: Notify (best-effort)
    stage = RegistrationStage.EMAIL_NOTIFYING
    try:
        email_sent = await send_credentials(email, data.full_name, student_id, password)
    except Exception as e:
        logger.error(f"Credentials email for {student_id} failed: {e}", exc_info=True)
        email_sent = False

    if not email_sent:
        logger.warning(f"Credentials for {student_id} not emailed; returning them inline")

    return RegistrationResult(
        success=True,
        student_id=student_id,
        email=email,
        password=None if email_sent else password,
        email_sent=email_sent,
    )
