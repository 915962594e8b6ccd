"""
Registration Router

Public endpoints used by the student self-registration form.

Endpoints:
- POST   /registration/drafts             - Start a new draft
- GET    /registration/drafts/{draft_id}  - Read a draft back
- POST   /registration/drafts/field       - Save one form field
- DELETE /registration/drafts/{draft_id}  - Abandon a draft and its files
- POST   /registration/uploads            - Upload a profile image or video into a draft
- POST   /registration/submit             - Submit the form and create the student account

The form posts fields as they are edited, so draft mutations answer with a
plain {"success": bool} rather than error details. Upload request bodies are
capped by the upload size middleware in app.main.
"""

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.redis import get_redis
from app.modules.media.storage import DraftFileManager
from app.modules.media.validation import MediaClass, parse_media_class
from app.modules.registration import drafts, service
from app.modules.registration.schemas import (
    DraftCreatedResponse,
    DraftResponse,
    RegistrationResultResponse,
    StudentRegistrationCreate,
    SuccessResponse,
    UploadResponse,
)
from app.modules.students.cache import StudentListCache

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_REQUEST = "Invalid request."

# Draft field updated after a successful upload, per media class
UPLOAD_PATH_FIELDS = {
    MediaClass.IMAGE: "profileimagepath",
    MediaClass.VIDEO: "profilevideopath",
}


def get_file_manager(request: Request) -> DraftFileManager:
    """The process-wide Draft File Manager created in the lifespan."""
    return request.app.state.file_manager


async def get_student_list_cache(redis: Redis | None = Depends(get_redis)) -> StudentListCache:
    """Student list cache backed by Redis when it is available."""
    return StudentListCache(redis)


def _parse_uuid(value: str | None) -> UUID | None:
    try:
        return UUID((value or "").strip())
    except ValueError:
        return None


# ============================================
# Drafts
# ============================================


@router.post(
    "/drafts",
    response_model=DraftCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start Registration Draft",
)
async def create_draft(db: AsyncSession = Depends(get_db)) -> DraftCreatedResponse:
    """Create an empty draft for a new registration form."""
    draft_id = await drafts.create_draft(db)
    return DraftCreatedResponse(draft_id=draft_id)


@router.get(
    "/drafts/{draft_id}",
    response_model=DraftResponse,
    summary="Get Registration Draft",
)
async def get_draft(draft_id: UUID, db: AsyncSession = Depends(get_db)) -> DraftResponse:
    """
    Read back a draft, e.g. to restore the form after a page reload.

    Raises:
        HTTPException 404: If the draft does not exist or has expired
    """
    draft = await drafts.get_draft(db, draft_id)
    if draft is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "DRAFT_NOT_FOUND",
                "message": "Draft not found or expired.",
            },
        )
    return DraftResponse.model_validate(draft)


@router.post(
    "/drafts/field",
    response_model=SuccessResponse,
    summary="Update Registration Draft Field",
)
async def update_draft_field(
    draft_id: str | None = Form(None, alias="draftId"),
    field: str | None = Form(None),
    value: str | None = Form(None),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    """
    Save one form field into the draft.

    Returns success false for an unknown draft, unknown field or invalid
    value; the draft is then unchanged.
    """
    parsed_id = _parse_uuid(draft_id)
    if parsed_id is None:
        return SuccessResponse(success=False)

    ok = await drafts.update_field(db, parsed_id, field, value)
    return SuccessResponse(success=ok)


@router.delete(
    "/drafts/{draft_id}",
    response_model=SuccessResponse,
    summary="Abandon Registration Draft",
)
async def delete_draft(
    draft_id: UUID,
    db: AsyncSession = Depends(get_db),
    file_manager: DraftFileManager = Depends(get_file_manager),
) -> SuccessResponse:
    """Delete a draft together with its uploaded files."""
    deleted = await drafts.delete_draft(db, file_manager, draft_id)
    return SuccessResponse(success=deleted)


# ============================================
# Uploads
# ============================================


@router.post(
    "/uploads",
    response_model=UploadResponse,
    summary="Upload Draft Media",
    description="""
Upload a profile image or video into a draft.

Form fields: `type` ("image" or "video"), `file`, `draftId`.

**Limits:**
- Images: JPEG, JPG, PNG up to 5 MB
- Videos: MP4, MOV, MKV, AVI, WMV up to 100 MB

The stored file is recorded on the draft; compression happens after the
registration is submitted.
""",
)
async def upload_draft_file(
    response: Response,
    type: str | None = Form(None),
    file: UploadFile | None = File(None),
    draft_id: str | None = Form(None, alias="draftId"),
    db: AsyncSession = Depends(get_db),
    file_manager: DraftFileManager = Depends(get_file_manager),
) -> UploadResponse:
    """Store an upload under the draft's folder and record its path."""
    media_class = parse_media_class(type)
    parsed_id = _parse_uuid(draft_id)
    if media_class is None or file is None or parsed_id is None:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return UploadResponse(success=False, error=INVALID_REQUEST)

    if await drafts.get_draft(db, parsed_id) is None:
        response.status_code = status.HTTP_404_NOT_FOUND
        return UploadResponse(success=False, error="Draft not found or expired.")

    result = await asyncio.to_thread(
        file_manager.save_draft_file,
        media_class,
        file.file,
        file.filename,
        parsed_id,
        file.size,
    )
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return UploadResponse(success=False, error=result.error)

    updated = await drafts.update_field(db, parsed_id, UPLOAD_PATH_FIELDS[media_class], result.relative_path)
    if not updated:
        # Draft expired or was abandoned while the file was being written
        logger.warning(f"Draft {parsed_id} disappeared during upload; removing {result.relative_path}")
        await asyncio.to_thread(file_manager.delete_draft_files, parsed_id)
        response.status_code = status.HTTP_404_NOT_FOUND
        return UploadResponse(success=False, error="Draft not found or expired.")

    return UploadResponse(success=True, path=result.relative_path)


# ============================================
# Submission
# ============================================


@router.post(
    "/submit",
    response_model=RegistrationResultResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Student Registration",
    responses={
        409: {
            "description": "Email already registered",
            "model": RegistrationResultResponse,
        },
    },
)
async def submit_registration(
    data: StudentRegistrationCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    file_manager: DraftFileManager = Depends(get_file_manager),
    cache: StudentListCache = Depends(get_student_list_cache),
) -> RegistrationResultResponse:
    """
    Create the student account from the submitted form.

    Media uploaded into the draft (if draftId is given) is promoted to the
    new student's folders. Credentials are emailed; when email delivery
    fails they are returned in the response instead.
    """
    result = await service.register_student(db, data, file_manager=file_manager, cache=cache)

    response.status_code = result.status_code
    return RegistrationResultResponse(
        success=result.success,
        message=result.message,
        student_id=result.student_id,
        email=result.email,
        password=result.password,
        email_sent=result.email_sent,
        errors=result.errors,
        failed_stage=result.failed_stage.value if result.failed_stage else None,
    )
