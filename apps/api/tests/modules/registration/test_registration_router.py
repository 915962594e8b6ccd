"""
HTTP tests for the registration endpoints.

The application lifespan is not run (no database, Redis or scheduler);
the session dependency is overridden and the Draft File Manager is placed
on app.state directly.
"""

from datetime import date, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.database import get_db
from app.main import app
from app.modules.media.storage import DraftFileManager
from app.modules.registration.service import RegistrationResult, RegistrationStage

ROUTER = "app.modules.registration.router"
BASE = "/api/v1/registration"


@pytest.fixture
def client(tmp_path):
    """Test client with a stub session and a temporary media root."""

    async def override_get_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = override_get_db
    app.state.file_manager = DraftFileManager(tmp_path, compression_queue=MagicMock())
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        del app.state.file_manager


@pytest.fixture
def mock_drafts():
    with patch(f"{ROUTER}.drafts") as drafts:
        yield drafts


class TestDraftEndpoints:
    """Tests for the draft endpoints."""

    def test_create_draft(self, client, mock_drafts):
        draft_id = uuid4()
        mock_drafts.create_draft = AsyncMock(return_value=draft_id)

        response = client.post(f"{BASE}/drafts")

        assert response.status_code == 201
        assert response.json() == {"draftId": str(draft_id)}

    def test_get_missing_draft_returns_404(self, client, mock_drafts):
        mock_drafts.get_draft = AsyncMock(return_value=None)

        response = client.get(f"{BASE}/drafts/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"] == {
            "error": "DRAFT_NOT_FOUND",
            "message": "Draft not found or expired.",
        }

    def test_get_draft_serializes_camel_case(self, client, mock_drafts, sample_draft):
        sample_draft.full_name = "Ada Lovelace"
        mock_drafts.get_draft = AsyncMock(return_value=sample_draft)

        response = client.get(f"{BASE}/drafts/{sample_draft.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["draftId"] == str(sample_draft.id)
        assert body["fullName"] == "Ada Lovelace"
        assert body["profileImagePath"] is None

    def test_update_field(self, client, mock_drafts):
        draft_id = uuid4()
        mock_drafts.update_field = AsyncMock(return_value=True)

        response = client.post(
            f"{BASE}/drafts/field",
            data={"draftId": str(draft_id), "field": "fullname", "value": "Ada"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        mock_drafts.update_field.assert_awaited_once()
        _, called_id, field, value = mock_drafts.update_field.call_args.args
        assert (called_id, field, value) == (draft_id, "fullname", "Ada")

    def test_update_field_with_malformed_draft_id(self, client, mock_drafts):
        mock_drafts.update_field = AsyncMock(return_value=True)

        response = client.post(
            f"{BASE}/drafts/field",
            data={"draftId": "not-a-uuid", "field": "fullname", "value": "Ada"},
        )

        assert response.json() == {"success": False}
        mock_drafts.update_field.assert_not_awaited()

    def test_delete_draft(self, client, mock_drafts):
        mock_drafts.delete_draft = AsyncMock(return_value=True)

        response = client.delete(f"{BASE}/drafts/{uuid4()}")

        assert response.json() == {"success": True}


class TestUploadEndpoint:
    """Tests for POST /uploads."""

    def test_unknown_type_is_invalid_request(self, client, mock_drafts):
        response = client.post(
            f"{BASE}/uploads",
            data={"type": "audio", "draftId": str(uuid4())},
            files={"file": ("a.mp3", b"data", "audio/mpeg")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request."

    def test_missing_draft_returns_404(self, client, mock_drafts, tmp_path):
        mock_drafts.get_draft = AsyncMock(return_value=None)

        response = client.post(
            f"{BASE}/uploads",
            data={"type": "image", "draftId": str(uuid4())},
            files={"file": ("a.png", b"png-bytes", "image/png")},
        )

        assert response.status_code == 404
        assert not (tmp_path / "uploads").exists()

    def test_rejected_extension(self, client, mock_drafts):
        mock_drafts.get_draft = AsyncMock(return_value=SimpleNamespace(id=uuid4()))

        response = client.post(
            f"{BASE}/uploads",
            data={"type": "image", "draftId": str(uuid4())},
            files={"file": ("a.gif", b"GIF89a", "image/gif")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Image must be one of: JPEG, JPG, PNG."

    def test_empty_file_reports_validator_reason(self, client, mock_drafts, tmp_path):
        draft_id = uuid4()
        mock_drafts.get_draft = AsyncMock(return_value=SimpleNamespace(id=draft_id))

        response = client.post(
            f"{BASE}/uploads",
            data={"type": "image", "draftId": str(draft_id)},
            files={"file": ("empty.png", b"", "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Image file is empty or missing."
        assert not (tmp_path / "uploads" / "images" / str(draft_id)).exists()

    def test_image_upload_stored_under_draft(self, client, mock_drafts, tmp_path):
        draft_id = uuid4()
        mock_drafts.get_draft = AsyncMock(return_value=SimpleNamespace(id=draft_id))
        mock_drafts.update_field = AsyncMock(return_value=True)

        response = client.post(
            f"{BASE}/uploads",
            data={"type": "image", "draftId": str(draft_id)},
            files={"file": ("photo.PNG", b"png-bytes", "image/png")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["path"].startswith(f"uploads/images/{draft_id}/")
        assert body["path"].endswith(".png")
        assert (tmp_path / body["path"]).read_bytes() == b"png-bytes"
        _, _, field, value = mock_drafts.update_field.call_args.args
        assert (field, value) == ("profileimagepath", body["path"])

    def test_draft_vanishing_mid_upload_removes_file(self, client, mock_drafts, tmp_path):
        draft_id = uuid4()
        mock_drafts.get_draft = AsyncMock(return_value=SimpleNamespace(id=draft_id))
        mock_drafts.update_field = AsyncMock(return_value=False)

        response = client.post(
            f"{BASE}/uploads",
            data={"type": "video", "draftId": str(draft_id)},
            files={"file": ("clip.mp4", b"video-bytes", "video/mp4")},
        )

        assert response.status_code == 404
        assert not (tmp_path / "uploads" / "videos" / str(draft_id)).exists()

    def test_oversized_request_rejected(self, client, mock_drafts):
        with patch.object(settings, "max_upload_request_bytes", 16):
            response = client.post(
                f"{BASE}/uploads",
                data={"type": "image", "draftId": str(uuid4())},
                files={"file": ("a.png", b"x" * 1024, "image/png")},
            )

        assert response.status_code == 413
        assert response.json() == {"success": False, "error": "Request body is too large."}


class TestSubmitEndpoint:
    """Tests for POST /submit."""

    payload = {
        "fullName": "Ada Lovelace",
        "email": "ada@example.com",
        "dateOfBirth": "2005-12-10",
        "heightCm": "165.5",
        "gender": "female",
        "mobileNumber": "+15550100",
    }

    def test_successful_registration(self, client):
        result = RegistrationResult(
            success=True, student_id="STU20260101120000123", email="ada@example.com", email_sent=True
        )
        with patch(f"{ROUTER}.service.register_student", AsyncMock(return_value=result)) as register:
            response = client.post(f"{BASE}/submit", json=self.payload)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["studentId"] == "STU20260101120000123"
        assert body["password"] is None
        assert body["message"] == "Registration successful. Credentials have been emailed."
        data = register.call_args.args[1]
        assert data.full_name == "Ada Lovelace"
        assert data.draft_id is None

    def test_duplicate_email_returns_409(self, client):
        result = RegistrationResult.failed(
            RegistrationStage.VALIDATING, "Email is already registered.", "DUPLICATE_EMAIL", 409
        )
        with patch(f"{ROUTER}.service.register_student", AsyncMock(return_value=result)):
            response = client.post(f"{BASE}/submit", json=self.payload)

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["errors"] == ["Email is already registered."]
        assert body["failedStage"] == "validating"

    def test_future_date_of_birth_rejected(self, client):
        register = AsyncMock()
        future = date.today() + timedelta(days=2)
        with patch(f"{ROUTER}.service.register_student", register):
            response = client.post(f"{BASE}/submit", json={**self.payload, "dateOfBirth": future.isoformat()})

        assert response.status_code == 422
        register.assert_not_awaited()
