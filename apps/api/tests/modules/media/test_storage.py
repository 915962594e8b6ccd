"""
Unit tests for the Draft File Manager.

These tests cover:
- Saving draft uploads into draft-scoped folders
- Promotion of draft folders to student folders
- Best-effort draft folder deletion
- The expired folder sweep
"""

import io
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from app.modules.media.storage import (
    DraftFileManager,
    MediaStorageError,
    PromotionResult,
    is_draft_token,
    relative_media_path,
)
from app.modules.media.validation import MediaClass

MIB = 1024 * 1024


class TestSaveDraftFile:
    """Tests for DraftFileManager.save_draft_file."""

    def test_stores_file_under_draft_folder(self, file_manager, draft_id, tmp_path, make_image):
        """Accepted uploads land in uploads/images/{draft_id}/ with the original extension."""
        content = make_image()
        result = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(content), "Me.PNG", draft_id)

        assert result.success
        parts = Path(result.relative_path).parts
        assert parts[:3] == ("uploads", "images", str(draft_id))
        assert parts[3].endswith(".png")
        assert (tmp_path / result.relative_path).read_bytes() == content

    def test_measures_stream_when_size_unknown(self, file_manager, draft_id):
        """Size is taken from the stream when not supplied."""
        stream = io.BytesIO(b"x" * 100)
        result = file_manager.save_draft_file(MediaClass.VIDEO, stream, "clip.mp4", draft_id)
        assert result.success

    def test_each_upload_gets_a_fresh_name(self, file_manager, draft_id):
        """Two uploads of the same file never overwrite each other."""
        first = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"a"), "a.jpg", draft_id)
        second = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"a"), "a.jpg", draft_id)

        assert first.relative_path != second.relative_path

    def test_oversized_png_rejected_without_creating_folder(self, file_manager, draft_id, tmp_path):
        """A 10 MiB PNG is rejected with a size reason and nothing is written."""
        stream = io.BytesIO(b"\0" * (10 * MIB))
        result = file_manager.save_draft_file(MediaClass.IMAGE, stream, "huge.png", draft_id)

        assert not result.success
        assert result.error == "Image must be at most 5 MB."
        assert not file_manager.owner_dir(MediaClass.IMAGE, draft_id).exists()
        assert not (tmp_path / "uploads").exists()

    def test_disallowed_extension_rejected(self, file_manager, draft_id):
        """Files outside the allowed extensions are rejected."""
        result = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"GIF89a"), "anim.gif", draft_id)
        assert not result.success
        assert "must be one of" in result.error

    def test_draft_upload_is_not_queued_for_compression(self, file_manager, draft_id, compression_queue):
        """Compression waits until the files are promoted."""
        file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"a"), "a.jpg", draft_id)
        compression_queue.enqueue.assert_not_called()

    def test_write_failure_returns_generic_error(self, file_manager, draft_id):
        """Filesystem errors surface as a failed result, not an exception."""
        with patch("app.modules.media.storage.shutil.copyfileobj", side_effect=OSError("disk full")):
            result = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"a"), "a.jpg", draft_id)

        assert not result.success
        assert result.error == "The file could not be saved. Please try again."
        assert list(file_manager.owner_dir(MediaClass.IMAGE, draft_id).iterdir()) == []


class TestSaveStudentFile:
    """Tests for DraftFileManager.save_student_file."""

    def test_stores_under_student_folder_and_queues(self, file_manager, compression_queue, tmp_path):
        """Direct uploads go to the student folder and are queued for compression."""
        result = file_manager.save_student_file(MediaClass.VIDEO, io.BytesIO(b"v" * 10), "clip.mov", "STU1")

        assert result.success
        assert result.relative_path.startswith("uploads/videos/STU1/")
        compression_queue.enqueue.assert_called_once_with(tmp_path / result.relative_path, "video")


class TestPromote:
    """Tests for DraftFileManager.promote."""

    def test_renames_draft_folder_and_queues_compression(
        self, file_manager, draft_id, make_draft, compression_queue, tmp_path, make_image
    ):
        """After promotion the draft folder is gone and the student folder holds the same file."""
        saved = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(make_image()), "me.png", draft_id)
        file_name = Path(saved.relative_path).name
        draft = make_draft(draft_id, image_path=saved.relative_path)

        result = file_manager.promote(draft, "STU123")

        assert result.image_path == f"uploads/images/STU123/{file_name}"
        assert result.video_path is None
        assert not file_manager.owner_dir(MediaClass.IMAGE, draft_id).exists()
        assert (tmp_path / "uploads" / "images" / "STU123" / file_name).is_file()
        compression_queue.enqueue.assert_called_once_with(
            tmp_path / "uploads" / "images" / "STU123" / file_name, "image"
        )

    def test_promotes_both_media_classes(self, file_manager, draft_id, make_draft, compression_queue):
        """Image and video folders are promoted independently."""
        image = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)
        video = file_manager.save_draft_file(MediaClass.VIDEO, io.BytesIO(b"v"), "b.mp4", draft_id)

        result = file_manager.promote(make_draft(draft_id, image.relative_path, video.relative_path), "STU9")

        assert result.image_path.startswith("uploads/images/STU9/")
        assert result.video_path.startswith("uploads/videos/STU9/")
        assert compression_queue.enqueue.call_count == 2

    def test_missing_draft_folder_is_a_no_op(self, file_manager, draft_id, make_draft, compression_queue):
        """A stored path without a folder yields no promoted path."""
        draft = make_draft(draft_id, image_path=f"uploads/images/{draft_id}/gone.jpg")

        result = file_manager.promote(draft, "STU123")

        assert result.image_path is None
        compression_queue.enqueue.assert_not_called()

    def test_class_without_stored_path_is_skipped(self, file_manager, draft_id, make_draft):
        """A folder without a stored path on the draft is left alone."""
        file_manager.save_draft_file(MediaClass.VIDEO, io.BytesIO(b"v"), "b.mp4", draft_id)

        result = file_manager.promote(make_draft(draft_id), "STU123")

        assert result.video_path is None
        assert file_manager.owner_dir(MediaClass.VIDEO, draft_id).exists()

    def test_stale_student_folder_is_replaced(self, file_manager, draft_id, make_draft):
        """A leftover folder at the target name is removed before renaming."""
        stale = file_manager.owner_dir(MediaClass.IMAGE, "STU123")
        stale.mkdir(parents=True)
        (stale / "old.jpg").write_bytes(b"old")

        saved = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"new"), "new.jpg", draft_id)
        file_manager.promote(make_draft(draft_id, image_path=saved.relative_path), "STU123")

        assert not (stale / "old.jpg").exists()
        assert (stale / Path(saved.relative_path).name).read_bytes() == b"new"

    def test_rename_failure_raises_storage_error(self, file_manager, draft_id, make_draft):
        """Filesystem failures during promotion are raised to the caller."""
        saved = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"a"), "a.jpg", draft_id)

        with patch.object(Path, "rename", side_effect=OSError("cross-device link")):
            with pytest.raises(MediaStorageError):
                file_manager.promote(make_draft(draft_id, image_path=saved.relative_path), "STU1")

    def test_failure_returns_already_promoted_folders_to_draft(
        self, file_manager, draft_id, make_draft, compression_queue
    ):
        """If the video cannot be moved, the image goes back to the draft and can be promoted again."""
        image = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)
        video = file_manager.save_draft_file(MediaClass.VIDEO, io.BytesIO(b"v"), "b.mp4", draft_id)
        draft = make_draft(draft_id, image.relative_path, video.relative_path)
        real_rename = Path.rename

        def rename_except_videos(self, target):
            if Path(target) == file_manager.owner_dir(MediaClass.VIDEO, "STU1"):
                raise OSError("disk full")
            return real_rename(self, target)

        with patch.object(Path, "rename", autospec=True, side_effect=rename_except_videos):
            with pytest.raises(MediaStorageError):
                file_manager.promote(draft, "STU1")

        assert file_manager.owner_dir(MediaClass.IMAGE, draft_id).is_dir()
        assert not file_manager.owner_dir(MediaClass.IMAGE, "STU1").exists()
        compression_queue.enqueue.assert_not_called()

        result = file_manager.promote(draft, "STU2")

        assert result.image_path.startswith("uploads/images/STU2/")
        assert result.video_path.startswith("uploads/videos/STU2/")

    def test_stale_file_at_student_path_is_replaced(self, file_manager, draft_id, make_draft):
        stale = file_manager.owner_dir(MediaClass.VIDEO, "STU123")
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"not a folder")

        saved = file_manager.save_draft_file(MediaClass.VIDEO, io.BytesIO(b"v"), "b.mp4", draft_id)
        result = file_manager.promote(make_draft(draft_id, video_path=saved.relative_path), "STU123")

        assert result.video_path.startswith("uploads/videos/STU123/")
        assert stale.is_dir()

    def test_compression_can_be_deferred(self, file_manager, draft_id, make_draft, compression_queue):
        saved = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)

        result = file_manager.promote(
            make_draft(draft_id, image_path=saved.relative_path), "STU1", queue_compression=False
        )

        compression_queue.enqueue.assert_not_called()
        file_manager.queue_compression(result.image_path, MediaClass.IMAGE)
        compression_queue.enqueue.assert_called_once_with(file_manager.media_root / result.image_path, "image")


class TestRevertPromotion:
    """Tests for DraftFileManager.revert_promotion."""

    def test_moves_folders_back_to_draft(self, file_manager, draft_id, make_draft):
        image = file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)
        video = file_manager.save_draft_file(MediaClass.VIDEO, io.BytesIO(b"v"), "b.mp4", draft_id)
        result = file_manager.promote(make_draft(draft_id, image.relative_path, video.relative_path), "STU1")

        file_manager.revert_promotion(draft_id, "STU1", result)

        assert (file_manager.media_root / image.relative_path).read_bytes() == b"i"
        assert (file_manager.media_root / video.relative_path).read_bytes() == b"v"
        assert not file_manager.owner_dir(MediaClass.IMAGE, "STU1").exists()
        assert not file_manager.owner_dir(MediaClass.VIDEO, "STU1").exists()

    def test_missing_student_folder_is_logged_not_raised(self, file_manager, draft_id):
        result = PromotionResult(image_path="uploads/images/STU1/a.jpg")

        file_manager.revert_promotion(draft_id, "STU1", result)

        assert not file_manager.owner_dir(MediaClass.IMAGE, draft_id).exists()


class TestDiscardFile:
    """Tests for DraftFileManager.discard_file."""

    def test_removes_file_and_empty_folder(self, file_manager):
        saved = file_manager.save_student_file(
            MediaClass.VIDEO, io.BytesIO(b"v"), "b.mp4", "STU1", queue_compression=False
        )

        file_manager.discard_file(saved.relative_path)

        assert not file_manager.owner_dir(MediaClass.VIDEO, "STU1").exists()

    def test_escaping_path_is_ignored(self, file_manager, tmp_path):
        outside = tmp_path / "keep.txt"
        outside.write_bytes(b"keep")

        file_manager.discard_file("uploads/../keep.txt")

        assert outside.exists()


class TestDeleteDraftFiles:
    """Tests for DraftFileManager.delete_draft_files."""

    def test_removes_both_class_folders(self, file_manager, draft_id):
        file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)
        file_manager.save_draft_file(MediaClass.VIDEO, io.BytesIO(b"v"), "b.mp4", draft_id)

        file_manager.delete_draft_files(draft_id)

        assert not file_manager.owner_dir(MediaClass.IMAGE, draft_id).exists()
        assert not file_manager.owner_dir(MediaClass.VIDEO, draft_id).exists()

    def test_is_idempotent(self, file_manager, draft_id):
        """Deleting twice, or deleting nothing, does not raise."""
        file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)

        file_manager.delete_draft_files(draft_id)
        file_manager.delete_draft_files(draft_id)

    def test_errors_are_swallowed(self, file_manager, draft_id):
        file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)

        with patch("app.modules.media.storage.shutil.rmtree", side_effect=OSError("busy")):
            file_manager.delete_draft_files(draft_id)


class TestSweepExpired:
    """Tests for DraftFileManager.sweep_expired."""

    def test_removes_old_draft_folders_only(self, file_manager, draft_id):
        """Old draft folders go; student folders and other names stay."""
        file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)
        student = file_manager.owner_dir(MediaClass.IMAGE, "STU123")
        student.mkdir(parents=True)
        other = file_manager.owner_dir(MediaClass.VIDEO, "not-a-draft")
        other.mkdir(parents=True)

        # Pretend an hour has passed
        later = time.time() + 3600
        with patch("app.modules.media.storage.time.time", return_value=later):
            removed = file_manager.sweep_expired(30)

        assert removed == 1
        assert not file_manager.owner_dir(MediaClass.IMAGE, draft_id).exists()
        assert student.exists()
        assert other.exists()

    def test_keeps_recent_draft_folders(self, file_manager, draft_id):
        file_manager.save_draft_file(MediaClass.IMAGE, io.BytesIO(b"i"), "a.jpg", draft_id)

        assert file_manager.sweep_expired(30) == 0
        assert file_manager.owner_dir(MediaClass.IMAGE, draft_id).exists()

    def test_missing_media_tree(self, tmp_path):
        """Sweeping before anything was uploaded finds nothing."""
        assert DraftFileManager(tmp_path / "empty").sweep_expired(30) == 0


class TestPaths:
    """Tests for path helpers."""

    def test_resolve_inside_uploads(self, file_manager, tmp_path):
        resolved = file_manager.resolve("uploads/images/STU1/a.jpg")
        assert resolved == (tmp_path / "uploads" / "images" / "STU1" / "a.jpg").resolve()

    @pytest.mark.parametrize("path", ["../secret.txt", "uploads/../../etc/passwd", "config.json"])
    def test_resolve_rejects_escapes(self, file_manager, path):
        with pytest.raises(MediaStorageError):
            file_manager.resolve(path)

    def test_relative_media_path_uses_forward_slashes(self):
        assert relative_media_path(MediaClass.VIDEO, "STU1", "x.mp4") == "uploads/videos/STU1/x.mp4"

    def test_is_draft_token(self, draft_id):
        assert is_draft_token(str(draft_id))
        assert not is_draft_token("STU20260101000000123")
