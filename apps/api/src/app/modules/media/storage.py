"""
Draft File Manager

Owns the media tree under <media_root>/uploads:

    uploads/images/{draft_id|student_id}/{random}.{ext}
    uploads/videos/{draft_id|student_id}/{random}.{ext}

Draft uploads are written straight into the class subdirectory under a
folder named by the draft ID. Promotion renames that folder to the student
ID, so submitting a registration is a directory rename rather than a copy.
A folder name is either a draft ID (a UUID) or a student ID, never both.

All methods are synchronous filesystem operations; async callers run them
through asyncio.to_thread.
"""

import logging
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Protocol
from uuid import UUID

from app.modules.media.validation import (
    MEDIA_POLICIES,
    MediaClass,
    get_extension,
    validate_file,
)

logger = logging.getLogger(__name__)

UPLOADS_DIR = "uploads"
COPY_CHUNK_BYTES = 1024 * 1024


class CompressionQueue(Protocol):
    """Anything that accepts fire-and-forget compression jobs."""

    def enqueue(self, full_path: str | Path, media_type: str) -> bool: ...


class MediaStorageError(Exception):
    """Raised when media could not be moved into place on the filesystem."""


@dataclass(frozen=True)
class FileUploadResult:
    """Result of a single file upload attempt."""

    success: bool
    relative_path: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class PromotionResult:
    """New permanent media paths after promotion; None where nothing was promoted."""

    image_path: str | None = None
    video_path: str | None = None

    def paths(self) -> list[tuple[MediaClass, str]]:
        """Promoted (media class, relative path) pairs."""
        pairs = [(MediaClass.IMAGE, self.image_path), (MediaClass.VIDEO, self.video_path)]
        return [(media_class, path) for media_class, path in pairs if path]


def stream_size(stream: BinaryIO) -> int:
    """Size of a seekable stream, leaving its position unchanged."""
    position = stream.tell()
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(position)
    return size


def is_draft_token(name: str) -> bool:
    """True when a directory name is a draft ID (a UUID)."""
    try:
        UUID(name)
    except ValueError:
        return False
    return True


def relative_media_path(media_class: MediaClass, owner: str, file_name: str) -> str:
    """Relative path of a media file, always with forward slashes."""
    return str(PurePosixPath(UPLOADS_DIR, MEDIA_POLICIES[media_class].subdir, owner, file_name))


class DraftFileManager:
    """Places, promotes and deletes draft and student media on disk."""

    def __init__(self, media_root: str | Path, compression_queue: CompressionQueue | None = None):
        self.media_root = Path(media_root)
        self.compression_queue = compression_queue

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def class_root(self, media_class: MediaClass) -> Path:
        return self.media_root / UPLOADS_DIR / MEDIA_POLICIES[media_class].subdir

    def owner_dir(self, media_class: MediaClass, owner: str | UUID) -> Path:
        return self.class_root(media_class) / str(owner)

    def resolve(self, relative_path: str) -> Path:
        """
        Absolute path for a stored relative path.

        Raises:
            MediaStorageError: If the path escapes the uploads tree
        """
        uploads = (self.media_root / UPLOADS_DIR).resolve()
        full = (self.media_root / relative_path).resolve()
        if not full.is_relative_to(uploads):
            raise MediaStorageError(f"Path outside the uploads tree: {relative_path}")
        return full

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def _save(
        self,
        media_class: MediaClass,
        stream: BinaryIO,
        file_name: str | None,
        owner: str,
        size: int | None,
    ) -> FileUploadResult:
        if size is None:
            size = stream_size(stream)

        validation = validate_file(file_name, size, media_class)
        if not validation.accepted:
            return FileUploadResult(success=False, error=validation.error)

        directory = self.owner_dir(media_class, owner)
        stored_name = f"{uuid.uuid4().hex}{get_extension(file_name)}"
        full_path = directory / stored_name

        created = False
        try:
            directory.mkdir(parents=True, exist_ok=True)
            # "xb" never overwrites an existing file
            with open(full_path, "xb") as target:
                created = True
                shutil.copyfileobj(stream, target, COPY_CHUNK_BYTES)
        except OSError as e:
            logger.error(f"Failed to store {media_class.value} upload at {full_path}: {e}")
            if created:
                full_path.unlink(missing_ok=True)
            return FileUploadResult(success=False, error="The file could not be saved. Please try again.")

        relative_path = relative_media_path(media_class, owner, stored_name)
        logger.info(f"Stored {media_class.value} upload: {relative_path} ({size} bytes)")
        return FileUploadResult(success=True, relative_path=relative_path)

    def save_draft_file(
        self,
        media_class: MediaClass,
        stream: BinaryIO,
        file_name: str | None,
        draft_id: UUID,
        size: int | None = None,
    ) -> FileUploadResult:
        """
        Validate an upload and store it under the draft's folder.

        Compression is not queued for draft files; it happens once the
        files are promoted to the student folder.

        Args:
            media_class: Image or video
            stream: Binary stream positioned at the start of the content
            file_name: Client-declared file name (only its extension is kept)
            draft_id: Owning draft
            size: Content size when known (measured from the stream otherwise)

        Returns:
            FileUploadResult with the relative path, or the rejection reason
        """
        return self._save(media_class, stream, file_name, str(draft_id), size)

    def save_student_file(
        self,
        media_class: MediaClass,
        stream: BinaryIO,
        file_name: str | None,
        student_id: str,
        size: int | None = None,
        *,
        queue_compression: bool = True,
    ) -> FileUploadResult:
        """
        Store an upload directly under a student's folder and queue compression.

        Used when a registration submits files with the form instead of
        uploading them into a draft first. Callers that may still undo the
        upload pass queue_compression=False and call queue_compression()
        once the registration is committed.
        """
        result = self._save(media_class, stream, file_name, student_id, size)
        if queue_compression and result.success and result.relative_path:
            self.queue_compression(result.relative_path, media_class)
        return result

    def discard_file(self, relative_path: str) -> None:
        """Delete a stored file and its folder if that leaves it empty. Errors are logged."""
        try:
            full_path = self.resolve(relative_path)
            full_path.unlink(missing_ok=True)
            if full_path.parent.is_dir() and not any(full_path.parent.iterdir()):
                full_path.parent.rmdir()
            logger.info(f"Discarded media file: {relative_path}")
        except (OSError, MediaStorageError) as e:
            logger.warning(f"Could not discard media file {relative_path}: {e}")

    def queue_compression(self, relative_path: str, media_class: MediaClass) -> None:
        """Queue a stored file for background compression. Never raises."""
        full_path = self.media_root / relative_path
        if self.compression_queue is None:
            return
        try:
            self.compression_queue.enqueue(full_path, media_class.value)
        except Exception as e:
            logger.warning(f"Failed to queue compression for {full_path}: {e}")

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------

    def promote(self, draft, student_id: str, *, queue_compression: bool = True) -> PromotionResult:
        """
        Move a draft's media folders to the student's folders.

        For each media class where the draft has a stored path and a draft
        folder exists, any stale student folder is removed and the draft
        folder is renamed to the student ID. Promotion is all or nothing:
        if any rename fails, the folders already moved are renamed back to
        the draft ID before the error is raised. Compression is queued only
        once every folder is in place.

        Args:
            draft: Object exposing id, profile_image_path and profile_video_path
            student_id: The new student's identifier
            queue_compression: False when the caller queues compression
                itself after committing (see revert_promotion)

        Returns:
            PromotionResult with the new relative paths

        Raises:
            MediaStorageError: If a folder could not be removed or renamed
        """
        stored_paths = {
            MediaClass.IMAGE: draft.profile_image_path,
            MediaClass.VIDEO: draft.profile_video_path,
        }
        promoted: dict[MediaClass, str | None] = {media_class: None for media_class in MediaClass}
        moved: list[MediaClass] = []

        for media_class, stored_path in stored_paths.items():
            if not stored_path:
                continue

            source = self.owner_dir(media_class, draft.id)
            if not source.is_dir():
                logger.warning(
                    f"Draft {draft.id} has a {media_class.value} path but no folder; skipping"
                )
                continue

            target = self.owner_dir(media_class, student_id)
            try:
                if target.is_dir():
                    logger.warning(f"Removing stale {media_class.value} folder for {student_id}")
                    shutil.rmtree(target)
                elif target.exists():
                    target.unlink()
                source.rename(target)
            except OSError as e:
                self._move_back(moved, draft.id, student_id)
                raise MediaStorageError(
                    f"Could not promote {media_class.value} folder of draft {draft.id} "
                    f"to {student_id}: {e}"
                ) from e

            moved.append(media_class)
            promoted[media_class] = relative_media_path(media_class, student_id, PurePosixPath(stored_path).name)
            logger.info(f"Promoted draft {draft.id} {media_class.value} to {promoted[media_class]}")

        result = PromotionResult(
            image_path=promoted[MediaClass.IMAGE],
            video_path=promoted[MediaClass.VIDEO],
        )
        if queue_compression:
            for media_class, path in result.paths():
                self.queue_compression(path, media_class)
        return result

    def revert_promotion(self, draft_id: UUID, student_id: str, result: PromotionResult) -> None:
        """
        Undo a promotion whose registration was not committed.

        Folders listed in `result` are renamed from the student ID back to
        the draft ID, so the still-existing draft row keeps its media.
        Failures are logged; the remaining folders are still moved back.
        """
        self._move_back([media_class for media_class, _ in result.paths()], draft_id, student_id)

    def _move_back(self, media_classes: list[MediaClass], draft_id: UUID, student_id: str) -> None:
        for media_class in reversed(media_classes):
            source = self.owner_dir(media_class, student_id)
            target = self.owner_dir(media_class, draft_id)
            try:
                source.rename(target)
                logger.info(f"Returned {media_class.value} folder of {student_id} to draft {draft_id}")
            except OSError as e:
                logger.error(
                    f"Could not return {media_class.value} folder of {student_id} to draft {draft_id}: {e}"
                )

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def delete_draft_files(self, draft_id: UUID) -> None:
        """Remove a draft's folders. Missing folders and errors are ignored."""
        for media_class in MediaClass:
            directory = self.owner_dir(media_class, draft_id)
            if not directory.exists():
                continue
            try:
                shutil.rmtree(directory)
                logger.info(f"Deleted draft {media_class.value} folder: {directory}")
            except OSError as e:
                logger.warning(f"Could not delete draft folder {directory}: {e}")

    def sweep_expired(self, expiry_minutes: int) -> int:
        """
        Delete draft folders older than the expiry window.

        Only folders named by a draft ID are considered; student folders are
        never touched. Runs independently of the draft-row sweep so folders
        whose rows are already gone are still cleaned up.

        Age is measured from st_birthtime where the platform reports it
        (macOS, BSD). Elsewhere st_ctime is used, which on Linux is the
        inode change time: adding or removing a file in the folder resets
        it, so a folder is swept once it has gone untouched for the window
        rather than once it is that old.

        Returns:
            Number of folders removed
        """
        cutoff = time.time() - expiry_minutes * 60
        removed = 0

        for media_class in MediaClass:
            root = self.class_root(media_class)
            if not root.is_dir():
                continue

            for child in root.iterdir():
                if not child.is_dir() or not is_draft_token(child.name):
                    continue
                try:
                    stat = child.stat()
                    # st_ctime: last entry added or removed, on Linux
                    changed = getattr(stat, "st_birthtime", stat.st_ctime)
                    if changed >= cutoff:
                        continue
                    shutil.rmtree(child)
                    removed += 1
                    logger.info(f"Swept expired draft folder: {child}")
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.warning(f"Could not sweep draft folder {child}: {e}")

        return removed
