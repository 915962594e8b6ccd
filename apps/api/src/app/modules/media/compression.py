"""
Background Compression Queue

An unbounded FIFO of (full_path, media_type) jobs consumed by exactly one
dedicated worker thread per process. Enqueueing never blocks and never
fails the caller; compression happens after the upload response has been
sent, and the stored path does not change.

Lifecycle:
    worker = CompressionWorker(CompressionOptions.from_settings(settings))
    worker.start()          # FastAPI lifespan startup
    worker.enqueue(path, "image")
    worker.stop()           # FastAPI lifespan shutdown (drains, then joins)

Error Handling:
- A failed job is logged and the worker moves on to the next one
- Missing ffmpeg skips video jobs with a warning
- Jobs queued after stop() are dropped with a warning
"""

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from app.modules.media.compressors import (
    CompressionError,
    CompressionOptions,
    compress_image,
    compress_video,
    find_ffmpeg,
)
from app.modules.media.validation import MediaClass, get_extension, media_class_for_extension

logger = logging.getLogger(__name__)

WORKER_THREAD_NAME = "media-compression"
DEFAULT_STOP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class CompressionJob:
    """A stored file waiting to be compressed."""

    full_path: str
    media_type: str


_STOP = object()


class CompressionWorker:
    """Single-consumer background compression queue."""

    def __init__(self, options: CompressionOptions | None = None):
        self.options = options or CompressionOptions()
        self._queue: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._accepting = False
        self._lock = threading.Lock()
        self.stats = {"processed": 0, "failed": 0, "skipped": 0, "dropped": 0}

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        """Approximate number of queued jobs."""
        return self._queue.qsize()

    def start(self) -> None:
        """Start the consumer thread. Calling start() twice is a no-op."""
        with self._lock:
            if self.is_running:
                logger.warning("Compression worker already running")
                return

            self._accepting = True
            self._thread = threading.Thread(
                target=self._run,
                name=WORKER_THREAD_NAME,
                daemon=True,
            )
            self._thread.start()

        logger.info("Background compression worker started")

    def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT_SECONDS) -> None:
        """
        Stop accepting jobs, let queued jobs finish, and join the thread.

        Jobs still running after `timeout` seconds are abandoned with the
        daemon thread; their originals are untouched.
        """
        with self._lock:
            if self._thread is None:
                logger.debug("Compression worker not started, nothing to stop")
                return
            self._accepting = False
            thread = self._thread
            self._thread = None

        self._queue.put(_STOP)
        thread.join(timeout)

        if thread.is_alive():
            logger.warning(f"Compression worker did not stop within {timeout}s")
        else:
            logger.info("Background compression worker stopped")

    def enqueue(self, full_path: str | Path, media_type: str) -> bool:
        """
        Queue a stored file for compression without blocking.

        Returns:
            True if the job was queued, False if it was dropped
        """
        path = str(full_path)

        if not path or not Path(path).is_file():
            logger.debug(f"Compression skipped: path empty or file missing: {path}")
            return False

        if not self._accepting:
            self.stats["dropped"] += 1
            logger.warning(f"Compression queue closed, dropping {media_type} job: {path}")
            return False

        try:
            self._queue.put_nowait(CompressionJob(full_path=path, media_type=media_type))
        except queue.Full:
            self.stats["dropped"] += 1
            logger.warning(f"Compression queue full, dropping {media_type} job: {path}")
            return False

        logger.info(f"Queued {media_type} for compression: {path}")
        return True

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is _STOP:
                    return
                self.process(job)
            finally:
                self._queue.task_done()

    def process(self, job: CompressionJob) -> None:
        """
        Compress one job, logging instead of raising on failure.

        Dispatches on the type tag and on the file extension, so a job tagged
        "image" for a .png file and an untagged .mp4 both find their compressor.
        """
        extension = get_extension(job.full_path)
        tag = (job.media_type or "").strip().lower()
        by_extension = media_class_for_extension(extension)
        is_image = tag == MediaClass.IMAGE.value or by_extension is MediaClass.IMAGE
        is_video = tag == MediaClass.VIDEO.value or by_extension is MediaClass.VIDEO

        try:
            if is_image:
                logger.info(f"Starting image compression: {job.full_path}")
                compress_image(job.full_path, self.options)
                logger.info(f"Image compressed successfully: {job.full_path}")
            elif is_video:
                ffmpeg = find_ffmpeg(self.options.ffmpeg_path)
                if not ffmpeg:
                    self.stats["skipped"] += 1
                    logger.warning(f"FFmpeg not found. Video compression skipped for {job.full_path}")
                    return
                logger.info(f"Starting video compression: {job.full_path}")
                compress_video(job.full_path, self.options, ffmpeg)
                logger.info(f"Video compressed successfully: {job.full_path}")
            else:
                self.stats["skipped"] += 1
                logger.warning(f"Unknown media type '{job.media_type}' for {job.full_path}")
                return

            self.stats["processed"] += 1
        except CompressionError as e:
            self.stats["failed"] += 1
            logger.error(f"Compression failed for {job.full_path}: {e}")
        except Exception as e:
            self.stats["failed"] += 1
            logger.error(f"Unexpected compression error for {job.full_path}: {e}", exc_info=True)

    def join(self) -> None:
        """Block until every queued job has been processed."""
        self._queue.join()
