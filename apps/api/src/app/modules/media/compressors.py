"""
Media Compressors

In-place compression of stored profile media:
- Images are decoded with Pillow, shrunk to fit the configured bounds and
  re-encoded in their original format.
- Videos are re-encoded with ffmpeg (libx264, CRF quality), audio copied.

Both write to a temporary sibling file and atomically replace the original
only on success, so a failure always leaves the original file usable.
"""

import logging
import os
import shutil
import subprocess
import uuid
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageOps

from app.core.config import Settings

logger = logging.getLogger(__name__)

JPEG_EXTENSIONS = {".jpg", ".jpeg"}
PNG_COMPRESS_LEVEL = 9


class CompressionError(Exception):
    """Raised when a media file could not be compressed."""


@dataclass(frozen=True)
class CompressionOptions:
    """Tunables for image and video compression."""

    image_max_width: int = 1920
    image_max_height: int = 1080
    image_jpeg_quality: int = 85
    video_crf: int = 23
    ffmpeg_path: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompressionOptions":
        return cls(
            image_max_width=settings.image_max_width,
            image_max_height=settings.image_max_height,
            image_jpeg_quality=settings.image_jpeg_quality,
            video_crf=settings.video_crf,
            ffmpeg_path=settings.ffmpeg_path,
        )


def _temp_sibling(path: Path) -> Path:
    return path.with_name(f"temp_{uuid.uuid4().hex}{path.suffix}")


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove temporary file {path}: {e}")


def compress_image(full_path: str | Path, options: CompressionOptions) -> None:
    """
    Shrink and re-encode an image in place.

    The image is only ever scaled down, preserving aspect ratio. JPEGs are
    written at the configured quality; PNGs at maximum lossless compression.

    Raises:
        CompressionError: If the image cannot be decoded or written
    """
    path = Path(full_path)
    temp_path = _temp_sibling(path)
    is_jpeg = path.suffix.lower() in JPEG_EXTENSIONS

    try:
        with Image.open(path) as source:
            image = ImageOps.exif_transpose(source)
            image.thumbnail(
                (options.image_max_width, options.image_max_height),
                Image.Resampling.LANCZOS,
            )

            if is_jpeg:
                if image.mode not in ("RGB", "L"):
                    image = image.convert("RGB")
                image.save(
                    temp_path,
                    format="JPEG",
                    quality=options.image_jpeg_quality,
                    optimize=True,
                )
            else:
                image.save(
                    temp_path,
                    format="PNG",
                    optimize=True,
                    compress_level=PNG_COMPRESS_LEVEL,
                )

        os.replace(temp_path, path)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        _remove_quietly(temp_path)
        raise CompressionError(f"Image compression failed for {path}: {e}") from e


def find_ffmpeg(configured_path: str | None = None) -> str | None:
    """
    Locate the ffmpeg binary.

    Uses the configured path when it points at an existing file, otherwise
    searches PATH. Returns None when ffmpeg is not available.
    """
    if configured_path and configured_path.strip():
        candidate = Path(configured_path.strip())
        if candidate.is_file():
            return str(candidate)
        logger.warning(f"Configured ffmpeg path does not exist: {candidate}")

    return shutil.which("ffmpeg")


def build_ffmpeg_command(ffmpeg: str, source: Path, target: Path, crf: int) -> list[str]:
    """Arguments for re-encoding video with libx264 and copying audio through."""
    return [
        ffmpeg,
        "-i",
        str(source),
        "-c:v",
        "libx264",
        "-crf",
        str(crf),
        "-c:a",
        "copy",
        "-y",
        str(target),
    ]


def compress_video(full_path: str | Path, options: CompressionOptions, ffmpeg: str) -> None:
    """
    Re-encode a video in place using ffmpeg.

    Raises:
        CompressionError: If ffmpeg exits non-zero or cannot be started
    """
    path = Path(full_path)
    temp_path = _temp_sibling(path)
    command = build_ffmpeg_command(ffmpeg, path, temp_path, options.video_crf)

    try:
        completed = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            check=False,
        )
    except OSError as e:
        _remove_quietly(temp_path)
        raise CompressionError(f"Could not start ffmpeg for {path}: {e}") from e

    if completed.returncode == 0 and temp_path.exists():
        try:
            os.replace(temp_path, path)
        except OSError as e:
            _remove_quietly(temp_path)
            raise CompressionError(f"Could not replace {path} after compression: {e}") from e
        return

    _remove_quietly(temp_path)
    stderr_tail = completed.stderr.decode("utf-8", errors="replace")[-500:] if completed.stderr else ""
    raise CompressionError(
        f"ffmpeg failed with exit code {completed.returncode} for {path}: {stderr_tail}"
    )
