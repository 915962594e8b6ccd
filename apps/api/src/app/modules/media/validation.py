"""
Media Upload Validation

Size and extension rules for student profile media. Validation is based on
the declared file extension only; file contents are not inspected.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath

MIB = 1024 * 1024


class MediaClass(str, Enum):
    """Kinds of profile media, each with its own policy and storage subdirectory."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class MediaPolicy:
    """Upload policy for one media class."""

    label: str
    subdir: str
    max_bytes: int
    max_size_display: str
    extensions: frozenset[str]
    allowed_display: str


MEDIA_POLICIES: dict[MediaClass, MediaPolicy] = {
    MediaClass.IMAGE: MediaPolicy(
        label="Image",
        subdir="images",
        max_bytes=5 * MIB,
        max_size_display="5 MB",
        extensions=frozenset({".jpeg", ".jpg", ".png"}),
        allowed_display="JPEG, JPG, PNG",
    ),
    MediaClass.VIDEO: MediaPolicy(
        label="Video",
        subdir="videos",
        max_bytes=100 * MIB,
        max_size_display="100 MB",
        extensions=frozenset({".mp4", ".mov", ".mkv", ".avi", ".wmv"}),
        allowed_display="MP4, MOV, MKV, AVI, WMV",
    ),
}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating an upload. `error` is set when rejected."""

    accepted: bool
    error: str | None = None


def get_extension(file_name: str | None) -> str:
    """Lower-cased extension including the dot, or "" when there is none."""
    if not file_name:
        return ""
    return PurePath(file_name).suffix.lower()


def parse_media_class(value: str | None) -> MediaClass | None:
    """Map a wire tag such as "image" or "Video" to a MediaClass."""
    if not value:
        return None
    try:
        return MediaClass(value.strip().lower())
    except ValueError:
        return None


def media_class_for_extension(extension: str) -> MediaClass | None:
    """Find the media class whose allowed extensions include `extension`."""
    extension = extension.lower()
    for media_class, policy in MEDIA_POLICIES.items():
        if extension in policy.extensions:
            return media_class
    return None


def validate_file(
    file_name: str | None,
    size_bytes: int | None,
    media_class: MediaClass,
) -> ValidationResult:
    """
    Validate an upload against the policy of its media class.

    Rejects missing/empty files, files over the size limit, and files whose
    extension is absent or not allowed for the class.

    Args:
        file_name: Name declared by the client
        size_bytes: Size of the uploaded content
        media_class: Image or video

    Returns:
        ValidationResult with a human-readable reason on rejection
    """
    policy = MEDIA_POLICIES[media_class]

    if not file_name or not size_bytes or size_bytes <= 0:
        return ValidationResult(False, f"{policy.label} file is empty or missing.")

    if size_bytes > policy.max_bytes:
        return ValidationResult(False, f"{policy.label} must be at most {policy.max_size_display}.")

    extension = get_extension(file_name)
    if not extension or extension not in policy.extensions:
        return ValidationResult(False, f"{policy.label} must be one of: {policy.allowed_display}.")

    return ValidationResult(True)
