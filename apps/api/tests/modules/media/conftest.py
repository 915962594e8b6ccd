"""
Fixtures for media tests.
"""

import io
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from PIL import Image

from app.modules.media.storage import DraftFileManager


@pytest.fixture
def compression_queue():
    """A compression queue that records jobs instead of running them."""
    queue = MagicMock()
    queue.enqueue = MagicMock(return_value=True)
    return queue


@pytest.fixture
def file_manager(tmp_path, compression_queue):
    """Draft File Manager rooted in a temporary directory."""
    return DraftFileManager(tmp_path, compression_queue=compression_queue)


@pytest.fixture
def draft_id():
    return uuid4()


@pytest.fixture
def make_draft():
    """Build a minimal draft-like object for promotion."""

    def _make(draft_id, image_path=None, video_path=None):
        return SimpleNamespace(
            id=draft_id,
            profile_image_path=image_path,
            profile_video_path=video_path,
        )

    return _make


@pytest.fixture
def make_image():
    """Encode a solid-colour image."""

    def _make(size=(64, 48), fmt="PNG", color=(200, 30, 30)) -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make
