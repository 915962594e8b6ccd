"""
Media Module

Storage, validation and background compression of student profile media:
- validation: extension and size policy per media class
- storage: draft-scoped folders, promotion to student folders, sweeps
- compression: single-consumer background queue
- compressors: Pillow image and ffmpeg video compression
"""

from .compression import CompressionWorker
from .compressors import CompressionOptions
from .storage import DraftFileManager, FileUploadResult, MediaStorageError, PromotionResult
from .validation import MediaClass, parse_media_class, validate_file

__all__ = [
    "CompressionOptions",
    "CompressionWorker",
    "DraftFileManager",
    "FileUploadResult",
    "MediaClass",
    "MediaStorageError",
    "PromotionResult",
    "parse_media_class",
    "validate_file",
]
