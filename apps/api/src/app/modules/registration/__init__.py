"""
Registration Module

Student self-registration: incremental drafts, draft media uploads,
submission into a student account, and cleanup of abandoned drafts.
"""

from .models import RegistrationDraft
from .router import router
from .service import RegistrationResult, RegistrationStage, register_student

__all__ = [
    "RegistrationDraft",
    "RegistrationResult",
    "RegistrationStage",
    "register_student",
    "router",
]
