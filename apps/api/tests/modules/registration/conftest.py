"""
Fixtures for registration tests.
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.modules.registration.models import RegistrationDraft
from app.modules.registration.schemas import StudentRegistrationCreate
from app.modules.users.models import Gender


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def sample_draft():
    """An empty draft created a minute ago."""
    created = datetime.now(UTC) - timedelta(minutes=1)
    return RegistrationDraft(
        id=uuid4(),
        created_at=created,
        last_updated_at=created,
    )


@pytest.fixture
def sample_registration():
    """A valid registration form without a draft."""
    return StudentRegistrationCreate(
        full_name="Ada Lovelace",
        email="ada@example.com",
        date_of_birth=date(2005, 12, 10),
        height_cm=Decimal("165.5"),
        gender=Gender.FEMALE,
        mobile_number="+15550100",
    )
