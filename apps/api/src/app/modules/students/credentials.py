"""
Student Credentials

Generation of human-readable student identifiers and strong temporary
passwords for newly registered students.
"""

import logging
import secrets
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

STUDENT_ID_PREFIX = "STU"
STUDENT_ID_ATTEMPTS = 5
STUDENT_ID_FALLBACK_LENGTH = 25

# Visually ambiguous characters (I, O, l, o, 0, 1) are excluded
UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
LOWERCASE = "abcdefghijkmnpqrstuvwxyz"
DIGITS = "23456789"
SYMBOLS = "!@$%*?_-"

MIN_PASSWORD_LENGTH = 8
DEFAULT_PASSWORD_LENGTH = 12


def _timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now(UTC)).strftime("%Y%m%d%H%M%S")


async def generate_student_id(exists: Callable[[str], Awaitable[bool]]) -> str:
    """
    Generate a unique student identifier.

    Format is STU + UTC timestamp + three random digits, e.g.
    STU20260118093000427. Each candidate is checked with `exists`; after
    five collisions a UUID-based suffix is used instead, truncated to fit
    the column's unique index.

    Args:
        exists: Async predicate returning True if an ID is already taken

    Returns:
        A student identifier
    """
    for attempt in range(STUDENT_ID_ATTEMPTS):
        candidate = f"{STUDENT_ID_PREFIX}{_timestamp()}{secrets.randbelow(900) + 100}"
        if not await exists(candidate):
            return candidate
        logger.debug(f"Student ID collision on attempt {attempt + 1}: {candidate}")

    fallback = f"{STUDENT_ID_PREFIX}{_timestamp()}{uuid.uuid4().hex}"[:STUDENT_ID_FALLBACK_LENGTH]
    logger.warning(f"Student ID collisions exhausted retries, using fallback {fallback}")
    return fallback


def generate_password(length: int = DEFAULT_PASSWORD_LENGTH) -> str:
    """
    Generate a random temporary password.

    Contains at least one uppercase letter, lowercase letter, digit and
    symbol; characters are picked and shuffled with the `secrets` CSPRNG.
    Lengths below 8 are raised to 8.
    """
    length = max(length, MIN_PASSWORD_LENGTH)

    chars = [
        secrets.choice(UPPERCASE),
        secrets.choice(LOWERCASE),
        secrets.choice(DIGITS),
        secrets.choice(SYMBOLS),
    ]
    alphabet = UPPERCASE + LOWERCASE + DIGITS + SYMBOLS
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))

    # Fisher-Yates with a CSPRNG
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]

    return "".join(chars)
