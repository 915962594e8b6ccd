"""
Registration Draft Repository

Database operations for registration drafts. Only data access lives here;
field parsing and file handling belong to the draft service.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import RegistrationDraft


async def create(db: AsyncSession, now: datetime) -> RegistrationDraft:
    """Create an empty draft with both timestamps set to `now`."""
    draft = RegistrationDraft(created_at=now, last_updated_at=now)

    db.add(draft)
    await db.commit()
    await db.refresh(draft)

    return draft


async def get_by_id(db: AsyncSession, draft_id: UUID) -> RegistrationDraft | None:
    """Get a draft by ID."""
    return await db.get(RegistrationDraft, draft_id)


async def save(db: AsyncSession, draft: RegistrationDraft) -> RegistrationDraft:
    """Commit pending changes on a draft."""
    db.add(draft)
    await db.commit()
    return draft


async def delete_by_id(db: AsyncSession, draft_id: UUID, *, commit: bool = True) -> bool:
    """
    Delete a draft row.

    Args:
        db: Database session
        draft_id: Draft to delete
        commit: Commit immediately; pass False to join the caller's transaction

    Returns:
        True if a row was deleted
    """
    result = await db.execute(delete(RegistrationDraft).where(RegistrationDraft.id == draft_id))
    if commit:
        await db.commit()
    return result.rowcount > 0


async def get_expired_ids(db: AsyncSession, cutoff: datetime) -> list[UUID]:
    """IDs of drafts not updated since `cutoff`, oldest first."""
    result = await db.execute(
        select(RegistrationDraft.id)
        .where(RegistrationDraft.last_updated_at < cutoff)
        .order_by(RegistrationDraft.last_updated_at)
    )
    return list(result.scalars().all())


async def delete_expired_by_ids(db: AsyncSession, ids: list[UUID], cutoff: datetime) -> list[UUID]:
    """
    Delete the given drafts in one statement.

    The cutoff is re-checked so a draft touched after it was selected for
    expiry survives the sweep.

    Returns:
        IDs of the rows actually deleted
    """
    if not ids:
        return []

    result = await db.execute(
        delete(RegistrationDraft)
        .where(
            RegistrationDraft.id.in_(ids),
            RegistrationDraft.last_updated_at < cutoff,
        )
        .returning(RegistrationDraft.id)
    )
    deleted = list(result.scalars().all())
    await db.commit()
    return deleted
