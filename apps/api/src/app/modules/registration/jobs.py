"""
Registration Background Jobs

Scheduled cleanup of abandoned registrations:
1. Delete draft rows idle past the expiry window, together with their folders
2. Delete draft folders older than the expiry window, whether or not a row
   still exists for them

Both sweeps run because rows and folders can drift apart after a crash
between deleting one and the other; each sweep repairs the other's leftovers.

Schedule:
- Both jobs run every DRAFT_SWEEP_INTERVAL_MINUTES and once at startup
- Jobs can also be triggered manually via /debug/jobs/{job_id}/trigger

Error Handling:
- Failures are logged by the scheduler's job listener
- Individual folder deletion failures are logged and skipped
"""

import asyncio
import logging
from datetime import UTC, datetime
from functools import partial
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.scheduler import register_job
from app.modules.media.storage import DraftFileManager
from app.modules.registration import drafts

logger = logging.getLogger(__name__)

# Job IDs for registration and manual triggering
JOB_ID_SWEEP_EXPIRED_DRAFTS = "registration_sweep_expired_drafts"
JOB_ID_SWEEP_ORPHAN_FOLDERS = "registration_sweep_orphan_folders"


async def sweep_expired_drafts(file_manager: DraftFileManager) -> dict[str, Any]:
    """
    Delete expired draft rows and their media folders.

    Returns:
        Dict with job execution summary
    """
    executed_at = datetime.now(UTC)
    expiry_minutes = settings.draft_expiry_minutes

    logger.info(f"Starting draft expiry sweep (expiry: {expiry_minutes} minutes)")

    async with async_session_maker() as db:
        removed = await drafts.delete_expired_drafts(db, file_manager, expiry_minutes)

    logger.info(f"Draft expiry sweep completed. Removed: {removed}")

    return {
        "executed_at": executed_at.isoformat(),
        "drafts_removed": removed,
    }


async def sweep_orphan_folders(file_manager: DraftFileManager) -> dict[str, Any]:
    """
    Delete expired draft folders directly from the media tree.

    Returns:
        Dict with job execution summary
    """
    executed_at = datetime.now(UTC)
    expiry_minutes = settings.draft_expiry_minutes

    logger.info(f"Starting draft folder sweep (expiry: {expiry_minutes} minutes)")

    removed = await asyncio.to_thread(file_manager.sweep_expired, expiry_minutes)

    logger.info(f"Draft folder sweep completed. Removed: {removed}")

    return {
        "executed_at": executed_at.isoformat(),
        "folders_removed": removed,
    }


async def run_startup_sweeps(file_manager: DraftFileManager) -> None:
    """Run both sweeps once, so drafts abandoned while the app was down are cleaned up."""
    await sweep_orphan_folders(file_manager)
    await sweep_expired_drafts(file_manager)


def register_registration_jobs(file_manager: DraftFileManager) -> None:
    """
    Register the draft cleanup jobs with the scheduler.

    Args:
        file_manager: The process-wide Draft File Manager the jobs clean up through
    """
    interval = settings.draft_sweep_interval_minutes

    logger.info("Registering registration background jobs...")

    register_job(
        job_id=JOB_ID_SWEEP_EXPIRED_DRAFTS,
        func=partial(sweep_expired_drafts, file_manager),
        trigger=IntervalTrigger(minutes=interval),
    )
    register_job(
        job_id=JOB_ID_SWEEP_ORPHAN_FOLDERS,
        func=partial(sweep_orphan_folders, file_manager),
        trigger=IntervalTrigger(minutes=interval),
    )

    logger.info(f"Registration background jobs registered (interval: {interval} minutes)")
