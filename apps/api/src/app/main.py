"""
Student Registration API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Database and Redis connections
- Media storage and the background compression worker
- Background job scheduler (draft cleanup sweeps)
- Upload size limit, CORS middleware
- API routing
- Health check endpoints
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.api import api_router
from app.core.config import settings
from app.core.database import async_session_maker, close_db, init_db
from app.core.redis import close_redis, get_redis, init_redis
from app.core.scheduler import (
    clear_jobs,
    list_registered_jobs,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from app.modules.media import CompressionOptions, CompressionWorker, DraftFileManager
from app.modules.registration.jobs import register_registration_jobs, run_startup_sweeps


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection
    - Database connection
    - Compression worker and Draft File Manager
    - Background job scheduler and startup sweeps
    """
    # Startup
    print(f"Starting Student Registration API in {settings.python_env} mode...")

    # Initialize Redis
    try:
        await init_redis()
        print("[OK] Redis connected")
    except Exception as e:
        print(f"[FAIL] Redis connection failed: {e}")
        if settings.is_production:
            raise

    # Initialize Database
    try:
        await init_db()
        print("[OK] Database connected")
    except Exception as e:
        print(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    # Media storage and compression
    settings.uploads_root.mkdir(parents=True, exist_ok=True)
    worker = CompressionWorker(CompressionOptions.from_settings(settings))
    worker.start()
    file_manager = DraftFileManager(settings.media_root, compression_queue=worker)
    app.state.compression_worker = worker
    app.state.file_manager = file_manager
    print(f"[OK] Compression worker started (media root: {settings.media_root})")

    # Initialize Background Job Scheduler
    try:
        # Register jobs before starting the scheduler
        register_registration_jobs(file_manager)

        await start_scheduler()
        print("[OK] Background scheduler started")
    except Exception as e:
        print(f"[FAIL] Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    # Clean up drafts abandoned while the API was down
    try:
        await run_startup_sweeps(file_manager)
        print("[OK] Startup draft sweeps complete")
    except Exception as e:
        print(f"[FAIL] Startup draft sweeps failed: {e}")

    yield  # Application runs here

    # Shutdown
    print("Shutting down Student Registration API...")

    # Stop the scheduler first (wait for running jobs)
    await stop_scheduler()
    clear_jobs()
    print("[OK] Background scheduler stopped")

    # Let queued compression jobs finish
    worker.stop()
    print("[OK] Compression worker stopped")

    await close_redis()
    await close_db()
    print("[OK] Cleanup complete")


app = FastAPI(
    title="Student Registration API",
    description="Student self-registration with draft persistence and media uploads",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")


@app.middleware("http")
async def limit_upload_size(request: Request, call_next):
    """Reject request bodies larger than the upload cap before they are read."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_upload_request_bytes:
        return JSONResponse(
            status_code=413,
            content={"success": False, "error": "Request body is too large."},
        )
    return await call_next(request)


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the Student Registration API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness check endpoint."""
    return {"status": "ready"}


@app.get("/debug/db", tags=["Debug"])
async def debug_db():
    """Test database connection."""
    try:
        async with async_session_maker() as session:
            result = await session.execute(text("SELECT 1"))
            return {"database": "connected", "result": result.scalar()}
    except Exception as e:
        return {"database": "error", "message": str(e)}


@app.get("/debug/redis", tags=["Debug"])
async def debug_redis():
    """Test Redis connection."""
    try:
        redis = await get_redis()
        if redis:
            await redis.ping()
            return {"redis": "connected"}
        return {"redis": "not initialized"}
    except Exception as e:
        return {"redis": "error", "message": str(e)}


@app.get("/debug/compression", tags=["Debug"])
async def debug_compression(request: Request):
    """Compression worker status and counters."""
    worker: CompressionWorker | None = getattr(request.app.state, "compression_worker", None)
    if worker is None:
        return {"compression": "not initialized"}
    return {
        "compression": "running" if worker.is_running else "stopped",
        "pending": worker.pending,
        "stats": dict(worker.stats),
    }


# ============================================
# Background Job Debug Endpoints
# ============================================
# These endpoints allow manual triggering of background jobs for testing
# and debugging purposes. In production, jobs run automatically on schedule.


@app.get("/debug/jobs", tags=["Debug"])
async def list_jobs():
    """List all registered background jobs and their status."""
    return {"jobs": list_registered_jobs()}


@app.post("/debug/jobs/{job_id}/trigger", tags=["Debug"])
async def trigger_job(job_id: str):
    """
    Manually trigger a background job for testing.

    Args:
        job_id: The ID of the job to trigger. Available jobs:
            - registration_sweep_expired_drafts
            - registration_sweep_orphan_folders

    Raises:
        HTTPException 400: If job_id is not found.
    """
    try:
        return await trigger_job_manually(job_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
