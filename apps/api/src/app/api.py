from fastapi import APIRouter

from app.modules.registration import router as registration_router

api_router = APIRouter()

api_router.include_router(registration_router, prefix="/registration", tags=["Registration"])
