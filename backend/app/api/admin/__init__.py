"""Admin API router and endpoint organization."""

from fastapi import APIRouter

from app.api.admin import migration

router = APIRouter(prefix="/admin", tags=["admin"])

router.include_router(migration.router, prefix="/migration", tags=["Migration"])
