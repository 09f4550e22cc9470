"""Web routes package for the file management pages."""

from fastapi import APIRouter

from file_ingestion.web.files import router as files_router

router = APIRouter(tags=["web"])

router.include_router(files_router)

__all__ = ["router"]
