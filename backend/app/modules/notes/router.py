import logging

from fastapi import APIRouter

from app.modules.notes.routes.notes import router as notes_router
from app.modules.notes.routes.search import router as search_router

router = APIRouter(prefix="/api")
logger = logging.getLogger("notes")

router.include_router(notes_router, prefix="/notes", tags=["notes"])
router.include_router(search_router, prefix="/search", tags=["notes-search"])
