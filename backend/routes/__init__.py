"""FastAPI API endpoints under /api.

Endpoint groups: settings + health, the active character, and stories
(list/read/delete, start, take a choice, take a choice with streamed
previews). Each route pulls the session store, character slot and
generator off app.state through the helpers in .deps.
"""

from fastapi import APIRouter

from .character import router as character_router
from .settings import router as settings_router
from .stories import router as stories_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(character_router)
router.include_router(stories_router)
