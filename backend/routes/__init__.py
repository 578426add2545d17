"""FastAPI API endpoints under /api.

Endpoint groups: health + settings, puzzles (public view, leaderboard,
stats), game (ask, reset, session lookup, guest migration). Game endpoints
are nested under /api/puzzles/{slug}/ where they act on one puzzle.
"""

from fastapi import APIRouter

from .game import router as game_router
from .puzzles import router as puzzles_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(puzzles_router)
router.include_router(game_router)
