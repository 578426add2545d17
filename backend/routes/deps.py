"""Request-scoped access to the app's storage, judge and session locks."""

from fastapi import HTTPException, Request

from backend.config import build_judge
from soup_sleuth.llm import Judge
from soup_sleuth.models import Puzzle
from soup_sleuth.pipeline import SessionLocks
from soup_sleuth.storage import Storage


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_locks(request: Request) -> SessionLocks:
    return request.app.state.locks


def get_judge(request: Request) -> Judge:
    """The injected judge, or an HttpJudge built from current settings."""
    if request.app.state.judge is not None:
        return request.app.state.judge
    return build_judge(request.app.state.storage)


def require_puzzle(storage: Storage, slug: str) -> Puzzle:
    puzzle = storage.get_puzzle(slug)
    if not puzzle or not puzzle.is_active:
        raise HTTPException(404, "Puzzle not found")
    return puzzle
