"""Question, reset, session lookup and guest migration endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from soup_sleuth.judgment import JudgmentError
from soup_sleuth.llm import Judge, JudgeError
from soup_sleuth.models import Session, TurnResult
from soup_sleuth.pipeline import (
    QuestionError,
    SessionCompleteError,
    SessionLocks,
    SessionNotFoundError,
    reset_session,
    run_turn,
)
from soup_sleuth.storage import Storage

from .deps import get_judge, get_locks, get_storage, require_puzzle
from .models import AskBody, MigrateBody, ResetBody

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/puzzles/{slug}/ask", response_model=TurnResult)
async def ask(
    slug: str,
    body: AskBody,
    storage: Storage = Depends(get_storage),
    judge: Judge = Depends(get_judge),
    locks: SessionLocks = Depends(get_locks),
):
    """Ask one yes/no question and fold the judge's answer into the session."""
    puzzle = require_puzzle(storage, slug)
    try:
        return await run_turn(
            storage=storage,
            puzzle=puzzle,
            judge=judge,
            question=body.question,
            owner_id=body.player_id,
            session_id=body.session_id,
            player_name=body.player_name,
            locks=locks,
        )
    except QuestionError as e:
        raise HTTPException(400, str(e))
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")
    except SessionCompleteError:
        raise HTTPException(409, "This puzzle is already solved. Reset to play again.")
    except JudgmentError as e:
        logger.warning("judgment rejected puzzle=%s: %s", slug, e)
        raise HTTPException(502, "The AI response was malformed. Please try again.")
    except JudgeError as e:
        logger.warning("judge failed puzzle=%s: %s", slug, e)
        raise HTTPException(502, "The AI service is unavailable. Please try again.")


@router.post("/puzzles/{slug}/reset")
async def reset(slug: str, body: ResetBody, storage: Storage = Depends(get_storage)):
    """Start a new session. Earlier sessions are kept."""
    puzzle = require_puzzle(storage, slug)
    session = reset_session(
        storage=storage, puzzle=puzzle,
        owner_id=body.player_id, player_name=body.player_name,
    )
    return {"session_id": session.id}


@router.get("/sessions/{session_id}", response_model=Session)
async def get_session(session_id: str, storage: Storage = Depends(get_storage)):
    """Get a session with its full message log and discoveries."""
    session = storage.get_session(session_id)
    if not session:
        raise HTTPException(404, "Session not found")
    return session


@router.post("/players/{guest_id}/migrate")
async def migrate(guest_id: str, body: MigrateBody, storage: Storage = Depends(get_storage)):
    """Move a guest's sessions to a registered user."""
    moved = storage.migrate_guest_sessions(guest_id, body.user_id)
    return {"migrated": moved}
