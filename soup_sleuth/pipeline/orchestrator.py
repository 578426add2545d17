"""Turn orchestrator: runs one player question end-to-end.

Turn flow:
  1. Validate the question text (rejected before any judge call).
  2. Load the session (explicit id, else the owner's open session, else new).
  3. Render the judge system prompt and the trailing history window.
  4. Call the judge under a timeout.
  5. Parse and validate the judge output against the puzzle.
  6. Run the fallback classifier on unattributed YES answers.
  7. Fold the judgment into the session with apply_turn().
  8. Persist the new session.

A failure anywhere before step 8 leaves the stored session untouched, so a
failed turn can simply be retried. Turns on the same session are
serialised with a per-session asyncio.Lock.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from soup_sleuth.completion import progress
from soup_sleuth.fallback import apply_fallback
from soup_sleuth.judgment import parse_judge_output, validate_judgment
from soup_sleuth.llm import Judge, JudgeError
from soup_sleuth.models import Puzzle, Session, TurnResult
from soup_sleuth.prompts import build_history, judge_system_prompt
from soup_sleuth.reducer import apply_turn
from soup_sleuth.storage import Storage

logger = logging.getLogger(__name__)

MAX_QUESTION_LENGTH = 500


class QuestionError(ValueError):
    """The player's question is empty or too long."""


class SessionNotFoundError(LookupError):
    """No session with that id exists for this owner and puzzle."""


class SessionCompleteError(RuntimeError):
    """The session is solved; a reset is needed to play again."""


class SessionLocks:
    """One asyncio.Lock per session id, held only while turns are in flight.

    Use as `async with locks(session_id):`. The entry is dropped once the
    last holder or waiter for that session leaves.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: defaultdict[str, int] = defaultdict(int)

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def __call__(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._users[session_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[session_id] -= 1
            if not self._users[session_id]:
                del self._users[session_id]
                del self._locks[session_id]


_default_locks = SessionLocks()


def validate_question(text: str) -> str:
    question = text.strip()
    if not question:
        raise QuestionError("Question must not be empty")
    if len(question) > MAX_QUESTION_LENGTH:
        raise QuestionError(f"Question must be at most {MAX_QUESTION_LENGTH} characters")
    return question


def _load_session(
    storage: Storage,
    puzzle: Puzzle,
    owner_id: str,
    session_id: str | None,
    player_name: str,
) -> Session:
    if session_id:
        session = storage.get_session(session_id)
        if session is None or session.puzzle_id != puzzle.id or session.owner_id != owner_id:
            raise SessionNotFoundError(f"Session {session_id!r} not found")
        return session
    session = storage.find_open_session(owner_id, puzzle.id)
    if session is None:
        session = storage.create_session(owner_id, puzzle.id, player_name)
    return session


async def run_turn(
    *,
    storage: Storage,
    puzzle: Puzzle,
    judge: Judge,
    question: str,
    owner_id: str,
    session_id: str | None = None,
    player_name: str = "",
    timeout: float | None = None,
    locks: SessionLocks | None = None,
) -> TurnResult:
    """Execute one question turn and return the per-turn summary."""
    question = validate_question(question)
    if locks is None:
        locks = _default_locks

    session = _load_session(storage, puzzle, owner_id, session_id, player_name)
    async with locks(session.id):
        # Reload under the lock so a turn that finished while we waited is seen.
        session = storage.get_session(session.id) or session
        if session.is_complete:
            raise SessionCompleteError(f"Session {session.id!r} is already solved")

        system_prompt = judge_system_prompt(puzzle)
        history = build_history(session.messages, puzzle.history_window)

        try:
            raw = await asyncio.wait_for(judge(system_prompt, history, question), timeout)
        except asyncio.TimeoutError as e:
            raise JudgeError(f"Judge did not answer within {timeout}s") from e

        judgment = validate_judgment(parse_judge_output(raw), puzzle)
        judgment = apply_fallback(judgment, question, puzzle)

        session, discovery = apply_turn(session, question, judgment, puzzle)
        storage.save_session(session)

    logger.debug(
        "turn session=%s answer=%s key=%s complete=%s",
        session.id, judgment.answer, judgment.discovery_key, session.is_complete,
    )
    return TurnResult(
        session_id=session.id,
        response=judgment.answer,
        content=judgment.explanation,
        discovery=discovery,
        is_complete=session.is_complete,
        discoveries=session.discoveries,
        discovered_keys=sorted(session.discovered_keys),
        progress=progress(session.discoveries, puzzle),
    )


def reset_session(
    *, storage: Storage, puzzle: Puzzle, owner_id: str, player_name: str = ""
) -> Session:
    """Start a fresh session. Earlier sessions are kept for history and ranking."""
    session = storage.create_session(owner_id, puzzle.id, player_name)
    logger.info("reset owner=%s puzzle=%s new_session=%s", owner_id, puzzle.slug, session.id)
    return session
