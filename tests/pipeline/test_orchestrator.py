"""Tests for run_turn / reset_session with a scripted judge."""

import asyncio

import pytest

from soup_sleuth.judgment import JudgmentError
from soup_sleuth.llm import JudgeError
from soup_sleuth.pipeline import (
    MAX_QUESTION_LENGTH,
    QuestionError,
    SessionCompleteError,
    SessionLocks,
    SessionNotFoundError,
    reset_session,
    run_turn,
    validate_question,
)

from ..helpers import StubJudge, answer, make_puzzle


async def _ask(storage, judge, question, **kwargs):
    kwargs.setdefault("puzzle", make_puzzle())
    kwargs.setdefault("owner_id", "guest-1")
    return await run_turn(storage=storage, judge=judge, question=question, **kwargs)


# ── validate_question ────────────────────────────────────────


def test_validate_question_strips():
    assert validate_question("  Was he on a boat?  ") == "Was he on a boat?"


@pytest.mark.parametrize("text", ["", "   ", "x" * (MAX_QUESTION_LENGTH + 1)])
def test_validate_question_rejects(text):
    with pytest.raises(QuestionError):
        validate_question(text)


async def test_invalid_question_never_calls_judge(storage):
    judge = StubJudge([answer()])
    with pytest.raises(QuestionError):
        await _ask(storage, judge, "   ")
    assert judge.calls == []
    assert storage.list_sessions() == []


# ── Happy path ───────────────────────────────────────────────


async def test_first_question_creates_session(storage):
    judge = StubJudge([answer("YES", "He was on a ship.", "VESSEL", "He was on a boat")])
    result = await _ask(storage, judge, "Was he on a boat?")

    assert result.response == "YES"
    assert result.content == "He was on a ship."
    assert result.discovery.topic == "VESSEL"
    assert result.discovery.stage == "base"
    assert result.is_complete is False
    assert result.discovered_keys == ["VESSEL"]
    assert result.progress.total == 4
    assert result.progress.discovered == 1

    stored = storage.get_session(result.session_id)
    assert stored.owner_id == "guest-1"
    assert stored.question_count == 1
    assert len(stored.discoveries) == 1


async def test_followup_continues_open_session_and_sends_history(storage):
    judge = StubJudge([
        answer("YES", "He was on a ship.", "VESSEL"),
        answer("YES", "It sank.", "VESSEL_SANK"),
    ])
    first = await _ask(storage, judge, "Was he on a boat?")
    second = await _ask(storage, judge, "Did the boat sink?")

    assert second.session_id == first.session_id
    assert second.discovery.key == "VESSEL_SANK"
    assert second.discovery.evolution_timestamp is not None
    assert len(second.discoveries) == 1
    assert second.discovered_keys == ["VESSEL", "VESSEL_SANK"]

    call = judge.calls[1]
    assert call["question"] == "Did the boat sink?"
    assert call["history"] == [
        {"role": "user", "content": "Was he on a boat?"},
        {"role": "assistant", "content": "YES: He was on a ship."},
    ]
    assert "Test Puzzle" in call["system_prompt"]


async def test_explicit_session_id(storage):
    session = storage.create_session("guest-1", "test-puzzle")
    judge = StubJudge([answer("NO", "No.")])
    result = await _ask(storage, judge, "Was it raining?", session_id=session.id)
    assert result.session_id == session.id
    assert result.discovery is None


async def test_fallback_rescue(storage):
    judge = StubJudge([answer("YES", "Yes, eventually.")])
    result = await _ask(storage, judge, "Were they eventually saved?")
    assert result.discovery.topic == "RESCUED"
    assert result.discovery.label == "They were eventually rescued"
    assert result.discovered_keys == ["RESCUED"]


async def test_yes_outside_taxonomy_awards_nothing(storage):
    judge = StubJudge([answer("YES", "It is a bird.")])
    result = await _ask(storage, judge, "Is an albatross a bird?")
    assert result.discovery is None
    assert result.discoveries == []
    assert storage.get_session(result.session_id).question_count == 1


async def test_completion_then_terminal(storage):
    judge = StubJudge([
        answer("YES", "x", "NO_FOOD"),
        answer("YES", "x", "DECEPTION"),
        answer("YES", "x", "RESCUED"),
    ])
    await _ask(storage, judge, "Was there food?")
    await _ask(storage, judge, "Was he lied to?")
    result = await _ask(storage, judge, "Were they rescued?")
    assert result.is_complete is True
    stored = storage.get_session(result.session_id)
    assert stored.completed_at is not None

    with pytest.raises(SessionCompleteError):
        await _ask(storage, StubJudge([answer()]), "Anything else?", session_id=result.session_id)

    # Without an explicit id the solved session is not reused.
    fresh = await _ask(storage, StubJudge([answer("NO", "No.")]), "Is it raining?")
    assert fresh.session_id != result.session_id


# ── Failures leave state untouched ───────────────────────────


@pytest.mark.parametrize("response, error", [
    (JudgeError("Cannot connect"), JudgeError),
    ("not json at all", JudgeError),
    (answer("MAYBE"), JudgmentError),
    (answer("YES", "x", "SUICIDE"), JudgmentError),
    ({"answer": "YES"}, JudgmentError),
])
async def test_failed_turn_is_not_committed(storage, response, error):
    session = storage.create_session("guest-1", "test-puzzle")
    await _ask(storage, StubJudge([answer("YES", "x", "VESSEL")]), "Boat?", session_id=session.id)
    before = storage.get_session(session.id)

    with pytest.raises(error):
        await _ask(storage, StubJudge([response]), "Did it sink?", session_id=session.id)

    assert storage.get_session(session.id) == before


async def test_judge_timeout(storage):
    async def slow_judge(system_prompt, history, question):
        await asyncio.sleep(5)
        return "{}"

    session = storage.create_session("guest-1", "test-puzzle")
    with pytest.raises(JudgeError, match="within"):
        await _ask(storage, slow_judge, "Boat?", session_id=session.id, timeout=0.01)
    assert storage.get_session(session.id).messages == []


async def test_unknown_session_id(storage):
    with pytest.raises(SessionNotFoundError):
        await _ask(storage, StubJudge([answer()]), "Boat?", session_id="deadbeef")


async def test_session_of_other_owner_rejected(storage):
    session = storage.create_session("someone-else", "test-puzzle")
    with pytest.raises(SessionNotFoundError):
        await _ask(storage, StubJudge([answer()]), "Boat?", session_id=session.id)


# ── Serialisation per session ────────────────────────────────


async def test_concurrent_turns_on_one_session_serialised(storage):
    session = storage.create_session("guest-1", "test-puzzle")
    locks = SessionLocks()
    release = asyncio.Event()

    class GatedJudge:
        def __init__(self):
            self.calls = 0

        async def __call__(self, system_prompt, history, question):
            self.calls += 1
            if self.calls == 1:
                await release.wait()
            return '{"answer": "NO", "explanation": "%s"}' % question

    judge = GatedJudge()
    first = asyncio.create_task(
        _ask(storage, judge, "first", session_id=session.id, locks=locks)
    )
    await asyncio.sleep(0)
    second = asyncio.create_task(
        _ask(storage, judge, "second", session_id=session.id, locks=locks)
    )
    await asyncio.sleep(0.01)
    assert judge.calls == 1  # second turn waits for the lock
    release.set()
    await asyncio.gather(first, second)

    stored = storage.get_session(session.id)
    assert [m.content for m in stored.messages] == ["first", "first", "second", "second"]
    assert [m.id for m in stored.messages] == [0, 1, 2, 3]
    assert len(locks) == 0


async def test_session_locks_released_after_turns(storage):
    locks = SessionLocks()
    for i in range(3):
        await _ask(storage, StubJudge([answer("NO")]), "Boat?", owner_id=f"guest-{i}", locks=locks)
    assert len(locks) == 0


async def test_session_locks_released_after_failed_turn(storage):
    locks = SessionLocks()
    with pytest.raises(JudgeError):
        await _ask(storage, StubJudge([JudgeError("down")]), "Boat?", locks=locks)
    assert len(locks) == 0


# ── Reset ────────────────────────────────────────────────────


async def test_reset_keeps_old_session(storage):
    judge = StubJudge([
        answer("YES", "x", "NO_FOOD"),
        answer("YES", "x", "DECEPTION"),
        answer("YES", "x", "RESCUED"),
    ])
    for q in ("food?", "lied?", "rescued?"):
        done = await _ask(storage, judge, q)
    solved = storage.get_session(done.session_id)
    assert solved.is_complete

    fresh = reset_session(storage=storage, puzzle=make_puzzle(), owner_id="guest-1")
    assert fresh.id != solved.id
    assert fresh.messages == []
    assert fresh.discoveries == []
    assert fresh.is_complete is False
    assert storage.get_session(solved.id) == solved


async def test_reset_of_open_session_starts_new_one(storage):
    first = await _ask(storage, StubJudge([answer("NO", "No.")]), "Raining?")
    fresh = reset_session(storage=storage, puzzle=make_puzzle(), owner_id="guest-1")
    nxt = await _ask(storage, StubJudge([answer("NO", "No.")]), "Snowing?", session_id=fresh.id)
    assert nxt.session_id == fresh.id
    assert storage.get_session(first.session_id).question_count == 1
    assert storage.get_session(fresh.id).question_count == 1
