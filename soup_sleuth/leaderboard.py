"""Leaderboard ranking and per-puzzle statistics over completed sessions."""

from __future__ import annotations

from typing import Any

from soup_sleuth.models import LeaderboardEntry, Session

ANONYMOUS = "Anonymous Player"


def rank(sessions: list[Session], limit: int | None = None) -> list[LeaderboardEntry]:
    """Order completed sessions by question count, newest solve first on ties.

    A player appears once per completed session; resets produce new
    sessions, so repeat solves are listed separately.
    """
    completed = [s for s in sessions if s.is_complete and s.completed_at is not None]
    # Two stable sorts: secondary key first.
    completed.sort(key=lambda s: s.completed_at, reverse=True)
    completed.sort(key=lambda s: s.question_count)
    if limit is not None:
        completed = completed[:limit]
    return [
        LeaderboardEntry(
            session_id=s.id,
            display_name=s.player_name or ANONYMOUS,
            question_count=s.question_count,
            completed_at=s.completed_at,
        )
        for s in completed
    ]


def puzzle_stats(sessions: list[Session]) -> dict[str, Any]:
    """Completion count and average question count for one puzzle's sessions."""
    counts = [s.question_count for s in sessions if s.is_complete]
    average = round(sum(counts) / len(counts), 1) if counts else None
    return {"completion_count": len(counts), "average_questions": average}
