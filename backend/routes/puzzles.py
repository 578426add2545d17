"""Puzzle listing, leaderboard and stats endpoints."""

from fastapi import APIRouter, Depends, Query

from soup_sleuth.leaderboard import puzzle_stats, rank
from soup_sleuth.models import LeaderboardEntry
from soup_sleuth.storage import Storage

from .deps import get_storage, require_puzzle
from .models import PuzzleSummary

router = APIRouter()


@router.get("/puzzles", response_model=list[PuzzleSummary])
async def list_puzzles(storage: Storage = Depends(get_storage)):
    """List active puzzles. Backstory and judge prompt are never exposed."""
    return [
        PuzzleSummary(
            id=p.id, slug=p.slug, title=p.title, prompt=p.prompt,
            total_topics=len(p.taxonomy.topics),
        )
        for p in storage.list_puzzles(active_only=True)
    ]


@router.get("/puzzles/{slug}", response_model=PuzzleSummary)
async def get_puzzle(slug: str, storage: Storage = Depends(get_storage)):
    """Get the public view of a single puzzle."""
    p = require_puzzle(storage, slug)
    return PuzzleSummary(
        id=p.id, slug=p.slug, title=p.title, prompt=p.prompt,
        total_topics=len(p.taxonomy.topics),
    )


@router.get("/puzzles/{slug}/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    slug: str,
    limit: int = Query(100, ge=1),
    storage: Storage = Depends(get_storage),
):
    """Completed sessions ranked by fewest questions, newest first on ties."""
    puzzle = require_puzzle(storage, slug)
    return rank(storage.list_sessions(puzzle_id=puzzle.id, completed=True), limit=limit)


@router.get("/puzzles/{slug}/stats")
async def stats(slug: str, storage: Storage = Depends(get_storage)):
    """Completion count and average question count."""
    puzzle = require_puzzle(storage, slug)
    return puzzle_stats(storage.list_sessions(puzzle_id=puzzle.id))
