"""Win condition: enough topics, and every critical topic among them."""

from __future__ import annotations

from soup_sleuth.models import Discovery, Progress, Puzzle


def discovered_topics(discoveries: list[Discovery]) -> set[str]:
    return {d.topic for d in discoveries}


def is_complete(discoveries: list[Discovery], puzzle: Puzzle) -> bool:
    """True once the topic count and critical-topic requirements are both met.

    Monotonic: topics are never removed from a session and the puzzle's
    thresholds never change, so a true result stays true.
    """
    topics = discovered_topics(discoveries)
    return (
        len(topics) >= puzzle.min_required_topics
        and set(puzzle.critical_topics) <= topics
    )


def progress(discoveries: list[Discovery], puzzle: Puzzle) -> Progress:
    return Progress(
        total=len(puzzle.taxonomy.topics),
        discovered=len(discovered_topics(discoveries)),
    )
