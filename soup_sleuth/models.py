"""Core domain models.

The judgment validator, reducer, completion policy, storage and web layer
all operate on these types. Pydantic is used for validation and
serialisation at every data boundary.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Literal

from pydantic import (
    BaseModel,
    Field,
    computed_field,
    field_serializer,
    model_validator,
)

from soup_sleuth.taxonomy import FallbackRule, Stage, Taxonomy

Answer = Literal[
    "YES",
    "NO",
    "DOES_NOT_MATTER",
    "ONE_QUESTION_AT_A_TIME",
]

MessageType = Literal["player", "system", "discovery"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Discovery(BaseModel):
    """A narrative fact uncovered in one session. One per topic."""

    key: str
    topic: str
    label: str
    stage: Stage
    timestamp: datetime
    evolution_timestamp: datetime | None = None  # set only on base -> evolved upgrade


class GameMessage(BaseModel):
    """A single entry in a session's append-only message log."""

    id: int
    type: MessageType
    content: str
    response: Answer | None = None  # present on system messages only
    timestamp: datetime


class Session(BaseModel):
    """Game state for one (identity, puzzle) attempt."""

    id: str
    puzzle_id: str
    owner_id: str
    player_name: str = ""
    messages: list[GameMessage] = Field(default_factory=list)
    discoveries: list[Discovery] = Field(default_factory=list)
    discovered_keys: set[str] = Field(default_factory=set)  # audit trail of every key named
    is_complete: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def question_count(self) -> int:
        # Every turn appends exactly one player and one system message.
        return len(self.messages) // 2

    @field_serializer("discovered_keys")
    def _serialize_keys(self, keys: set[str]) -> list[str]:
        return sorted(keys)


class Puzzle(BaseModel):
    """Puzzle configuration. Read-only input to the engine."""

    id: str
    slug: str
    title: str
    prompt: str  # the surface riddle shown to the player
    backstory: str = ""
    ai_prompt: str = ""  # Handlebars template for the judge; blank uses the default
    taxonomy: Taxonomy
    fallback_rules: list[FallbackRule] = Field(default_factory=list)
    critical_topics: list[str] = Field(default_factory=list)
    min_required_topics: int = 1
    history_window: int = 10
    is_active: bool = True

    @model_validator(mode="after")
    def _check_config(self) -> Puzzle:
        topics = set(self.taxonomy.topics)
        unknown = [t for t in self.critical_topics if t not in topics]
        if unknown:
            raise ValueError(f"Critical topics not in taxonomy: {unknown}")
        for rule in self.fallback_rules:
            if not self.taxonomy.has_key(rule.key):
                raise ValueError(f"Fallback rule key {rule.key!r} not in taxonomy")
            try:
                re.compile(rule.pattern)
            except re.error as e:
                raise ValueError(f"Fallback rule pattern {rule.pattern!r} is invalid: {e}") from e
        if self.min_required_topics > len(topics):
            raise ValueError(
                f"min_required_topics={self.min_required_topics} exceeds "
                f"topic count {len(topics)}"
            )
        return self


class Judgment(BaseModel):
    """A validated judge response."""

    answer: Answer
    explanation: str
    discovery_key: str | None = None
    discovery_label: str | None = None


class Progress(BaseModel):
    total: int
    discovered: int


class TurnResult(BaseModel):
    """Per-turn summary returned to the UI."""

    session_id: str
    response: Answer
    content: str
    discovery: Discovery | None = None  # newly created or upgraded this turn
    is_complete: bool
    discoveries: list[Discovery]
    discovered_keys: list[str]
    progress: Progress


class LeaderboardEntry(BaseModel):
    session_id: str
    display_name: str
    question_count: int
    completed_at: datetime
