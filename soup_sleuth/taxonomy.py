"""Discovery taxonomy: the static key -> (topic, stage) table of one puzzle.

Each discovery key names one narrative fact. Keys are grouped into topics;
within a topic a `base` key is the general fact and any `evolved` keys are
the specific facts that supersede it. A topic may have no base key at all
(the first mention is already specific).

The table is loaded once with the puzzle and never mutated.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Stage = Literal["base", "evolved"]


class DiscoveryDef(BaseModel):
    """One taxonomy row."""

    model_config = ConfigDict(frozen=True)

    key: str
    topic: str
    stage: Stage
    label: str  # default text when the judge names the key without a label
    keywords: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)


class FallbackRule(BaseModel):
    """A keyword regex that maps a question onto a discovery key."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    key: str
    label: str


class Taxonomy(BaseModel):
    entries: list[DiscoveryDef] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_entries(self) -> Taxonomy:
        seen: set[str] = set()
        base_topics: set[str] = set()
        for entry in self.entries:
            if entry.key in seen:
                raise ValueError(f"Duplicate discovery key {entry.key!r}")
            seen.add(entry.key)
            if entry.stage == "base":
                if entry.topic in base_topics:
                    raise ValueError(f"Topic {entry.topic!r} has more than one base key")
                base_topics.add(entry.topic)
        return self

    def has_key(self, key: str) -> bool:
        return any(e.key == key for e in self.entries)

    def get(self, key: str) -> DiscoveryDef:
        """Look up a key. Raises KeyError for keys outside this taxonomy."""
        for entry in self.entries:
            if entry.key == key:
                return entry
        raise KeyError(key)

    def topic_of(self, key: str) -> str:
        return self.get(key).topic

    def stage_of(self, key: str) -> Stage:
        return self.get(key).stage

    @property
    def keys(self) -> list[str]:
        return [e.key for e in self.entries]

    @property
    def topics(self) -> list[str]:
        """Distinct topics in declaration order."""
        seen: dict[str, None] = {}
        for entry in self.entries:
            seen.setdefault(entry.topic, None)
        return list(seen)

    def by_stage(self, stage: Stage) -> list[DiscoveryDef]:
        return [e for e in self.entries if e.stage == stage]
