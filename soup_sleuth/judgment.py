"""Judge output parsing and validation.

The judge is untrusted: its text is parsed as JSON, checked against the
payload shape, its answer normalised onto the canonical enum and its
discovery key checked against the active puzzle's taxonomy.

Unrecognised answers are a hard failure. Downgrading them to a neutral
answer would hide judge regressions behind plausible-looking turns.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from soup_sleuth.llm import JudgeError
from soup_sleuth.models import Answer, Judgment, Puzzle

logger = logging.getLogger(__name__)


class JudgmentError(JudgeError):
    """The judge payload parsed as data but failed validation."""


_ANSWER_ALIASES: dict[str, Answer] = {
    "YES": "YES",
    "NO": "NO",
    "DOES_NOT_MATTER": "DOES_NOT_MATTER",
    "DOESNT_MATTER": "DOES_NOT_MATTER",
    "DOESN'T_MATTER": "DOES_NOT_MATTER",
    "ONE_QUESTION_AT_A_TIME": "ONE_QUESTION_AT_A_TIME",
    "ONE_QUESTION_AT_A_TIME_PLEASE": "ONE_QUESTION_AT_A_TIME",
    "MULTIPLE_QUESTIONS": "ONE_QUESTION_AT_A_TIME",
}


class _JudgePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    explanation: str
    discovery_key: str | None = Field(default=None, alias="discoveryKey")
    discovery_label: str | None = Field(default=None, alias="discoveryLabel")


def parse_judge_output(text: str) -> dict[str, Any]:
    """Parse JSON from judge output, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("Judge output is not valid JSON: %r", text)
        raise JudgeError(f"Judge returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise JudgeError(f"Judge output must be a JSON object, got {type(data).__name__}")
    return data


def normalize_answer(raw: str) -> Answer:
    """Map a free-form answer string onto the canonical enum.

    "does not matter", "Does-Not-Matter" and "DOES_NOT_MATTER" all map to
    DOES_NOT_MATTER. Anything unrecognised raises JudgmentError.
    """
    normalized = re.sub(r"[\s_-]+", "_", raw.strip().upper())
    try:
        return _ANSWER_ALIASES[normalized]
    except KeyError:
        raise JudgmentError(f"Invalid answer format: {raw!r}") from None


def validate_judgment(payload: Any, puzzle: Puzzle) -> Judgment:
    """Validate a parsed judge payload against the active puzzle."""
    try:
        data = _JudgePayload.model_validate(payload)
    except ValidationError as e:
        logger.warning("Judge payload failed validation: %s", e)
        raise JudgmentError("Judge response was malformed") from e

    answer = normalize_answer(data.answer)

    key = data.discovery_key or None
    label = data.discovery_label or None
    if key is not None:
        if not puzzle.taxonomy.has_key(key):
            raise JudgmentError(
                f"Discovery key {key!r} is not part of puzzle {puzzle.slug!r}"
            )
        if label is None:
            label = puzzle.taxonomy.get(key).label
    else:
        label = None

    return Judgment(
        answer=answer,
        explanation=data.explanation,
        discovery_key=key,
        discovery_label=label,
    )
