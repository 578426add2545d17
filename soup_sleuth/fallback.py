"""Deterministic second opinion for affirmed questions.

The judge sometimes answers YES to a question that plainly matches a
discovery without naming the discovery. When that happens the question text
is run through the puzzle's ordered keyword rules; the first match wins.
Rules are broad on purpose: awarding a topic slightly early is cheap,
missing one can leave the puzzle unfinishable.
"""

from __future__ import annotations

import logging
import re

from soup_sleuth.models import Judgment, Puzzle
from soup_sleuth.taxonomy import FallbackRule

logger = logging.getLogger(__name__)


def classify(question: str, rules: list[FallbackRule]) -> tuple[str, str] | None:
    """Return (key, label) of the first rule matching the question, or None."""
    text = question.lower()
    for rule in rules:
        if re.search(rule.pattern, text, re.IGNORECASE):
            return rule.key, rule.label
    return None


def apply_fallback(judgment: Judgment, question: str, puzzle: Puzzle) -> Judgment:
    """Attach a discovery to an unattributed YES when a rule matches."""
    if judgment.answer != "YES" or judgment.discovery_key:
        return judgment
    match = classify(question, puzzle.fallback_rules)
    if match is None:
        return judgment
    key, label = match
    logger.info("fallback matched puzzle=%s key=%s question=%r", puzzle.slug, key, question)
    return judgment.model_copy(update={"discovery_key": key, "discovery_label": label})
