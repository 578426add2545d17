"""Shared test helpers: a small synthetic puzzle and a scripted judge."""

import json
from typing import Any

from soup_sleuth.models import Puzzle
from soup_sleuth.taxonomy import DiscoveryDef, FallbackRule, Taxonomy


class StubJudge:
    """Returns scripted responses in order and records every call.

    A dict response is sent as JSON, a str as-is, an exception is raised.
    """

    def __init__(self, responses: list[Any]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, system_prompt: str, history: list[dict], question: str) -> str:
        self.calls.append(
            {"system_prompt": system_prompt, "history": history, "question": question}
        )
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


def answer(value: str = "YES", explanation: str = "ok", key: str | None = None,
           label: str | None = None) -> dict[str, Any]:
    return {
        "answer": value,
        "explanation": explanation,
        "discoveryKey": key,
        "discoveryLabel": label,
    }


def make_puzzle(**overrides: Any) -> Puzzle:
    """Four topics: VESSEL and FOOD evolve, RESCUED and DECEPTION are evolved-only."""
    fields: dict[str, Any] = {
        "id": "test-puzzle",
        "slug": "test-puzzle",
        "title": "Test Puzzle",
        "prompt": "A man orders soup and leaves.",
        "backstory": "He was shipwrecked and deceived.",
        "taxonomy": Taxonomy(entries=[
            DiscoveryDef(key="VESSEL", topic="VESSEL", stage="base", label="He was on a boat"),
            DiscoveryDef(key="VESSEL_SANK", topic="VESSEL", stage="evolved", label="The boat sank"),
            DiscoveryDef(key="RESCUED", topic="RESCUED", stage="evolved", label="They were rescued"),
            DiscoveryDef(key="NO_FOOD", topic="FOOD", stage="base", label="There was no food"),
            DiscoveryDef(key="CANNIBALISM", topic="FOOD", stage="evolved", label="They ate people"),
            DiscoveryDef(key="DECEPTION", topic="DECEPTION", stage="evolved", label="He was lied to"),
        ]),
        "fallback_rules": [
            FallbackRule(pattern="rescu(ed|e)|saved|picked up", key="RESCUED",
                         label="They were eventually rescued"),
            FallbackRule(pattern="cannibal|ate people", key="CANNIBALISM",
                         label="They resorted to cannibalism"),
        ],
        "critical_topics": ["FOOD", "DECEPTION"],
        "min_required_topics": 3,
    }
    fields.update(overrides)
    return Puzzle(**fields)

