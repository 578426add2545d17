"""Handlebars prompt rendering for the judge."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pybars

from soup_sleuth.models import GameMessage, Puzzle

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


DEFAULT_JUDGE_PROMPT = """\
You are a game master for the "{{{title}}}" lateral thinking puzzle. Your \
role is to answer yes/no questions from players trying to solve the mystery.

The riddle the player sees:
{{{prompt}}}

Here is the complete backstory:
{{{backstory}}}

INTENT MATCHING - Before answering, check whether the question matches ANY \
of these discovery patterns:
{{#each discoveries}}
- {{key}}: {{{keywords}}}
{{/each}}

If the question matches a pattern and your answer is YES, you MUST include \
the discoveryKey and discoveryLabel.

Rules for answering:
1. If the player asks multiple questions at once, answer "ONE_QUESTION_AT_A_TIME".
2. Otherwise answer with ONLY "YES", "NO" or "DOES_NOT_MATTER".
3. Answer "YES" if the question's implication is true according to the backstory.
4. Answer "NO" if the question's implication is false according to the backstory.
5. Answer "DOES_NOT_MATTER" ONLY if the detail is irrelevant to the puzzle.

Progressive discovery system:

BASE discoveries (award for general questions):
{{#each base}}
- {{key}}: {{{examples}}}
{{/each}}

EVOLVED discoveries (award for specific questions):
{{#each evolved}}
- {{key}}: {{{examples}}}
{{/each}}

Respond ONLY with valid JSON in this exact format:
{
  "answer": "YES" | "NO" | "DOES_NOT_MATTER" | "ONE_QUESTION_AT_A_TIME",
  "explanation": "Brief explanation (1-2 sentences max)",
  "discoveryKey": null | one of the discovery keys above,
  "discoveryLabel": null | "Natural language description"
}\
"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_judge_context(puzzle: Puzzle) -> dict[str, Any]:
    """Template variables for a puzzle's judge prompt."""

    def _row(entry: Any) -> dict[str, Any]:
        return {
            "key": entry.key,
            "topic": entry.topic,
            "label": entry.label,
            "keywords": ", ".join(entry.keywords),
            "examples": " ".join(f'"{q}"' for q in entry.examples),
        }

    taxonomy = puzzle.taxonomy
    return {
        "title": puzzle.title,
        "prompt": puzzle.prompt,
        "backstory": puzzle.backstory.strip(),
        "discoveries": [_row(e) for e in taxonomy.entries],
        "base": [_row(e) for e in taxonomy.by_stage("base")],
        "evolved": [_row(e) for e in taxonomy.by_stage("evolved")],
        "topics": taxonomy.topics,
    }


def judge_system_prompt(puzzle: Puzzle) -> str:
    template = puzzle.ai_prompt.strip() or DEFAULT_JUDGE_PROMPT
    return render_prompt(template, build_judge_context(puzzle))


def build_history(messages: list[GameMessage], window: int) -> list[dict[str, str]]:
    """Trailing window of the conversation as alternating user/assistant turns."""
    turns = [m for m in messages if m.type in ("player", "system")]
    if window <= 0:
        return []
    history: list[dict[str, str]] = []
    for m in turns[-window:]:
        if m.type == "player":
            history.append({"role": "user", "content": m.content})
        elif m.response:
            history.append({"role": "assistant", "content": f"{m.response}: {m.content}"})
        else:
            history.append({"role": "assistant", "content": m.content})
    return history
