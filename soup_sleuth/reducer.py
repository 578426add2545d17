"""Session reducer: folds one validated judgment into session state.

apply_turn() is the only place session state changes. It never mutates the
session it is given; it returns a new Session with new lists, sharing the
untouched Discovery and GameMessage objects with the old one.

Per turn:
  1. Append the player message.
  2. Append the system message (explanation + normalised answer).
  3. If the judgment names a discovery key, resolve its topic and stage:
       no discovery for the topic yet   → create it at the key's stage
       existing base, new key evolved    → upgrade in place, stamp evolution
       anything else                     → no change (never regress, never re-announce)
     The key joins discovered_keys in every case.
  4. Recompute completion. Completion is sticky.

The judgment must already have passed validate_judgment(); a key outside the
puzzle taxonomy here is a caller bug and raises KeyError.
"""

from __future__ import annotations

import logging
from datetime import datetime

from soup_sleuth.completion import is_complete
from soup_sleuth.models import Discovery, GameMessage, Judgment, Puzzle, Session, utcnow

logger = logging.getLogger(__name__)


def apply_turn(
    session: Session,
    question: str,
    judgment: Judgment,
    puzzle: Puzzle,
    now: datetime | None = None,
) -> tuple[Session, Discovery | None]:
    """Return (new_session, emitted_discovery) for one question/judgment pair.

    emitted_discovery is the Discovery created or upgraded this turn, or None.
    """
    now = now or utcnow()

    messages = list(session.messages)
    messages.append(GameMessage(
        id=len(messages), type="player", content=question, timestamp=now,
    ))
    messages.append(GameMessage(
        id=len(messages), type="system", content=judgment.explanation,
        response=judgment.answer, timestamp=now,
    ))

    discoveries = list(session.discoveries)
    discovered_keys = set(session.discovered_keys)
    emitted: Discovery | None = None

    key = judgment.discovery_key
    if key:
        entry = puzzle.taxonomy.get(key)
        label = judgment.discovery_label or entry.label
        index = next(
            (i for i, d in enumerate(discoveries) if d.topic == entry.topic), None
        )
        if index is None:
            emitted = Discovery(
                key=key, topic=entry.topic, label=label,
                stage=entry.stage, timestamp=now,
            )
            discoveries.append(emitted)
            logger.info(
                "discovery session=%s topic=%s key=%s stage=%s",
                session.id, entry.topic, key, entry.stage,
            )
        elif discoveries[index].stage == "base" and entry.stage == "evolved":
            emitted = discoveries[index].model_copy(update={
                "key": key,
                "label": label,
                "stage": "evolved",
                "evolution_timestamp": now,
            })
            discoveries[index] = emitted
            logger.info(
                "discovery evolved session=%s topic=%s key=%s",
                session.id, entry.topic, key,
            )
        discovered_keys.add(key)

    complete = session.is_complete or is_complete(discoveries, puzzle)
    completed_at = session.completed_at
    if complete and not session.is_complete:
        completed_at = now
        logger.info(
            "session complete session=%s puzzle=%s questions=%d",
            session.id, puzzle.slug, len(messages) // 2,
        )

    new_session = session.model_copy(update={
        "messages": messages,
        "discoveries": discoveries,
        "discovered_keys": discovered_keys,
        "is_complete": complete,
        "completed_at": completed_at,
    })
    return new_session, emitted
