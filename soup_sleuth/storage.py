"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM; reads and writes go through plain helper
methods that load and dump JSON via the pydantic models.

Directory layout:

    {base}/
      config.json             ← app settings (judge connection), defaults merged on read
      puzzles/{slug}.json     ← user puzzles; win over presets on slug collision
      sessions/{id}.json      ← one Session each, never deleted
    {presets}/
      puzzles/{slug}.json     ← built-in read-only puzzles

discovered_keys is written as a sorted list and read back into a set.
"""

from __future__ import annotations

import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any

from soup_sleuth.models import Puzzle, Session

logger = logging.getLogger(__name__)

DEFAULT_PRESETS_DIR = Path(__file__).parent.parent / "presets"

_CONFIG_DEFAULTS: dict[str, Any] = {
    "judge": {
        "provider_url": "https://api.openai.com",
        "api_key": "",
        "provider_format": "openai",
        "model": "gpt-4o-mini",
        "timeout": 30,
        "temperature": 0.7,
    },
    "default_puzzle": "albatross-soup",
}


class Storage:
    def __init__(self, base_path: Path, presets_dir: Path | None = None) -> None:
        self._base = base_path
        self._presets = presets_dir or DEFAULT_PRESETS_DIR
        self._puzzle_root = base_path / "puzzles"
        self._session_root = base_path / "sessions"
        self._puzzle_root.mkdir(parents=True, exist_ok=True)
        self._session_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _preset_puzzle_root(self) -> Path:
        return self._presets / "puzzles"

    def _session_file(self, session_id: str) -> Path:
        return self._session_root / f"{session_id}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Puzzles
    # ------------------------------------------------------------------

    def list_puzzles(self, active_only: bool = False) -> list[Puzzle]:
        """Preset and user puzzles merged by slug; user data wins."""
        by_slug: dict[str, Puzzle] = {}
        for root in (self._preset_puzzle_root(), self._puzzle_root):
            if not root.is_dir():
                continue
            for path in sorted(root.glob("*.json")):
                puzzle = Puzzle.model_validate_json(path.read_text())
                by_slug[puzzle.slug] = puzzle
        puzzles = list(by_slug.values())
        if active_only:
            puzzles = [p for p in puzzles if p.is_active]
        return puzzles

    def get_puzzle(self, slug: str) -> Puzzle | None:
        for root in (self._puzzle_root, self._preset_puzzle_root()):
            path = root / f"{slug}.json"
            if path.is_file():
                return Puzzle.model_validate_json(path.read_text())
        return None

    def get_puzzle_by_id(self, puzzle_id: str) -> Puzzle | None:
        for puzzle in self.list_puzzles():
            if puzzle.id == puzzle_id:
                return puzzle
        return None

    def save_puzzle(self, puzzle: Puzzle) -> None:
        (self._puzzle_root / f"{puzzle.slug}.json").write_text(
            puzzle.model_dump_json(indent=2)
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, owner_id: str, puzzle_id: str, player_name: str = "") -> Session:
        session = Session(
            id=uuid.uuid4().hex,
            puzzle_id=puzzle_id,
            owner_id=owner_id,
            player_name=player_name,
        )
        self.save_session(session)
        logger.debug("created session=%s owner=%s puzzle=%s", session.id, owner_id, puzzle_id)
        return session

    def get_session(self, session_id: str) -> Session | None:
        if not session_id.isalnum():
            return None
        path = self._session_file(session_id)
        if not path.is_file():
            return None
        return Session.model_validate_json(path.read_text())

    def save_session(self, session: Session) -> None:
        self._session_file(session.id).write_text(session.model_dump_json(indent=2))

    def list_sessions(
        self,
        puzzle_id: str | None = None,
        owner_id: str | None = None,
        completed: bool | None = None,
    ) -> list[Session]:
        """All sessions matching the filters, oldest first."""
        sessions: list[Session] = []
        for path in self._session_root.glob("*.json"):
            session = Session.model_validate_json(path.read_text())
            if puzzle_id is not None and session.puzzle_id != puzzle_id:
                continue
            if owner_id is not None and session.owner_id != owner_id:
                continue
            if completed is not None and session.is_complete != completed:
                continue
            sessions.append(session)
        sessions.sort(key=lambda s: s.created_at)
        return sessions

    def find_open_session(self, owner_id: str, puzzle_id: str) -> Session | None:
        """The owner's newest incomplete session for a puzzle."""
        open_sessions = self.list_sessions(
            puzzle_id=puzzle_id, owner_id=owner_id, completed=False
        )
        return open_sessions[-1] if open_sessions else None

    def migrate_guest_sessions(self, guest_id: str, user_id: str) -> int:
        """Hand a guest's sessions over to a registered user.

        An open guest session is skipped when the user already has an open
        session for the same puzzle. Returns the number of sessions moved.
        """
        moved = 0
        for session in self.list_sessions(owner_id=guest_id):
            if not session.is_complete and self.find_open_session(user_id, session.puzzle_id):
                continue
            self.save_session(session.model_copy(update={"owner_id": user_id}))
            moved += 1
        logger.info("migrated %d sessions guest=%s user=%s", moved, guest_id, user_id)
        return moved

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def _config_path(self) -> Path:
        return self._base / "config.json"

    def get_config(self) -> dict[str, Any]:
        """Read config, returning defaults merged with stored values."""
        config = copy.deepcopy(_CONFIG_DEFAULTS)
        path = self._config_path()
        if path.is_file():
            stored = self._read_json(path)
            if isinstance(stored.get("judge"), dict):
                config["judge"].update(stored["judge"])
            if "default_puzzle" in stored:
                config["default_puzzle"] = stored["default_puzzle"]
        return config

    def update_config(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into config and persist. Returns full config."""
        config = self.get_config()
        if isinstance(fields.get("judge"), dict):
            config["judge"].update(fields["judge"])
        if "default_puzzle" in fields:
            config["default_puzzle"] = fields["default_puzzle"]
        self._write_json(self._config_path(), config)
        return config
