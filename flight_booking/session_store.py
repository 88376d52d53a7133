"""Local key/value storage for the logged-in session."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_HOME = Path(os.environ.get("FLIGHTFINDER_HOME", "./.flightfinder"))
_SESSION_FILE = "session.json"


class SessionStore:
    """JSON file holding a handful of keys, read on every access."""

    def __init__(self, directory: Optional[Path] = None, filename: str = _SESSION_FILE) -> None:
        self.path = Path(directory or _HOME) / filename

    def _load(self) -> Dict[str, object]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh)

    def get(self, key: str) -> Optional[object]:
        return self._load().get(key)

    def set(self, key: str, value: object) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
