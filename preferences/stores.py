"""JSON-file persistence for settings, last-used values and the last folder.

Reads never raise: a missing or unreadable file degrades to "nothing stored"
so startup always falls back to hard defaults. Writes are best-effort and
only logged on failure.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from preferences.app_settings import AppSettings
from sessions.naming import sanitize
from sessions.session_store import Session


def _read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as ex:
        logger.warning("Failed to load {}: {}", path, ex)
        return None


def _write_json(path: Path, value: Any) -> bool:
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(value, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
        return True
    except (OSError, TypeError, ValueError) as ex:
        logger.error("Failed to save {}: {}", path, ex)
        return False


class SettingsStore:
    """The single AppSettings document."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def load(self) -> AppSettings:
        return AppSettings.from_dict(_read_json(self._path))

    def save(self, settings: AppSettings) -> bool:
        return _write_json(self._path, settings.to_dict())


class LastUsedStore:
    """Independent key -> JSON value entries, one file per tracked category."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        return self._dir / f"{sanitize(key)}.json"

    def load(self, key: str) -> Any | None:
        return _read_json(self._path(key))

    def save(self, key: str, value: Any) -> bool:
        return _write_json(self._path(key), value)


class LastFolderStore:
    """Pointer to the folder that was active when the app last ran: `{name, path}`."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def load(self) -> Optional[dict]:
        data = _read_json(self._path)
        if not isinstance(data, dict):
            return None
        if not isinstance(data.get("name"), str) or not isinstance(data.get("path"), str):
            logger.warning("Ignoring malformed last folder record in {}", self._path)
            return None
        return {"name": data["name"], "path": data["path"]}

    def save(self, session: Session) -> bool:
        return _write_json(self._path, {"name": session.name, "path": str(session.path)})
