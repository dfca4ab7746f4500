"""
Startup resolution of the six default / fixed / last-used settings.

Each setting is one row in `SETTING_RULES`; `resolve_value` applies the same
cascade to every row:

- fixed     -> the persisted fixed value, else the hard default
- lastUsed  -> the persisted last-used value, else the hard default
- default   -> the hard default

A value that fails its row's validator is treated as absent.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from numbers import Number
from pathlib import Path
from typing import Any, Callable, Dict

from loguru import logger

from preferences.app_settings import (
    CAMERA_POSITION,
    CAPTURE_MODE,
    FLASH_MODE,
    FOLDER,
    LABELING_MODE,
    SHUTTER_POSITION,
    AppSettings,
    SettingMode,
    SettingPolicy,
)
from preferences.stores import LastFolderStore, LastUsedStore
from sessions.archiver import ARCHIVE_DIR_NAME
from sessions.media import has_media
from sessions.session_store import Session, SessionStore

LABELING_MODES = ("single", "numbered-group", "text-group")
CAPTURE_MODES = ("photo", "video")
FLASH_MODES = ("off", "on", "auto", "always")
CAMERA_POSITIONS = ("front", "back")

DEFAULT_SHUTTER_POSITIONS = {
    "portrait": {"x": 0, "y": 0},
    "landscape": {"x": 0, "y": 0},
}


def _one_of(*choices: str) -> Callable[[Any], bool]:
    return lambda value: value in choices


def _is_point(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and all(isinstance(value.get(axis), Number) and not isinstance(value.get(axis), bool) for axis in ("x", "y"))
    )


def is_shutter_positions(value: Any) -> bool:
    return isinstance(value, dict) and _is_point(value.get("portrait")) and _is_point(value.get("landscape"))


def is_folder_record(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("name"), str) and isinstance(value.get("path"), str)


@dataclass(frozen=True)
class SettingRule:
    key: str
    last_used_key: str
    default: Any
    validate: Callable[[Any], bool]


SETTING_RULES: Dict[str, SettingRule] = {
    FOLDER: SettingRule(FOLDER, "folder", None, is_folder_record),
    SHUTTER_POSITION: SettingRule(SHUTTER_POSITION, "shutterPositions", DEFAULT_SHUTTER_POSITIONS, is_shutter_positions),
    LABELING_MODE: SettingRule(LABELING_MODE, "labelingMode", "single", _one_of(*LABELING_MODES)),
    CAPTURE_MODE: SettingRule(CAPTURE_MODE, "captureMode", "photo", _one_of(*CAPTURE_MODES)),
    FLASH_MODE: SettingRule(FLASH_MODE, "flashMode", "off", _one_of(*FLASH_MODES)),
    CAMERA_POSITION: SettingRule(CAMERA_POSITION, "cameraPosition", "back", _one_of(*CAMERA_POSITIONS)),
}


def resolve_value(policy: SettingPolicy, rule: SettingRule, read_last_used: Callable[[str], Any]) -> Any:
    if policy.mode == SettingMode.FIXED:
        candidate = policy.fixed_value
    elif policy.mode == SettingMode.LAST_USED:
        candidate = read_last_used(rule.last_used_key)
    else:
        candidate = None

    if candidate is None or not rule.validate(candidate):
        return copy.deepcopy(rule.default)
    return candidate


@dataclass(frozen=True)
class ResolvedSettings:
    folder: Session
    shutter_positions: dict
    labeling_mode: str
    capture_mode: str
    flash_mode: str
    camera_position: str
    ignore_orientation_lock: bool = False

    def to_dict(self) -> dict:
        return {
            "folder": self.folder.to_dict(),
            "shutterPositions": self.shutter_positions,
            "labelingMode": self.labeling_mode,
            "captureMode": self.capture_mode,
            "flashMode": self.flash_mode,
            "cameraPosition": self.camera_position,
            "ignoreOrientationLock": self.ignore_orientation_lock,
        }


class SettingsResolver:
    def __init__(self, store: SessionStore, last_used: LastUsedStore, last_folder: LastFolderStore):
        self._store = store
        self._last_used = last_used
        self._last_folder = last_folder

    def resolve(self, settings: AppSettings) -> ResolvedSettings:
        values = {
            key: resolve_value(settings.policy(key), rule, self._read_last_used)
            for key, rule in SETTING_RULES.items()
        }
        return ResolvedSettings(
            folder=self._resolve_folder(values[FOLDER]),
            shutter_positions=values[SHUTTER_POSITION],
            labeling_mode=values[LABELING_MODE],
            capture_mode=values[CAPTURE_MODE],
            flash_mode=values[FLASH_MODE],
            camera_position=values[CAMERA_POSITION],
            ignore_orientation_lock=settings.ignore_orientation_lock,
        )

    def _read_last_used(self, key: str) -> Any:
        # the last folder lives in its own pointer record
        if key == SETTING_RULES[FOLDER].last_used_key:
            return self._last_folder.load()
        return self._last_used.load(key)

    def _resolve_folder(self, record: Any) -> Session:
        if record is None:
            return self._store.root

        path = Path(record["path"])
        if not path.is_dir():
            logger.info("Folder {} no longer exists, starting in root", path)
            return self._store.root

        base = self._store.base_dir.resolve()
        resolved = path.resolve()
        if resolved != base and (resolved.parent != base or resolved.name == ARCHIVE_DIR_NAME):
            logger.warning("Folder {} is not a session folder under {}, starting in root", path, base)
            return self._store.root

        session = Session(name=record["name"], path=path, is_empty=not has_media(path))
        if self._store.is_root(session):
            return self._store.root
        return session
