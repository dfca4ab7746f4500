"""Persisted user preferences and how each one seeds runtime state at startup."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

FOLDER = "folder"
SHUTTER_POSITION = "shutterPosition"
LABELING_MODE = "labelingMode"
CAPTURE_MODE = "captureMode"
FLASH_MODE = "flashMode"
CAMERA_POSITION = "cameraPosition"

SETTING_KEYS = (FOLDER, SHUTTER_POSITION, LABELING_MODE, CAPTURE_MODE, FLASH_MODE, CAMERA_POSITION)


class InvalidSettingError(ValueError):
    """An unknown setting key or an out-of-range runtime value."""


class SettingMode(Enum):
    DEFAULT = "default"
    FIXED = "fixed"
    LAST_USED = "lastUsed"

    @classmethod
    def parse(cls, value: Any, fallback: "SettingMode") -> "SettingMode":
        try:
            return cls(value)
        except ValueError:
            return fallback


@dataclass(frozen=True)
class SettingPolicy:
    mode: SettingMode = SettingMode.DEFAULT
    fixed_value: Any = None

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"mode": self.mode.value}
        if self.fixed_value is not None:
            data["fixedValue"] = self.fixed_value
        return data


def _default_policies() -> Dict[str, SettingPolicy]:
    policies = {key: SettingPolicy() for key in SETTING_KEYS}
    policies[FOLDER] = SettingPolicy(mode=SettingMode.LAST_USED)
    return policies


@dataclass(frozen=True)
class AppSettings:
    ignore_orientation_lock: bool = False
    policies: Dict[str, SettingPolicy] = field(default_factory=_default_policies)

    def policy(self, key: str) -> SettingPolicy:
        return self.policies[key]

    def with_mode(self, key: str, mode: SettingMode, current_value: Optional[Any] = None) -> "AppSettings":
        """Return a copy with `key` switched to `mode`.

        Switching to FIXED pins the value currently in use.
        """
        if key not in self.policies:
            raise InvalidSettingError(f"Unknown setting: {key}")
        old = self.policies[key]
        fixed_value = current_value if mode == SettingMode.FIXED else old.fixed_value
        policies = dict(self.policies)
        policies[key] = SettingPolicy(mode=mode, fixed_value=fixed_value)
        return replace(self, policies=policies)

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"ignoreOrientationLock": self.ignore_orientation_lock}
        for key in SETTING_KEYS:
            data[key] = self.policies[key].to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "AppSettings":
        """Merge a persisted document over the defaults; unknown or malformed entries are ignored."""
        defaults = cls()
        if not isinstance(data, dict):
            return defaults

        policies = dict(defaults.policies)
        for key in SETTING_KEYS:
            raw = data.get(key)
            if not isinstance(raw, dict):
                continue
            mode = SettingMode.parse(raw.get("mode"), policies[key].mode)
            policies[key] = SettingPolicy(mode=mode, fixed_value=raw.get("fixedValue"))

        return cls(
            ignore_orientation_lock=bool(data.get("ignoreOrientationLock", defaults.ignore_orientation_lock)),
            policies=policies,
        )
