"""User-visible health of the capture pipeline."""
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional


class HealthLevel(Enum):
    OK = "OK"
    ERROR = "ERROR"


class HealthCode(Enum):
    CAMERA_NOT_DETECTED = "CAMERA_NOT_DETECTED"
    CAPTURE_FAILED = "CAPTURE_FAILED"
    STORAGE_FAILED = "STORAGE_FAILED"
    ARCHIVE_FAILED = "ARCHIVE_FAILED"


class HealthSource(Enum):
    """Which part of the pipeline reported the error; a later success there clears it."""
    CAPTURE = "capture"
    STORAGE = "storage"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class HealthStatus:
    level: HealthLevel = HealthLevel.OK
    code: Optional[HealthCode] = None
    source: Optional[HealthSource] = None
    message: Optional[str] = None
    instructions: List[str] = field(default_factory=list)
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def ok() -> "HealthStatus":
        return HealthStatus()

    @staticmethod
    def error(
            *,
            code: HealthCode,
            message: str,
            instructions: List[str],
            source: Optional[HealthSource] = None,
    ) -> "HealthStatus":
        return HealthStatus(
            level=HealthLevel.ERROR,
            code=code,
            source=source,
            message=message,
            instructions=list(instructions),
        )

    def to_dict(self) -> dict:
        if self.level == HealthLevel.OK:
            return {"level": HealthLevel.OK.value}

        return {
            "level": self.level.value,
            "code": self.code.value if self.code else None,
            "source": self.source.value if self.source else None,
            "message": self.message,
            "instructions": self.instructions,
            "lastUpdated": self.last_updated.isoformat(),
        }
