# sessions/archiver.py

from __future__ import annotations

import shutil
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from sessions.errors import ArchiveError
from sessions.naming import split_extension

ARCHIVE_DIR_NAME = "archive"


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class CaptureArchiver:
    """
    Moves a capture that is about to be superseded by a retake into
    `<session>/archive/<stem>_<epochMillis><ext>`.

    Superseded captures are kept, never deleted.
    """

    def __init__(self, clock_ms: Callable[[], int] = _epoch_millis):
        self._clock_ms = clock_ms

    def archive_existing(self, folder: Path, filename: str) -> Optional[Path]:
        source = folder / filename
        if not source.exists():
            return None

        archive_dir = folder / ARCHIVE_DIR_NAME
        stem, ext = split_extension(filename)
        millis = self._clock_ms()
        destination = archive_dir / f"{stem}_{millis}{ext}"
        while destination.exists():
            millis += 1
            destination = archive_dir / f"{stem}_{millis}{ext}"

        try:
            archive_dir.mkdir(exist_ok=True)
            shutil.move(str(source), str(destination))
        except OSError as e:
            logger.error("Archiving {} failed: {}", source, e)
            raise ArchiveError(f"Could not archive {filename}; retake aborted") from e

        logger.info("Archived {} -> {}", source.name, destination)
        return destination
