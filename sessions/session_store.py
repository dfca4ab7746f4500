from __future__ import annotations

import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List

from loguru import logger

from sessions.archiver import ARCHIVE_DIR_NAME
from sessions.errors import ProtectedSessionError, StorageIOError
from sessions.media import has_media
from sessions.naming import sanitize, timestamp

ROOT_SESSION_NAME = "WorkPhotos"
DEFAULT_PREFIX = "Session"


@dataclass(frozen=True)
class Session:
    name: str
    path: Path
    is_empty: bool = True

    def to_dict(self) -> dict:
        return {"name": self.name, "path": str(self.path), "isEmpty": self.is_empty}


def _same_path(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()


class SessionStore:
    """
    Folder lifecycle for capture sessions under one base directory.

    Session folders are named `<prefix>_<YYYYMMDD>_<HHMMSS>`. The base
    directory itself is the root session: it is always listed first and can
    never be renamed or deleted.
    """

    def __init__(self, base_dir: Path, clock: Callable[[], datetime] = datetime.now):
        self.base_dir = base_dir
        self._clock = clock

    @property
    def root(self) -> Session:
        return Session(name=ROOT_SESSION_NAME, path=self.base_dir, is_empty=not has_media(self.base_dir))

    def init_storage(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create storage directory {self.base_dir}") from e

    def is_root(self, session: Session) -> bool:
        return _same_path(session.path, self.base_dir)

    def exists(self, session: Session) -> bool:
        return session.path.is_dir()

    def create(self, prefix: str = DEFAULT_PREFIX) -> Session:
        name = f"{sanitize(prefix)}_{timestamp(self._clock())}"
        path = self.base_dir / name
        try:
            path.mkdir(exist_ok=False)
        except OSError as e:
            logger.error("Creating session folder {} failed: {}", path, e)
            raise StorageIOError(f"Failed to create folder {name}") from e

        logger.info("Created session folder {}", path)
        return Session(name=name, path=path, is_empty=True)

    def list_sessions(self) -> List[Session]:
        """Root first, then every session folder, most recently modified first."""
        try:
            folders = [p for p in self.base_dir.iterdir() if p.is_dir() and p.name != ARCHIVE_DIR_NAME]
            folders.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        except OSError as e:
            logger.error("Listing session folders failed: {}", e)
            raise StorageIOError("Failed to list folders") from e

        sessions = [self.root]
        for folder in folders:
            sessions.append(Session(name=folder.name, path=folder, is_empty=not has_media(folder)))
        return sessions

    def rename(self, session: Session, new_name: str) -> Session:
        """Move the folder to `<new_name>_<fresh timestamp>`.

        The returned record has a new path; the old one is no longer valid.
        """
        if self.is_root(session):
            raise ProtectedSessionError("The root folder cannot be renamed")

        name = f"{sanitize(new_name)}_{timestamp(self._clock())}"
        new_path = session.path.parent / name
        if new_path.exists():
            raise StorageIOError(f"A folder named {name} already exists")

        try:
            shutil.move(str(session.path), str(new_path))
        except OSError as e:
            logger.error("Renaming {} to {} failed: {}", session.path, new_path, e)
            raise StorageIOError(f"Failed to rename folder {session.name}") from e

        logger.info("Renamed session folder {} -> {}", session.name, name)
        return Session(name=name, path=new_path, is_empty=not has_media(new_path))

    def delete(self, session: Session) -> None:
        if self.is_root(session):
            raise ProtectedSessionError("The root folder cannot be deleted")

        try:
            shutil.rmtree(session.path)
        except OSError as e:
            logger.error("Deleting {} failed: {}", session.path, e)
            raise StorageIOError(f"Failed to delete folder {session.name}") from e

        logger.info("Deleted session folder {}", session.path)
