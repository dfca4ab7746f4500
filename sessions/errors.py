# sessions/errors.py

from __future__ import annotations


class StorageIOError(RuntimeError):
    """Raised when a folder or media file cannot be created, listed, moved or deleted."""


class ArchiveError(StorageIOError):
    """Raised when a superseded capture cannot be moved into the archive folder.

    A retake must never silently overwrite, so this blocks the save that follows.
    """


class ProtectedSessionError(RuntimeError):
    """Raised when renaming or deleting the root session is attempted."""


class OutsideStorageError(ValueError):
    """Raised when a requested path does not lie inside the storage base directory."""
