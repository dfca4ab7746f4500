# sessions/media.py

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, List, Tuple

from loguru import logger

from sessions.errors import StorageIOError
from sessions.naming import is_media_file, split_extension


def list_media(folder: Path) -> List[Path]:
    """Return media files directly inside `folder`, newest first.

    Subdirectories (including `archive/`) are never listed.
    """
    try:
        entries = [p for p in folder.iterdir() if p.is_file() and is_media_file(p.name)]
        entries.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    except OSError as e:
        logger.error("Listing media in {} failed: {}", folder, e)
        raise StorageIOError(f"Cannot read folder: {folder}") from e
    return entries


def has_media(folder: Path) -> bool:
    try:
        return any(p.is_file() and is_media_file(p.name) for p in folder.iterdir())
    except OSError as e:
        logger.warning("Failed to check folder {}: {}", folder, e)
        return False


def file_exists(folder: Path, filename: str) -> bool:
    return (folder / filename).exists()


def save_file(temp_path: Path, folder: Path, filename: str) -> Path:
    """Move a finished capture into `folder` under `filename`.

    Last line of defence against overwrites: if the name is taken, `_v2`,
    `_v3`, ... is appended to the stem until a free name is found.
    """
    stem, ext = split_extension(filename)
    destination = folder / filename
    counter = 1
    while destination.exists():
        counter += 1
        destination = folder / f"{stem}_v{counter}{ext}"

    try:
        shutil.move(str(temp_path), str(destination))
    except OSError as e:
        logger.error("Saving {} to {} failed: {}", temp_path, destination, e)
        raise StorageIOError(f"Failed to save capture as {destination.name}") from e

    if destination.name != filename:
        logger.warning("{} already existed, saved as {}", filename, destination.name)
    logger.info("Saved capture {}", destination)
    return destination


def delete_media(paths: Iterable[Path]) -> Tuple[List[Path], List[Tuple[Path, str]]]:
    """Delete media files, reporting per-path results instead of stopping at the first failure."""
    deleted: List[Path] = []
    failed: List[Tuple[Path, str]] = []
    for path in paths:
        if not is_media_file(path.name):
            failed.append((path, "Not a media file"))
            continue
        try:
            path.unlink()
            deleted.append(path)
        except OSError as e:
            logger.error("Deleting {} failed: {}", path, e)
            failed.append((path, str(e)))
    return deleted, failed
