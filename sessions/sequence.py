"""Resume sequencing from what is already on disk."""
from __future__ import annotations

from pathlib import Path
from typing import Set

from sessions.media import list_media
from sessions.naming import CaptureIndex, PHOTO_EXTENSION, format_filename, parse_filename, split_extension


def highest_sequence(folder: Path) -> int:
    """Highest numeric sequence among media files in `folder`, or 0.

    Text-labelled files do not count.
    """
    highest = 0
    for path in list_media(folder):
        index = parse_filename(path.name)
        if index.sequence is not None and index.sequence > highest:
            highest = index.sequence
    return highest


def used_labels(folder: Path) -> Set[str]:
    labels = set()
    for path in list_media(folder):
        index = parse_filename(path.name)
        if index.text_label is not None:
            labels.add(index.text_label)
    return labels


def unique_filename(folder: Path, index: CaptureIndex, extension: str = PHOTO_EXTENSION) -> str:
    """Filename for `index`, suffixed `_2`, `_3`, ... while the name is taken."""
    filename = format_filename(index, extension)
    stem, ext = split_extension(filename)
    counter = 1
    while (folder / filename).exists():
        counter += 1
        filename = f"{stem}_{counter}{ext}"
    return filename
