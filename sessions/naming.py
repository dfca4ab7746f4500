"""
Capture filename codec.

A filename is the only persisted record of where a capture sits in a session:

    001.jpg        sequence 1
    001-2.jpg      sequence 1, sub-sequence 2
    Beam.jpg       text label "Beam"
    Beam-2.jpg     text label "Beam", sub-sequence 2

Everything here is pure string handling; no filesystem access.
"""
from __future__ import annotations

import random
import re
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

PHOTO_EXTENSION = ".jpg"
VIDEO_EXTENSION = ".mp4"

# Read-only recognised extensions; captures are only ever written as .jpg / .mp4
MEDIA_EXTENSIONS = (".jpg", ".jpeg", ".png", ".mp4", ".mov")
VIDEO_EXTENSIONS = (".mp4", ".mov")

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

_ILLEGAL_CHARS = re.compile(r'[\\/:*?"<>|]')
_NUMERIC = re.compile(r"[0-9]+")
_TIMESTAMP_SUFFIX = re.compile(r"^(.*)_\d{8}_\d{6}$")
_SHORT_ID_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class CaptureIndex:
    sequence: Optional[int] = None
    sub_sequence: Optional[int] = None
    text_label: Optional[str] = None

    def __post_init__(self):
        if (self.sequence is None) == (self.text_label is None):
            raise ValueError("CaptureIndex needs exactly one of sequence or text_label")

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "subSequence": self.sub_sequence,
            "textLabel": self.text_label,
        }


def sanitize(text: str) -> str:
    """Replace characters that are illegal in filenames with `_`."""
    return _ILLEGAL_CHARS.sub("_", text)


def is_numeric(text: str) -> bool:
    return bool(_NUMERIC.fullmatch(text))


def is_media_file(name: str) -> bool:
    return name.lower().endswith(MEDIA_EXTENSIONS)


def is_video_file(name: str) -> bool:
    return name.lower().endswith(VIDEO_EXTENSIONS)


def split_extension(filename: str) -> tuple[str, str]:
    """Split off a recognised media extension; unknown suffixes stay in the stem."""
    lower = filename.lower()
    for ext in MEDIA_EXTENSIONS:
        if lower.endswith(ext):
            return filename[: -len(ext)], filename[-len(ext):]
    return filename, ""


def format_filename(index: CaptureIndex, extension: str = PHOTO_EXTENSION) -> str:
    if index.text_label is not None:
        stem = sanitize(index.text_label)
    else:
        stem = f"{index.sequence:03d}"

    if index.sub_sequence is not None:
        stem = f"{stem}-{index.sub_sequence}"
    return stem + extension


def _parse_stem(stem: str) -> CaptureIndex:
    if is_numeric(stem):
        return CaptureIndex(sequence=int(stem))
    return CaptureIndex(text_label=stem)


def parse_filename(filename: str) -> CaptureIndex:
    """Inverse of `format_filename`.

    Any all-digit stem is read back as a sequence, so a text label literally
    named "123" comes back as sequence 123. A trailing `-<digits>` is always
    read as the sub-sequence; text-group captures always carry one, so
    `Beam-3-1.jpg` round-trips while a bare `Beam-3.jpg` reads as `Beam` 3.
    """
    stem, _ = split_extension(filename)

    prefix, dash, trailing = stem.rpartition("-")
    if dash and prefix and is_numeric(trailing):
        sub_sequence = int(trailing)
        if is_numeric(prefix):
            return CaptureIndex(sequence=int(prefix), sub_sequence=sub_sequence)
        return CaptureIndex(text_label=prefix, sub_sequence=sub_sequence)

    return _parse_stem(stem)


def timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def timestamp_filename(extension: str = PHOTO_EXTENSION, now: Optional[datetime] = None) -> str:
    """Filename for captures in the root session, which bypass sequencing."""
    short_id = "".join(random.choices(_SHORT_ID_ALPHABET, k=4))
    prefix = "VID" if extension == VIDEO_EXTENSION else "IMG"
    return f"{prefix}_{timestamp(now)}_{short_id}{extension}"


def folder_base_name(folder_name: str) -> str:
    """Strip the `_YYYYMMDD_HHMMSS` suffix from a session folder name."""
    match = _TIMESTAMP_SUFFIX.match(folder_name)
    if match:
        return match.group(1)
    return folder_name
