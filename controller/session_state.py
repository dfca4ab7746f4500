"""
Sequencing state for the active session.

One `SessionState` exists per active folder. Switching folders never merges
into the old state: a new one is built from a fresh scan with `SessionState.scan`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Set, Union

from controller.errors import DuplicateLabelError, InvalidIndexError, LabelRequiredError, OverwriteWarning
from sessions.media import list_media
from sessions.naming import (
    CaptureIndex,
    PHOTO_EXTENSION,
    format_filename,
    is_numeric,
    parse_filename,
    sanitize,
    split_extension,
)
from sessions.sequence import highest_sequence, used_labels
from sessions.session_store import Session


class LabelingMode(Enum):
    SINGLE = "single"
    NUMBERED_GROUP = "numbered-group"
    TEXT_GROUP = "text-group"

    def next(self) -> "LabelingMode":
        order = list(LabelingMode)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class PendingConfirmation:
    """A manual index edit that was warned about and awaits an identical resubmission."""
    labeling_mode: LabelingMode
    index: CaptureIndex


def _positive_int(value: Union[int, str], what: str) -> int:
    if isinstance(value, bool):
        raise InvalidIndexError(f"Please enter a valid {what} (1 or greater).")
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip()
        if not is_numeric(text):
            raise InvalidIndexError(f"Please enter a valid {what} (1 or greater).")
        number = int(text)
    if number < 1:
        raise InvalidIndexError(f"Please enter a valid {what} (1 or greater).")
    return number


@dataclass
class SessionState:
    session: Session
    is_root: bool = False
    labeling_mode: LabelingMode = LabelingMode.SINGLE
    sequence: int = 1
    sub_sequence: int = 1
    text_label: Optional[str] = None
    retake_target: Optional[CaptureIndex] = None
    retake_filename: Optional[str] = None
    used_labels: Set[str] = field(default_factory=set)
    pending_confirmation: Optional[PendingConfirmation] = None
    last_capture: Optional[Path] = None

    @classmethod
    def scan(cls, session: Session, labeling_mode: LabelingMode, is_root: bool = False) -> "SessionState":
        """Build state for `session` from what is already in the folder.

        Captures resume after the highest existing sequence so re-entering a
        folder never lands on an existing filename. The root session keeps
        timestamp filenames and so always starts at 1.
        """
        media = list_media(session.path)
        sequence = 1 if is_root else highest_sequence(session.path) + 1
        return cls(
            session=session,
            is_root=is_root,
            labeling_mode=labeling_mode,
            sequence=sequence,
            sub_sequence=1,
            used_labels=used_labels(session.path),
            last_capture=media[0] if media else None,
        )

    # ---------- Queries ----------

    @property
    def label_required(self) -> bool:
        return self.labeling_mode == LabelingMode.TEXT_GROUP and self.text_label is None

    def next_index(self) -> CaptureIndex:
        """The index the next capture will be written under."""
        if self.retake_target is not None:
            return self.retake_target
        if self.labeling_mode == LabelingMode.TEXT_GROUP:
            if self.text_label is None:
                raise LabelRequiredError("Set a text label before capturing.")
            return CaptureIndex(text_label=self.text_label, sub_sequence=self.sub_sequence)
        if self.labeling_mode == LabelingMode.NUMBERED_GROUP:
            return CaptureIndex(sequence=self.sequence, sub_sequence=self.sub_sequence)
        return CaptureIndex(sequence=self.sequence)

    # ---------- Transitions ----------

    def record_capture(self, path: Path, retake: Optional[bool] = None) -> None:
        """Advance after a successful save. A retake only clears its target.

        `retake` says whether the saved capture replaced a file; it defaults to
        whether a retake target is currently set.
        """
        self.last_capture = path
        if retake is None:
            retake = self.retake_target is not None
        if retake:
            self.cancel_retake()
            return

        if self.labeling_mode == LabelingMode.SINGLE:
            self.sequence += 1
            return

        self.sub_sequence += 1
        if self.labeling_mode == LabelingMode.TEXT_GROUP and self.text_label is not None:
            self.used_labels.add(sanitize(self.text_label))

    def advance_group(self, label: Optional[str] = None) -> None:
        if self.labeling_mode == LabelingMode.TEXT_GROUP:
            if label is None:
                raise LabelRequiredError("A new text label is required for the next group.")
            self.set_label(label)
            return
        self.sequence += 1
        self.sub_sequence = 1

    def set_label(self, label: str) -> None:
        trimmed = (label or "").strip()
        if not trimmed:
            raise InvalidIndexError("Please enter a valid text label.")
        if sanitize(trimmed) in self.used_labels:
            raise DuplicateLabelError(
                f'The label "{trimmed}" has already been used in this folder. Please use a different name.'
            )
        self.text_label = trimmed
        self.sub_sequence = 1

    def set_labeling_mode(self, mode: LabelingMode) -> None:
        if mode == self.labeling_mode:
            return
        self.labeling_mode = mode
        self.pending_confirmation = None
        if mode == LabelingMode.TEXT_GROUP:
            # entering text-group always prompts for a fresh label
            self.text_label = None

    def cycle_labeling_mode(self) -> LabelingMode:
        self.set_labeling_mode(self.labeling_mode.next())
        return self.labeling_mode

    def enter_retake(self, filename: str) -> CaptureIndex:
        self.retake_target = parse_filename(filename)
        self.retake_filename = filename
        return self.retake_target

    def cancel_retake(self) -> None:
        self.retake_target = None
        self.retake_filename = None

    def next_filename(self, extension: str = PHOTO_EXTENSION) -> Optional[str]:
        """Name the next capture is expected to get, before collision suffixes.

        A retake keeps the stem of the file it replaces. Root captures are
        named by timestamp at capture time, so there is nothing to report.
        """
        if self.retake_filename is not None:
            stem, _ = split_extension(self.retake_filename)
            return stem + extension
        if self.is_root:
            return None
        try:
            return format_filename(self.next_index(), extension)
        except LabelRequiredError:
            return None

    def edit_index(
            self,
            primary: Union[int, str],
            sub: Union[int, str, None],
            exists: Callable[[str], bool],
            extension: str = PHOTO_EXTENSION,
    ) -> CaptureIndex:
        """Operator override of the next index.

        If the resulting file already exists the first request raises
        `OverwriteWarning`; resubmitting the identical request commits it.
        """
        grouped = self.labeling_mode != LabelingMode.SINGLE

        sub_sequence = None
        if grouped:
            sub_sequence = 1
            if sub is not None and str(sub).strip():
                sub_sequence = _positive_int(sub, "sub-sequence number")

        if self.labeling_mode == LabelingMode.TEXT_GROUP:
            label = str(primary or "").strip()
            if not label:
                raise InvalidIndexError("Please enter a valid text label.")
            index = CaptureIndex(text_label=label, sub_sequence=sub_sequence)
        else:
            index = CaptureIndex(sequence=_positive_int(primary, "sequence number"), sub_sequence=sub_sequence)

        request = PendingConfirmation(labeling_mode=self.labeling_mode, index=index)
        filename = format_filename(index, extension)
        if exists(filename) and request != self.pending_confirmation:
            self.pending_confirmation = request
            raise OverwriteWarning(filename)

        if index.text_label is not None:
            self.text_label = index.text_label
        else:
            self.sequence = index.sequence
        if grouped:
            self.sub_sequence = sub_sequence
        self.pending_confirmation = None
        return index

    def to_dict(self, extension: str = PHOTO_EXTENSION) -> dict:
        return {
            "folder": self.session.to_dict(),
            "isRoot": self.is_root,
            "labelingMode": self.labeling_mode.value,
            "sequence": self.sequence,
            "subSequence": self.sub_sequence,
            "textLabel": self.text_label,
            "labelRequired": self.label_required,
            "retakeTarget": self.retake_target.to_dict() if self.retake_target else None,
            "nextFilename": self.next_filename(extension),
            "usedLabels": sorted(self.used_labels),
            "lastCapture": str(self.last_capture) if self.last_capture else None,
            "pendingConfirmation": self.pending_confirmation is not None,
        }
