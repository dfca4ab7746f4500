# controller/errors.py

from __future__ import annotations


class SequencingError(Exception):
    """Base class for rejected sequencing requests. State is left unchanged."""


class DuplicateLabelError(SequencingError):
    """The text label was already used in the active folder."""


class InvalidIndexError(SequencingError):
    """A manually entered sequence, sub-sequence or label is not acceptable."""


class LabelRequiredError(SequencingError):
    """Text-group mode needs a label before anything can be captured."""


class BusyError(RuntimeError):
    """Another folder or capture operation is still in flight."""


class OverwriteWarning(UserWarning):
    """
    Raised by a manual index edit whose filename already exists.

    Not an error: submitting the identical edit again commits it.
    """

    def __init__(self, filename: str):
        super().__init__(f'File "{filename}" already exists. Submit the same index again to confirm overwrite.')
        self.filename = filename
