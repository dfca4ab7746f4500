from abc import ABC, abstractmethod
from pathlib import Path


class CameraError(Exception):
    pass


class Camera(ABC):
    """
    Abstract capture collaborator.

    Implementations write the finished capture to a temporary file inside
    `output_dir` and return its path. Naming, archiving and the final move
    into the session folder are done by the controller.
    """

    @abstractmethod
    def health_check(self) -> bool:
        """Return True if the camera is connected and usable."""
        pass

    @abstractmethod
    def capture(self, output_dir: Path, *, flash: str = "off", position: str = "back") -> Path:
        """Capture a single photo and return the temporary file path."""
        pass

    # optional capabilities
    def start_recording(self, output_dir: Path, *, position: str = "back") -> None:
        raise NotImplementedError

    def stop_recording(self) -> Path:
        """Finish the recording and return the temporary video file path."""
        raise NotImplementedError
