import subprocess
import threading
from datetime import datetime
from pathlib import Path
from typing import List

from loguru import logger

from controller.camera_base import Camera, CameraError

GPHOTO2 = "gphoto2"
CHECK_TIMEOUT = 5


class GPhotoCamera(Camera):
    """
    Tethered camera driven through the `gphoto2` command line tool.

    Flash and lens selection are configured on the camera body, so the
    `flash` and `position` arguments are only logged. Video recording is not
    available over gphoto2 and keeps the base-class NotImplementedError.
    """

    def __init__(self, timeout: int = 10):
        self.timeout = timeout
        self._io_lock = threading.Lock()

    def _run(self, args: List[str], timeout: float) -> None:
        # one gphoto2 process at a time; the USB connection is exclusive
        with self._io_lock:
            subprocess.run(
                [GPHOTO2, *args],
                check=True,
                timeout=timeout,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )

    def health_check(self) -> bool:
        try:
            self._run(["--summary"], CHECK_TIMEOUT)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Camera health check failed: {}", e)
            return False
        return True

    def capture(self, output_dir: Path, *, flash: str = "off", position: str = "back") -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / f"capture_{datetime.now():%Y%m%d_%H%M%S_%f}.jpg"
        logger.debug("Capturing to {} (flash={}, position={})", target.name, flash, position)

        try:
            self._run(["--capture-image-and-download", "--force-overwrite", "--filename", str(target)], self.timeout)
        except subprocess.TimeoutExpired as e:
            raise CameraError("Camera capture timed out") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or b"").decode(errors="ignore").strip()
            raise CameraError(f"Camera capture failed: {detail}") from e
        except OSError as e:
            raise CameraError(f"{GPHOTO2} is not installed") from e

        if not target.exists():
            raise CameraError("Camera reported success but no file was created")
        return target
