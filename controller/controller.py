"""
Capture controller

Single authoritative owner of the active session, its sequencing state, the
camera collaborator, user settings and health.

Goals:
- Captures resume after the highest existing index when a folder is re-entered
- A capture never silently overwrites an existing file
- Retakes archive the superseded file first; if archiving fails nothing is saved
- At most one folder/capture operation in flight (a second one is rejected as busy)
- Settings/last-folder failures degrade to defaults instead of blocking startup
"""

import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from loguru import logger

from controller.camera_base import Camera, CameraError
from controller.errors import BusyError, InvalidIndexError
from controller.health import HealthCode, HealthSource, HealthStatus
from controller.session_state import LabelingMode, SessionState
from preferences.app_settings import (
    CAMERA_POSITION,
    CAPTURE_MODE,
    FLASH_MODE,
    FOLDER,
    LABELING_MODE,
    SHUTTER_POSITION,
    AppSettings,
    InvalidSettingError,
    SettingMode,
)
from preferences.resolver import (
    CAMERA_POSITIONS,
    CAPTURE_MODES,
    DEFAULT_SHUTTER_POSITIONS,
    FLASH_MODES,
    SETTING_RULES,
    ResolvedSettings,
    SettingsResolver,
)
from preferences.stores import LastFolderStore, LastUsedStore, SettingsStore
from sessions.archiver import ARCHIVE_DIR_NAME, CaptureArchiver
from sessions.errors import ArchiveError, OutsideStorageError, ProtectedSessionError, StorageIOError
from sessions.media import delete_media, file_exists, has_media, list_media, save_file
from sessions.naming import (
    PHOTO_EXTENSION,
    VIDEO_EXTENSION,
    is_media_file,
    timestamp_filename,
)
from sessions.sequence import unique_filename
from sessions.session_store import Session, SessionStore

ORIENTATIONS = ("portrait", "landscape")


@dataclass(frozen=True)
class _Recording:
    folder: Path
    filename: str
    replaces: Optional[str]


class CaptureController:
    def __init__(self, camera: Camera, base_dir: Path, state_dir: Path):
        self._state_lock = threading.Lock()
        self._busy = False

        # Camera + storage
        self.camera = camera
        self.store = SessionStore(base_dir)
        self.archiver = CaptureArchiver()
        self.temp_dir = state_dir / "tmp"

        # Persisted preferences
        self.settings_store = SettingsStore(state_dir / "settings.json")
        self.last_used = LastUsedStore(state_dir / "last_used")
        self.last_folder = LastFolderStore(state_dir / "app_state.json")
        self.resolver = SettingsResolver(self.store, self.last_used, self.last_folder)
        self.settings = AppSettings()
        self.initial_values: Optional[ResolvedSettings] = None

        # Runtime state
        self.state: Optional[SessionState] = None
        self.capture_mode = "photo"
        self.flash_mode = "off"
        self.camera_position = "back"
        self.shutter_positions = copy.deepcopy(DEFAULT_SHUTTER_POSITIONS)
        self._recording: Optional[_Recording] = None

        # Health
        self._health_lock = threading.Lock()
        self._health_status = HealthStatus.ok()

    # ---------- Lifecycle ----------

    def start(self) -> None:
        self.store.init_storage()
        self.temp_dir.mkdir(parents=True, exist_ok=True)

        self.settings = self.settings_store.load()
        resolved = self.resolver.resolve(self.settings)
        self.initial_values = resolved

        self.capture_mode = resolved.capture_mode
        self.flash_mode = resolved.flash_mode
        self.camera_position = resolved.camera_position
        self.shutter_positions = resolved.shutter_positions

        self.state = SessionState.scan(
            resolved.folder,
            LabelingMode(resolved.labeling_mode),
            is_root=self.store.is_root(resolved.folder),
        )
        logger.info(
            "Started in folder {} (labeling={}, capture={})",
            resolved.folder.path,
            resolved.labeling_mode,
            resolved.capture_mode,
        )
        self.check_camera()

    # ---------- Status ----------

    def get_status(self) -> dict:
        with self._state_lock:
            busy = self._busy
        return {
            "busy": busy,
            "recording": self._recording is not None,
            "captureMode": self.capture_mode,
            "flashMode": self.flash_mode,
            "cameraPosition": self.camera_position,
            "shutterPositions": self.shutter_positions,
            "ignoreOrientationLock": self.settings.ignore_orientation_lock,
            "session": self.get_session(),
        }

    def get_session(self) -> Optional[dict]:
        return self.state.to_dict(self._extension()) if self.state else None

    def get_health(self) -> HealthStatus:
        with self._health_lock:
            return self._health_status

    def check_camera(self) -> HealthStatus:
        """Check the camera. Finding it again clears an earlier capture error."""
        if self.camera.health_check():
            if self.get_health().source == HealthSource.CAPTURE:
                self._mark_ok()
        else:
            self._set_error(HealthCode.CAMERA_NOT_DETECTED, "Camera not detected", source=HealthSource.CAPTURE)
        return self.get_health()

    # ---------- Folders ----------

    def list_folders(self) -> List[Session]:
        with self._operation():
            return self.store.list_sessions()

    def create_folder(self, prefix: str = "Session") -> Session:
        with self._operation():
            self._ensure_not_recording()
            session = self.store.create(prefix)
            self._switch_to(session)
            return session

    def select_folder(self, path: Union[str, Path]) -> Session:
        with self._operation():
            self._ensure_not_recording()
            session = self._session_for(path)
            if not self.store.exists(session):
                logger.warning("Selected folder {} no longer exists", session.path)
                return self._reset_to_root()
            self._switch_to(session)
            return self.state.session

    def verify_current_folder(self) -> Session:
        """Fall back to root if the active folder was deleted outside the app."""
        with self._operation():
            if not self.store.exists(self.state.session):
                return self._reset_to_root()
            return self.state.session

    def rename_folder(self, path: Union[str, Path], new_name: str) -> Session:
        with self._operation():
            self._ensure_not_recording()
            old = self._session_for(path)
            renamed = self.store.rename(old, new_name)
            if self._is_current(old):
                last_capture = self.state.last_capture
                if last_capture is not None:
                    last_capture = renamed.path / last_capture.name
                self.state.session = renamed
                self.state.last_capture = last_capture
                self.last_folder.save(renamed)
            return renamed

    def delete_folders(self, paths: Iterable[Union[str, Path]]) -> Tuple[List[Session], List[Tuple[str, str]]]:
        with self._operation():
            self._ensure_not_recording()
            deleted: List[Session] = []
            failed: List[Tuple[str, str]] = []
            for path in paths:
                try:
                    session = self._session_for(path)
                except (ProtectedSessionError, OutsideStorageError) as e:
                    failed.append((str(path), str(e)))
                    continue
                if self.store.is_root(session):
                    failed.append((str(session.path), "The root folder cannot be deleted"))
                    continue
                try:
                    self.store.delete(session)
                except StorageIOError as e:
                    failed.append((str(session.path), str(e)))
                    continue
                deleted.append(session)
                if self._is_current(session):
                    self._reset_to_root()
            return deleted, failed

    # ---------- Capture ----------

    def capture_photo(self) -> Path:
        with self._operation():
            self._ensure_not_recording()
            folder = self._active_folder()
            filename, replaces = self._target_filename(PHOTO_EXTENSION)

            temp_path = self.camera.capture(self.temp_dir, flash=self.flash_mode, position=self.camera_position)
            saved = self._store_capture(temp_path, folder, filename, replaces)

            self.state.record_capture(saved, retake=replaces is not None)
            self._mark_ok()
            return saved

    def start_recording(self) -> str:
        with self._operation():
            if self._recording is not None:
                raise BusyError("Already recording")
            folder = self._active_folder()
            # index is fixed now; the state only advances once the video is saved
            filename, replaces = self._target_filename(VIDEO_EXTENSION)
            try:
                self.camera.start_recording(self.temp_dir, position=self.camera_position)
            except NotImplementedError as e:
                raise CameraError("This camera cannot record video") from e
            self._recording = _Recording(folder=folder, filename=filename, replaces=replaces)
            logger.info("Recording started for {}", filename)
            return filename

    def stop_recording(self) -> Path:
        with self._operation():
            recording = self._recording
            if recording is None:
                raise CameraError("No recording in progress")
            self._recording = None

            temp_path = self.camera.stop_recording()
            saved = self._store_capture(temp_path, recording.folder, recording.filename, recording.replaces)

            # the active folder may have been reset to root while recording
            if self.state.session.path.resolve() == recording.folder.resolve():
                self.state.record_capture(saved, retake=recording.replaces is not None)
            self._mark_ok()
            return saved

    # ---------- Sequencing ----------

    def set_labeling_mode(self, mode: Optional[str] = None) -> LabelingMode:
        """Switch to `mode`, or cycle single -> numbered-group -> text-group."""
        with self._operation():
            self._ensure_not_recording()
            if mode is None:
                new_mode = self.state.cycle_labeling_mode()
            else:
                try:
                    new_mode = LabelingMode(mode)
                except ValueError as e:
                    raise InvalidSettingError(f"Unknown labeling mode: {mode}") from e
                self.state.set_labeling_mode(new_mode)
            self._remember(LABELING_MODE, new_mode.value)
            return new_mode

    def advance_group(self, label: Optional[str] = None) -> None:
        with self._operation():
            self._ensure_not_recording()
            self.state.advance_group(label)

    def set_text_label(self, label: str) -> None:
        with self._operation():
            self._ensure_not_recording()
            self.state.set_label(label)

    def edit_index(self, primary: Union[int, str], sub: Union[int, str, None] = None) -> None:
        with self._operation():
            self._ensure_not_recording()
            folder = self.state.session.path
            self.state.edit_index(
                primary,
                sub,
                exists=lambda filename: file_exists(folder, filename),
                extension=self._extension(),
            )

    def enter_retake(self, filename: Optional[str] = None) -> None:
        """Retake `filename`, or the most recent capture when omitted."""
        with self._operation():
            self._ensure_not_recording()
            if filename is None:
                if self.state.last_capture is None:
                    raise InvalidIndexError("There is no capture to retake")
                filename = self.state.last_capture.name
            if "/" in filename or "\\" in filename or not is_media_file(filename):
                raise InvalidIndexError(f"Not a capture: {filename}")
            if not file_exists(self.state.session.path, filename):
                raise InvalidIndexError(f"No capture named {filename} in this folder")
            self.state.enter_retake(filename)

    def cancel_retake(self) -> None:
        with self._operation():
            self._ensure_not_recording()
            self.state.cancel_retake()

    # ---------- Runtime options ----------

    def set_capture_mode(self, mode: str) -> None:
        with self._operation():
            self._ensure_not_recording()
            self.capture_mode = self._choice(mode, CAPTURE_MODES, "capture mode")
            self._remember(CAPTURE_MODE, self.capture_mode)

    def set_flash_mode(self, mode: str) -> None:
        with self._operation():
            self.flash_mode = self._choice(mode, FLASH_MODES, "flash mode")
            self._remember(FLASH_MODE, self.flash_mode)

    def set_camera_position(self, position: Optional[str] = None) -> str:
        with self._operation():
            if position is None:
                position = "front" if self.camera_position == "back" else "back"
            self.camera_position = self._choice(position, CAMERA_POSITIONS, "camera position")
            self._remember(CAMERA_POSITION, self.camera_position)
            return self.camera_position

    def set_shutter_position(self, orientation: str, x: float, y: float) -> dict:
        with self._operation():
            orientation = self._choice(orientation, ORIENTATIONS, "orientation")
            if isinstance(x, bool) or isinstance(y, bool) or not all(isinstance(v, (int, float)) for v in (x, y)):
                raise InvalidSettingError("Shutter position needs numeric x and y")
            positions = copy.deepcopy(self.shutter_positions)
            positions[orientation] = {"x": x, "y": y}
            self.shutter_positions = positions
            self._remember(SHUTTER_POSITION, positions)
            return positions

    # ---------- Settings ----------

    def get_settings(self) -> AppSettings:
        return self.settings

    def save_settings(self, data: dict) -> ResolvedSettings:
        """Persist a settings document and re-resolve the startup values it implies.

        The running session is left as it is.
        """
        with self._operation():
            return self._apply_settings(AppSettings.from_dict(data))

    def set_setting_mode(self, key: str, mode: str) -> AppSettings:
        with self._operation():
            try:
                setting_mode = SettingMode(mode)
            except ValueError as e:
                raise InvalidSettingError(f"Unknown setting mode: {mode}") from e
            settings = self.settings.with_mode(key, setting_mode, self._current_value(key))
            self._apply_settings(settings)
            return settings

    # ---------- Gallery ----------

    def list_media(self, folder: Union[str, Path, None] = None) -> List[Path]:
        with self._operation():
            path = self.state.session.path if folder is None else self._inside_base(folder)
            return list_media(path)

    def delete_media(self, paths: Iterable[Union[str, Path]]) -> Tuple[List[Path], List[Tuple[Path, str]]]:
        with self._operation():
            targets = [self._inside_base(p) for p in paths]
            deleted, failed = delete_media(targets)
            last_capture = self.state.last_capture
            if last_capture is not None and last_capture.resolve() in deleted:
                media = list_media(self.state.session.path)
                self.state.last_capture = media[0] if media else None
            logger.info("Deleted {} media files ({} failed)", len(deleted), len(failed))
            return deleted, failed

    def resolve_media_path(self, relative: str) -> Path:
        return self._inside_base(self.store.base_dir / relative)

    # ---------- Internal helpers ----------

    @contextmanager
    def _operation(self):
        with self._state_lock:
            if self._busy:
                raise BusyError("Another operation is in progress")
            self._busy = True
        try:
            yield
        except ArchiveError as e:
            self._set_error(HealthCode.ARCHIVE_FAILED, str(e), source=HealthSource.ARCHIVE)
            raise
        except StorageIOError as e:
            self._set_error(HealthCode.STORAGE_FAILED, str(e), source=HealthSource.STORAGE)
            raise
        except CameraError as e:
            self._set_error(HealthCode.CAPTURE_FAILED, str(e), source=HealthSource.CAPTURE)
            raise
        finally:
            with self._state_lock:
                self._busy = False

    def _inside_base(self, path: Union[str, Path]) -> Path:
        resolved = Path(path).resolve()
        base = self.store.base_dir.resolve()
        if resolved != base and base not in resolved.parents:
            raise OutsideStorageError(f"{path} is outside the photo storage")
        return resolved

    def _session_for(self, path: Union[str, Path]) -> Session:
        resolved = self._inside_base(path)
        if resolved == self.store.base_dir.resolve():
            return self.store.root
        if resolved.name == ARCHIVE_DIR_NAME:
            raise ProtectedSessionError(f"{resolved.name} holds archived captures and is not a folder")
        return Session(name=resolved.name, path=resolved, is_empty=not has_media(resolved))

    def _is_current(self, session: Session) -> bool:
        return self.state.session.path.resolve() == session.path.resolve()

    def _ensure_not_recording(self) -> None:
        if self._recording is not None:
            raise BusyError("Stop recording first")

    def _switch_to(self, session: Session) -> None:
        self._ensure_not_recording()
        # replaced wholesale: counters and used labels never carry over between folders
        self.state = SessionState.scan(session, self.state.labeling_mode, is_root=self.store.is_root(session))
        self.last_folder.save(session)
        logger.info("Switched to folder {}", session.path)

    def _reset_to_root(self) -> Session:
        # an active recording keeps its own target folder and is saved there on stop
        root = self.store.root
        self.state = SessionState.scan(root, self.state.labeling_mode, is_root=True)
        self.last_folder.save(root)
        logger.info("Active folder reset to root")
        return root

    def _active_folder(self) -> Path:
        folder = self.state.session.path
        if not folder.is_dir():
            name = self.state.session.name
            self._reset_to_root()
            raise StorageIOError(f"Folder {name} no longer exists; switched to the root folder")
        return folder

    def _target_filename(self, extension: str) -> Tuple[str, Optional[str]]:
        """Filename for the next capture and the existing file it replaces, if any."""
        if self.state.retake_filename is not None:
            return self.state.next_filename(extension), self.state.retake_filename
        index = self.state.next_index()
        if self.state.is_root:
            return timestamp_filename(extension), None
        return unique_filename(self.state.session.path, index, extension), None

    def _store_capture(self, temp_path: Path, folder: Path, filename: str, replaces: Optional[str]) -> Path:
        if replaces is not None:
            try:
                self.archiver.archive_existing(folder, replaces)
            except ArchiveError:
                temp_path.unlink(missing_ok=True)
                raise
        return save_file(temp_path, folder, filename)

    def _extension(self) -> str:
        return VIDEO_EXTENSION if self.capture_mode == "video" else PHOTO_EXTENSION

    @staticmethod
    def _choice(value: str, choices: Tuple[str, ...], what: str) -> str:
        if value not in choices:
            raise InvalidSettingError(f"Unknown {what}: {value}")
        return value

    def _remember(self, key: str, value) -> None:
        # written whatever the setting's mode, so switching to lastUsed later has history
        self.last_used.save(SETTING_RULES[key].last_used_key, value)

    def _current_value(self, key: str):
        if key == FOLDER:
            return {"name": self.state.session.name, "path": str(self.state.session.path)}
        return {
            SHUTTER_POSITION: self.shutter_positions,
            LABELING_MODE: self.state.labeling_mode.value,
            CAPTURE_MODE: self.capture_mode,
            FLASH_MODE: self.flash_mode,
            CAMERA_POSITION: self.camera_position,
        }.get(key)

    def _apply_settings(self, settings: AppSettings) -> ResolvedSettings:
        self.settings_store.save(settings)
        self.settings = settings
        self.initial_values = self.resolver.resolve(settings)
        return self.initial_values

    # ---------- Health helpers ----------

    def _mark_ok(self) -> None:
        with self._health_lock:
            self._health_status = HealthStatus.ok()

    def _set_error(self, code: HealthCode, message: str, *, source: HealthSource) -> None:
        logger.error("{}: {}", code.name, message)
        with self._health_lock:
            self._health_status = HealthStatus.error(
                code=code,
                message=message,
                instructions=_INSTRUCTIONS[source],
                source=source,
            )


_INSTRUCTIONS = {
    HealthSource.CAPTURE: [
        "Check that the camera is powered on",
        "Check the USB cable",
        "Replace the camera battery if needed",
    ],
    HealthSource.STORAGE: [
        "Check that the storage is mounted and not full",
        "Reopen the folder list and pick the folder again",
    ],
    HealthSource.ARCHIVE: [
        "The previous capture was kept and nothing was overwritten",
        "Free up space or check folder permissions, then retake again",
    ],
}
