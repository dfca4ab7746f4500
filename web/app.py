"""
Flask application exposing the capture controller to the operator UI.
"""
import os
from pathlib import Path

from flask import Flask, Response, jsonify, request, send_from_directory
from werkzeug.exceptions import BadRequest

from controller.camera_base import CameraError
from controller.controller import CaptureController
from controller.errors import (
    BusyError,
    DuplicateLabelError,
    InvalidIndexError,
    LabelRequiredError,
    OverwriteWarning,
)
from controller.gphoto_camera import GPhotoCamera
from imaging.thumbnail_errors import ThumbnailError
from imaging.thumbnails import render_thumbnail
from preferences.app_settings import InvalidSettingError
from sessions.errors import ArchiveError, OutsideStorageError, ProtectedSessionError, StorageIOError
from sessions.naming import is_video_file, parse_filename
from web.log_config import init_logging

DEFAULT_BASE_DIR = Path.home() / "DCIM" / "WorkPhotos"
DEFAULT_STATE_DIR = Path.home() / ".workcamera"


def _error(code: str, message: str, status: int, **extra):
    return jsonify({"ok": False, "error": code, "message": message, **extra}), status


def _require(data: dict, key: str):
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise BadRequest(f"Missing '{key}'")
    return value


def create_app(camera=None, base_dir: Path | None = None, state_dir: Path | None = None,
               log_dir: Path | None = None):
    if base_dir is None:
        base_dir = Path(os.environ.get("WORKCAMERA_BASE_DIR", DEFAULT_BASE_DIR))
    if state_dir is None:
        state_dir = Path(os.environ.get("WORKCAMERA_STATE_DIR", DEFAULT_STATE_DIR))
    if log_dir is None and os.environ.get("WORKCAMERA_LOG_DIR"):
        log_dir = Path(os.environ["WORKCAMERA_LOG_DIR"])

    init_logging(log_dir)

    app = Flask(__name__)
    app.config["BASE_DIR"] = base_dir

    if camera is None:
        camera = GPhotoCamera()

    controller = CaptureController(camera=camera, base_dir=base_dir, state_dir=state_dir)
    controller.start()
    app.controller = controller

    def relative(path: Path) -> str:
        return path.resolve().relative_to(base_dir.resolve()).as_posix()

    def media_item(path: Path) -> dict:
        index = parse_filename(path.name)
        return {
            "name": path.name,
            "path": relative(path),
            "isVideo": is_video_file(path.name),
            "index": index.to_dict(),
        }

    def folder_item(session) -> dict:
        data = session.to_dict()
        data["path"] = relative(session.path)
        data["isRoot"] = controller.store.is_root(session)
        return data

    def folder_path(data: dict, key: str = "path") -> Path:
        return base_dir / str(data.get(key) or "")

    # ---------- Error mapping ----------

    @app.errorhandler(BadRequest)
    def bad_request(e):
        return _error("bad_request", e.description, 400)

    @app.errorhandler(BusyError)
    def busy(e):
        return _error("busy", str(e), 409)

    @app.errorhandler(OverwriteWarning)
    def overwrite(e):
        return _error("overwrite", str(e), 409, confirm=True, filename=e.filename)

    @app.errorhandler(DuplicateLabelError)
    def duplicate_label(e):
        return _error("duplicate_label", str(e), 409)

    @app.errorhandler(LabelRequiredError)
    def label_required(e):
        return _error("label_required", str(e), 409)

    @app.errorhandler(InvalidIndexError)
    def invalid_index(e):
        return _error("invalid_index", str(e), 400)

    @app.errorhandler(InvalidSettingError)
    def invalid_setting(e):
        return _error("invalid_setting", str(e), 400)

    @app.errorhandler(OutsideStorageError)
    def invalid_path(e):
        return _error("invalid_path", str(e), 400)

    @app.errorhandler(ProtectedSessionError)
    def protected(e):
        return _error("protected", str(e), 403)

    @app.errorhandler(ArchiveError)
    def archive_failed(e):
        return _error("archive_failed", str(e), 500)

    @app.errorhandler(StorageIOError)
    def storage_failed(e):
        return _error("storage_failed", str(e), 500)

    @app.errorhandler(CameraError)
    def camera_error(e):
        return _error("camera_error", str(e), 503)

    # ---------- Status ----------

    @app.route("/status", methods=["GET"])
    def status():
        return jsonify(app.controller.get_status())

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify(app.controller.get_health().to_dict())

    @app.route("/health/check", methods=["POST"])
    def check_camera():
        return jsonify(app.controller.check_camera().to_dict())

    # ---------- Folders ----------

    @app.route("/folders", methods=["GET"])
    def list_folders():
        return jsonify({"folders": [folder_item(s) for s in app.controller.list_folders()]})

    @app.route("/folders", methods=["POST"])
    def create_folder():
        data = request.get_json(silent=True) or {}
        session = app.controller.create_folder(str(data.get("prefix") or "Session"))
        return jsonify({"ok": True, "folder": folder_item(session)}), 201

    @app.route("/folders/select", methods=["POST"])
    def select_folder():
        data = request.get_json(silent=True) or {}
        session = app.controller.select_folder(folder_path(data))
        return jsonify({"ok": True, "folder": folder_item(session)})

    @app.route("/folders/verify", methods=["POST"])
    def verify_folder():
        session = app.controller.verify_current_folder()
        return jsonify({"ok": True, "folder": folder_item(session)})

    @app.route("/folders/rename", methods=["POST"])
    def rename_folder():
        data = request.get_json(silent=True) or {}
        name = str(_require(data, "name")).strip()
        path = folder_path(data) if data.get("path") else app.controller.state.session.path
        session = app.controller.rename_folder(path, name)
        return jsonify({"ok": True, "folder": folder_item(session)})

    @app.route("/folders/delete", methods=["POST"])
    def delete_folders():
        data = request.get_json(silent=True) or {}
        paths = _require(data, "paths")
        if not isinstance(paths, list):
            raise BadRequest("'paths' must be a list")
        deleted, failed = app.controller.delete_folders(base_dir / str(p) for p in paths)
        return jsonify({
            "ok": not failed,
            "deleted": [s.name for s in deleted],
            "failed": [{"path": p, "reason": reason} for p, reason in failed],
        })

    # ---------- Capture ----------

    @app.route("/capture", methods=["POST"])
    def capture():
        saved = app.controller.capture_photo()
        return jsonify({"ok": True, "filename": saved.name, "path": relative(saved)})

    @app.route("/record/start", methods=["POST"])
    def start_recording():
        filename = app.controller.start_recording()
        return jsonify({"ok": True, "filename": filename})

    @app.route("/record/stop", methods=["POST"])
    def stop_recording():
        saved = app.controller.stop_recording()
        return jsonify({"ok": True, "filename": saved.name, "path": relative(saved)})

    # ---------- Sequencing ----------

    @app.route("/labeling-mode", methods=["POST"])
    def labeling_mode():
        data = request.get_json(silent=True) or {}
        mode = app.controller.set_labeling_mode(data.get("mode"))
        return jsonify({"ok": True, "labelingMode": mode.value, "session": app.controller.get_session()})

    @app.route("/advance-group", methods=["POST"])
    def advance_group():
        data = request.get_json(silent=True) or {}
        app.controller.advance_group(data.get("label"))
        return jsonify({"ok": True, "session": app.controller.get_session()})

    @app.route("/label", methods=["POST"])
    def set_label():
        data = request.get_json(silent=True) or {}
        app.controller.set_text_label(str(data.get("label") or ""))
        return jsonify({"ok": True, "session": app.controller.get_session()})

    @app.route("/index", methods=["POST"])
    def edit_index():
        data = request.get_json(silent=True) or {}
        app.controller.edit_index(data.get("sequence", ""), data.get("subSequence"))
        return jsonify({"ok": True, "session": app.controller.get_session()})

    @app.route("/retake", methods=["POST"])
    def retake():
        data = request.get_json(silent=True) or {}
        app.controller.enter_retake(data.get("filename"))
        return jsonify({"ok": True, "session": app.controller.get_session()})

    @app.route("/retake/cancel", methods=["POST"])
    def cancel_retake():
        app.controller.cancel_retake()
        return jsonify({"ok": True, "session": app.controller.get_session()})

    # ---------- Runtime options ----------

    @app.route("/capture-mode", methods=["POST"])
    def capture_mode():
        data = request.get_json(silent=True) or {}
        app.controller.set_capture_mode(str(_require(data, "mode")))
        return jsonify({"ok": True, "captureMode": app.controller.capture_mode})

    @app.route("/flash-mode", methods=["POST"])
    def flash_mode():
        data = request.get_json(silent=True) or {}
        app.controller.set_flash_mode(str(_require(data, "mode")))
        return jsonify({"ok": True, "flashMode": app.controller.flash_mode})

    @app.route("/camera-position", methods=["POST"])
    def camera_position():
        data = request.get_json(silent=True) or {}
        position = app.controller.set_camera_position(data.get("position"))
        return jsonify({"ok": True, "cameraPosition": position})

    @app.route("/shutter-position", methods=["POST"])
    def shutter_position():
        data = request.get_json(silent=True) or {}
        positions = app.controller.set_shutter_position(
            str(_require(data, "orientation")),
            _require(data, "x"),
            _require(data, "y"),
        )
        return jsonify({"ok": True, "shutterPositions": positions})

    # ---------- Settings ----------

    @app.route("/settings", methods=["GET"])
    def get_settings():
        initial = app.controller.initial_values
        return jsonify({
            "settings": app.controller.get_settings().to_dict(),
            "initialValues": initial.to_dict() if initial else None,
        })

    @app.route("/settings", methods=["PUT"])
    def save_settings():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise BadRequest("Settings must be a JSON object")
        resolved = app.controller.save_settings(data)
        return jsonify({
            "ok": True,
            "settings": app.controller.get_settings().to_dict(),
            "initialValues": resolved.to_dict(),
        })

    @app.route("/settings/mode", methods=["POST"])
    def setting_mode():
        data = request.get_json(silent=True) or {}
        settings = app.controller.set_setting_mode(str(_require(data, "setting")), str(_require(data, "mode")))
        return jsonify({"ok": True, "settings": settings.to_dict()})

    # ---------- Media ----------

    @app.route("/media", methods=["GET"])
    def list_media():
        folder = request.args.get("folder")
        paths = app.controller.list_media(base_dir / folder if folder else None)
        return jsonify({"items": [media_item(p) for p in paths]})

    @app.route("/media/delete", methods=["POST"])
    def delete_media():
        data = request.get_json(silent=True) or {}
        paths = _require(data, "paths")
        if not isinstance(paths, list):
            raise BadRequest("'paths' must be a list")
        deleted, failed = app.controller.delete_media(base_dir / str(p) for p in paths)
        return jsonify({
            "ok": not failed,
            "deleted": [relative(p) for p in deleted],
            "failed": [{"path": relative(p), "reason": reason} for p, reason in failed],
        })

    @app.route("/sessions/<path:filename>")
    def sessions(filename: str):
        return send_from_directory(str(base_dir), filename)

    @app.route("/thumbnails/<path:filename>")
    def thumbnail(filename: str):
        path = app.controller.resolve_media_path(filename)
        if not path.is_file():
            return _error("not_found", f"No such file: {filename}", 404)
        try:
            data = render_thumbnail(path)
        except ThumbnailError as e:
            return _error("no_thumbnail", str(e), 404)
        return Response(data, mimetype="image/jpeg")

    return app
