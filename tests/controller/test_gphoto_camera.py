import subprocess

import pytest

from controller.camera_base import CameraError
from controller.gphoto_camera import GPhotoCamera


def test_capture_returns_downloaded_file(tmp_path, monkeypatch):
    def fake_run(cmd, check, timeout, stdout, stderr):
        assert "--filename" in cmd
        target = cmd[cmd.index("--filename") + 1]
        with open(target, "wb") as f:
            f.write(b"\xff\xd8" + b"fakejpeg")

    monkeypatch.setattr("subprocess.run", fake_run)

    cam = GPhotoCamera(timeout=1)
    got = cam.capture(tmp_path / "tmp", flash="on", position="front")
    assert got.parent == tmp_path / "tmp"
    assert got.suffix == ".jpg"
    assert got.read_bytes().startswith(b"\xff\xd8")


def test_capture_errors_if_no_file_created(tmp_path, monkeypatch):
    monkeypatch.setattr("subprocess.run", lambda *args, **kwargs: None)

    cam = GPhotoCamera()
    with pytest.raises(CameraError, match="no file was created"):
        cam.capture(tmp_path)


def test_health_check_success(monkeypatch):
    monkeypatch.setattr("subprocess.run", lambda *args, **kwargs: None)
    assert GPhotoCamera().health_check() is True


def test_health_check_failure(monkeypatch):
    def fake_run(*args, **kwargs):
        raise subprocess.CalledProcessError(returncode=1, cmd="gphoto2")

    monkeypatch.setattr("subprocess.run", fake_run)
    assert GPhotoCamera().health_check() is False


def test_health_check_gphoto2_missing(monkeypatch):
    def fake_run(*args, **kwargs):
        raise FileNotFoundError("gphoto2")

    monkeypatch.setattr("subprocess.run", fake_run)
    assert GPhotoCamera().health_check() is False


def test_capture_timeout(monkeypatch, tmp_path):
    def fake_run(*args, **kwargs):
        raise subprocess.TimeoutExpired(cmd="gphoto2", timeout=1)

    monkeypatch.setattr("subprocess.run", fake_run)

    cam = GPhotoCamera(timeout=1)
    with pytest.raises(CameraError, match="Camera capture timed out"):
        cam.capture(tmp_path)


def test_capture_called_process_error(monkeypatch, tmp_path):
    def fake_run(*args, **kwargs):
        raise subprocess.CalledProcessError(
            returncode=1,
            cmd="gphoto2",
            stderr=b"camera busy",
        )

    monkeypatch.setattr("subprocess.run", fake_run)

    with pytest.raises(CameraError, match="camera busy"):
        GPhotoCamera().capture(tmp_path)


def test_capture_gphoto2_not_installed(monkeypatch, tmp_path):
    def fake_run(*args, **kwargs):
        raise FileNotFoundError("gphoto2")

    monkeypatch.setattr("subprocess.run", fake_run)

    with pytest.raises(CameraError, match="not installed"):
        GPhotoCamera().capture(tmp_path)


def test_recording_not_supported(tmp_path):
    with pytest.raises(NotImplementedError):
        GPhotoCamera().start_recording(tmp_path)
