import os
from datetime import datetime

import pytest

from sessions.errors import ProtectedSessionError, StorageIOError
from sessions.session_store import ROOT_SESSION_NAME, SessionStore


class _Clock:
    def __init__(self, *moments):
        self._moments = list(moments)

    def __call__(self):
        return self._moments.pop(0)


def _store(tmp_path, *moments):
    store = SessionStore(tmp_path / "WorkPhotos", clock=_Clock(*moments) if moments else datetime.now)
    store.init_storage()
    return store


def test_root_session(tmp_path):
    store = _store(tmp_path)
    root = store.root
    assert root.name == ROOT_SESSION_NAME
    assert root.is_empty is True
    assert store.is_root(root)


def test_create_uses_prefix_and_timestamp(tmp_path):
    store = _store(tmp_path, datetime(2026, 1, 2, 3, 4, 5))
    session = store.create("Site A")
    assert session.name == "Site A_20260102_030405"
    assert session.path.is_dir()
    assert session.is_empty
    assert not store.is_root(session)


def test_create_same_second_fails(tmp_path):
    moment = datetime(2026, 1, 2, 3, 4, 5)
    store = _store(tmp_path, moment, moment)
    store.create("Site")
    with pytest.raises(StorageIOError):
        store.create("Site")


def test_list_sessions_root_first_then_newest(tmp_path):
    store = _store(tmp_path, datetime(2026, 1, 1, 0, 0, 0), datetime(2026, 1, 1, 0, 0, 1))
    older = store.create("A")
    newer = store.create("B")
    os.utime(older.path, (1_000, 1_000))
    os.utime(newer.path, (2_000, 2_000))
    (newer.path / "001.jpg").write_bytes(b"x")
    os.utime(newer.path, (2_000, 2_000))

    sessions = store.list_sessions()

    assert [s.name for s in sessions] == [ROOT_SESSION_NAME, newer.name, older.name]
    assert sessions[1].is_empty is False
    assert sessions[2].is_empty is True


def test_rename_gets_fresh_timestamp(tmp_path):
    store = _store(tmp_path, datetime(2026, 1, 1, 0, 0, 0), datetime(2026, 2, 2, 9, 9, 9))
    session = store.create("Old")
    (session.path / "001.jpg").write_bytes(b"x")

    renamed = store.rename(session, "New")

    assert renamed.name == "New_20260202_090909"
    assert (renamed.path / "001.jpg").exists()
    assert not session.path.exists()
    assert renamed.is_empty is False


def test_rename_target_exists(tmp_path):
    moment = datetime(2026, 1, 1, 0, 0, 0)
    store = _store(tmp_path, moment, datetime(2026, 1, 1, 0, 0, 1), datetime(2026, 1, 1, 0, 0, 1))
    store.create("A")
    session = store.create("B")
    (store.base_dir / "A_20260101_000001").mkdir()

    with pytest.raises(StorageIOError):
        store.rename(session, "A")
    assert session.path.is_dir()


def test_root_cannot_be_renamed_or_deleted(tmp_path):
    store = _store(tmp_path)
    with pytest.raises(ProtectedSessionError):
        store.rename(store.root, "Other")
    with pytest.raises(ProtectedSessionError):
        store.delete(store.root)
    assert store.base_dir.is_dir()


def test_delete_removes_folder_and_contents(tmp_path):
    store = _store(tmp_path, datetime(2026, 1, 1))
    session = store.create("Gone")
    (session.path / "001.jpg").write_bytes(b"x")
    (session.path / "archive").mkdir()

    store.delete(session)

    assert not store.exists(session)


def test_list_sessions_skips_archive_folder(tmp_path):
    store = _store(tmp_path, datetime(2026, 1, 1, 0, 0, 0))
    session = store.create("A")
    (store.base_dir / "archive").mkdir()
    (store.base_dir / "archive" / "IMG_1.jpg").write_bytes(b"x")

    assert [s.name for s in store.list_sessions()] == [ROOT_SESSION_NAME, session.name]
