"""Tests for question fields and file attachments."""
import io

import pytest
from sqlalchemy.orm import Session

from app.traveldocs import create_app
from app.traveldocs.models import Base
from app.traveldocs.storage import LocalStorage

@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("TRAVELERS_CACHE_DIR", str(tmp_path))
    monkeypatch.delenv("TRAVELERS_CACHE_BACKEND", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app.test_client()

def _create(client) -> int:
    return client.post("/travelers").json["data"]["id"]

def _upload(client, tid: int, category: str = "passport_scan", name: str = "scan.pdf", data: bytes = b"%PDF-1.4"):
    return client.post(
        f"/travelers/{tid}/files",
        data={"file": (io.BytesIO(data), name), "category": category},
        content_type="multipart/form-data",
    )

def test_update_question_field(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}/questions", json={"field": "employment", "value": "Nurse"})
    assert r.status_code == 200
    assert r.json == {"status": "success", "message": "Question field updated successfully"}

    data = client.get(f"/travelers/{tid}").json["data"]
    assert data["questions"] == {"employment": "Nurse"}
    assert data["first_name"] is None

def test_question_value_defaults_to_empty_string(client):
    tid = _create(client)
    client.patch(f"/travelers/{tid}/questions", json={"field": "employment", "value": "Nurse"})
    client.patch(f"/travelers/{tid}/questions", json={"field": "employment"})
    assert client.get(f"/travelers/{tid}").json["data"]["questions"] == {"employment": ""}

def test_question_field_name_is_validated(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}/questions", json={"field": "../etc", "value": "x"})
    assert r.status_code == 400
    r = client.patch(f"/travelers/{tid}/questions", json={"value": "x"})
    assert r.status_code == 400

def test_upload_file_stores_and_returns_path(client, tmp_path):
    tid = _create(client)
    r = _upload(client, tid)
    assert r.status_code == 200
    assert r.json["status"] == "success"
    path = r.json["data"]["path"]
    assert path == f"travelers/{tid}/passport_scan/scan.pdf"
    assert r.json["data"]["message"] == "File uploaded successfully"
    assert (tmp_path / "storage" / path).read_bytes() == b"%PDF-1.4"

    data = client.get(f"/travelers/{tid}").json["data"]
    assert data["files"] == {"passport_scan": path}

def test_upload_replaces_previous_file(client, tmp_path):
    tid = _create(client)
    old = _upload(client, tid, name="old.pdf").json["data"]["path"]
    new = _upload(client, tid, name="new.pdf").json["data"]["path"]
    assert not (tmp_path / "storage" / old).exists()
    assert (tmp_path / "storage" / new).exists()

def test_upload_io_failure_reports_detail(client, monkeypatch):
    tid = _create(client)

    def failing_put(self, key, data, *, content_type=None):
        raise OSError("No space left on device")

    monkeypatch.setattr(LocalStorage, "put_bytes", failing_put)
    r = _upload(client, tid)
    assert r.status_code == 500
    assert r.json["status"] == "error"
    assert r.json["message"].startswith("Failed to upload file:")
    assert "No space left on device" in r.json["message"]

    assert client.get(f"/travelers/{tid}").json["data"]["files"] == {}

def test_upload_requires_file_and_category(client):
    tid = _create(client)
    r = client.post(f"/travelers/{tid}/files", data={"category": "photo"}, content_type="multipart/form-data")
    assert r.status_code == 400

    r = client.post(
        f"/travelers/{tid}/files",
        data={"file": (io.BytesIO(b"x"), "a.jpg")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 400

def test_upload_to_missing_traveler_is_404(client):
    r = _upload(client, 4242)
    assert r.status_code == 404

def test_delete_file(client, tmp_path):
    tid = _create(client)
    path = _upload(client, tid).json["data"]["path"]

    r = client.delete(f"/travelers/{tid}/files?field=passport_scan")
    assert r.status_code == 200
    assert r.json == {"status": "success", "message": "File deleted successfully"}
    assert not (tmp_path / "storage" / path).exists()
    assert client.get(f"/travelers/{tid}").json["data"]["files"] == {}

def test_delete_file_requires_field(client):
    tid = _create(client)
    r = client.delete(f"/travelers/{tid}/files")
    assert r.status_code == 400

def test_locked_traveler_rejects_question_and_file_changes(client):
    tid = _create(client)
    client.post(f"/travelers/{tid}/lock-status", json={"locked": 1})

    r = client.patch(f"/travelers/{tid}/questions", json={"field": "employment", "value": "x"})
    assert r.status_code == 409
    r = _upload(client, tid)
    assert r.status_code == 409

def test_delete_traveler_removes_stored_files(client, tmp_path):
    tid = _create(client)
    path = _upload(client, tid).json["data"]["path"]
    assert (tmp_path / "storage" / path).exists()

    r = client.delete(f"/travelers/{tid}")
    assert r.status_code == 200
    assert not (tmp_path / "storage" / path).exists()

def _failing_commit(self):
    raise RuntimeError("database unavailable")

def test_failed_commit_keeps_file_on_delete(client, tmp_path, monkeypatch):
    tid = _create(client)
    path = _upload(client, tid).json["data"]["path"]

    with monkeypatch.context() as mp:
        mp.setattr(Session, "commit", _failing_commit)
        r = client.delete(f"/travelers/{tid}/files?field=passport_scan")
    assert r.status_code == 500
    assert (tmp_path / "storage" / path).exists()
    assert client.get(f"/travelers/{tid}").json["data"]["files"] == {"passport_scan": path}

def test_failed_commit_keeps_files_of_deleted_traveler(client, tmp_path, monkeypatch):
    tid = _create(client)
    path = _upload(client, tid).json["data"]["path"]

    with monkeypatch.context() as mp:
        mp.setattr(Session, "commit", _failing_commit)
        r = client.delete(f"/travelers/{tid}")
    assert r.status_code == 500
    assert (tmp_path / "storage" / path).exists()
    assert client.get(f"/travelers/{tid}").status_code == 200

def test_failed_commit_keeps_replaced_file(client, tmp_path, monkeypatch):
    tid = _create(client)
    old = _upload(client, tid, name="old.pdf").json["data"]["path"]

    with monkeypatch.context() as mp:
        mp.setattr(Session, "commit", _failing_commit)
        r = _upload(client, tid, name="new.pdf")
    assert r.status_code == 500
    assert (tmp_path / "storage" / old).exists()
    assert client.get(f"/travelers/{tid}").json["data"]["files"] == {"passport_scan": old}
