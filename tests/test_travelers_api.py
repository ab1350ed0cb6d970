"""Tests for the traveler record endpoints."""
import pytest

from app.traveldocs import create_app
from app.traveldocs.db import session_scope
from app.traveldocs.models import AuditEvent, Base

VOLATILE = ("id", "created_at", "updated_at")


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
    r = client.post("/travelers")
    assert r.status_code == 200
    assert r.json["status"] == "success"
    return r.json["data"]["id"]


def _read(client, traveler_id: int) -> dict:
    r = client.get(f"/travelers/{traveler_id}")
    assert r.status_code == 200
    return r.json["data"]


def _stable(data: dict) -> dict:
    return {k: v for k, v in data.items() if k not in VOLATILE}


def test_create_returns_new_positive_ids(client):
    first = _create(client)
    second = _create(client)
    assert first > 0
    assert second > 0
    assert first != second


def test_read_after_create_is_default_state(client):
    tid = _create(client)
    data = _read(client, tid)
    assert data["id"] == tid
    assert data["status"] == "New"
    assert data["locked"] is False
    assert data["is_family"] is False
    assert data["first_name"] is None
    assert data["passport_no"] is None
    assert data["questions"] == {}
    assert data["files"] == {}
    assert data["has_invoice"] is False


def test_form_data_and_full_data_match_read_one(client):
    tid = _create(client)
    client.patch(f"/travelers/{tid}", json={"field": "first_name", "value": "Ada"})
    one = _read(client, tid)

    r = client.get(f"/travelers/get_form_data?id={tid}")
    assert r.status_code == 200
    assert r.json["data"] == one

    r = client.get(f"/travelers/get_full_data?id={tid}")
    assert r.status_code == 200
    assert r.json["data"] == one


def test_form_data_requires_id(client):
    r = client.get("/travelers/get_form_data")
    assert r.status_code == 400
    assert r.json["status"] == "error"


def test_update_field_changes_only_that_field(client):
    tid = _create(client)
    before = _read(client, tid)

    r = client.patch(f"/travelers/{tid}", json={"field": "last_name", "value": "Lovelace"})
    assert r.status_code == 200
    assert r.json == {"status": "success", "message": "Field updated successfully"}

    after = _read(client, tid)
    assert after["last_name"] == "Lovelace"
    expected = dict(_stable(before), last_name="Lovelace")
    assert _stable(after) == expected


def test_update_field_value_defaults_to_empty_string(client):
    tid = _create(client)
    client.patch(f"/travelers/{tid}", json={"field": "notes", "value": "call back"})
    r = client.patch(f"/travelers/{tid}", json={"field": "notes"})
    assert r.status_code == 200
    assert _read(client, tid)["notes"] == ""


def test_update_field_coerces_typed_columns(client):
    tid = _create(client)
    client.patch(f"/travelers/{tid}", json={"field": "price", "value": "120.5"})
    client.patch(f"/travelers/{tid}", json={"field": "appointment_date", "value": "2026-11-03"})
    client.patch(f"/travelers/{tid}", json={"field": "people_count", "value": "3"})
    client.patch(f"/travelers/{tid}", json={"field": "is_family", "value": "1"})
    data = _read(client, tid)
    assert data["price"] == "120.50"
    assert data["appointment_date"] == "2026-11-03"
    assert data["people_count"] == 3
    assert data["is_family"] is True


def test_update_unknown_field_is_rejected(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}", json={"field": "shoe_size", "value": "9"})
    assert r.status_code == 400
    assert r.json["status"] == "error"
    assert "shoe_size" in r.json["message"]


def test_update_locked_field_name_is_rejected(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}", json={"field": "locked", "value": "1"})
    assert r.status_code == 400
    assert _read(client, tid)["locked"] is False


def test_update_invalid_date_is_rejected(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}", json={"field": "date_of_birth", "value": "31/02/1990"})
    assert r.status_code == 400
    assert "date_of_birth" in r.json["message"]


def test_bulk_update_equals_sequential_updates(client):
    bulk_id = _create(client)
    seq_id = _create(client)
    updates = {"first_name": "Grace", "price": "99.99", "passport_no": "X1234567"}

    r = client.patch(f"/travelers/{bulk_id}/bulk", json={"updates": updates})
    assert r.status_code == 200
    assert r.json["message"] == "Fields updated successfully"

    for field, value in updates.items():
        r = client.patch(f"/travelers/{seq_id}", json={"field": field, "value": value})
        assert r.status_code == 200

    assert _stable(_read(client, bulk_id)) == _stable(_read(client, seq_id))


def test_bulk_update_requires_updates_object(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}/bulk", json={"first_name": "Grace"})
    assert r.status_code == 400
    assert r.json["status"] == "error"

    r = client.patch(f"/travelers/{tid}/bulk", json={"updates": ["first_name"]})
    assert r.status_code == 400


def test_bulk_update_is_all_or_nothing(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}/bulk", json={"updates": {"first_name": "Grace", "bogus": 1}})
    assert r.status_code == 400
    assert _read(client, tid)["first_name"] is None


def test_missing_traveler_is_404(client):
    r = client.get("/travelers/9999")
    assert r.status_code == 404
    assert r.json["status"] == "error"

    r = client.patch("/travelers/9999", json={"field": "first_name", "value": "x"})
    assert r.status_code == 404


def test_delete_then_read_is_not_found(client):
    tid = _create(client)
    r = client.delete(f"/travelers/{tid}")
    assert r.status_code == 200
    assert r.json["message"] == "Traveler deleted successfully"

    r = client.get(f"/travelers/{tid}")
    assert r.status_code == 404


def test_find_by_passport_not_found_is_success_envelope(client):
    r = client.get("/travelers/find-by-passport?passport_no=NOPE0000")
    assert r.status_code == 200
    assert r.json == {"status": "not_found"}


def test_find_by_passport_match(client):
    tid = _create(client)
    client.patch(f"/travelers/{tid}", json={"field": "passport_no", "value": "AB1234567"})

    r = client.get("/travelers/find-by-passport?passport_no=ab1234567")
    assert r.status_code == 200
    assert r.json["status"] == "success"
    assert r.json["data"]["id"] == tid


def test_find_by_passport_requires_param(client):
    r = client.get("/travelers/find-by-passport")
    assert r.status_code == 400


def test_lock_status_round_trip(client):
    tid = _create(client)

    r = client.post(f"/travelers/{tid}/lock-status", json={"locked": 1})
    assert r.status_code == 200
    assert r.json["data"] == {"locked": True}
    assert _read(client, tid)["locked"] is True

    r = client.post(f"/travelers/{tid}/lock-status", json={"locked": 0})
    assert r.json["data"] == {"locked": False}
    assert _read(client, tid)["locked"] is False


def test_lock_status_defaults_to_unlocked(client):
    tid = _create(client)
    client.post(f"/travelers/{tid}/lock-status", json={"locked": 1})
    r = client.post(f"/travelers/{tid}/lock-status", json={})
    assert r.json["data"] == {"locked": False}


def test_malformed_lock_body_is_rejected_and_keeps_lock(client):
    tid = _create(client)
    client.post(f"/travelers/{tid}/lock-status", json={"locked": 1})

    r = client.post(f"/travelers/{tid}/lock-status", data="{not json", content_type="application/json")
    assert r.status_code == 400
    assert r.json["status"] == "error"
    assert _read(client, tid)["locked"] is True


def test_malformed_field_update_body_is_rejected(client):
    tid = _create(client)
    r = client.patch(f"/travelers/{tid}", data="first_name=Ada", content_type="application/json")
    assert r.status_code == 400
    assert r.json["status"] == "error"

    r = client.patch(f"/travelers/{tid}", data="{not json", content_type="text/plain")
    assert r.status_code == 400
    assert _read(client, tid)["first_name"] is None


@pytest.mark.parametrize("value", [1.9, True, 2, -1, "yes", None, [1]])
def test_lock_status_accepts_only_zero_or_one(client, value):
    tid = _create(client)
    client.post(f"/travelers/{tid}/lock-status", json={"locked": 1})

    r = client.post(f"/travelers/{tid}/lock-status", json={"locked": value})
    assert r.status_code == 400
    assert _read(client, tid)["locked"] is True


def test_lock_status_accepts_string_digits(client):
    tid = _create(client)
    r = client.post(f"/travelers/{tid}/lock-status", json={"locked": "1"})
    assert r.json["data"] == {"locked": True}


def test_locked_traveler_rejects_field_updates(client):
    tid = _create(client)
    client.post(f"/travelers/{tid}/lock-status", json={"locked": 1})

    r = client.patch(f"/travelers/{tid}", json={"field": "first_name", "value": "Ada"})
    assert r.status_code == 409
    assert r.json["status"] == "error"

    r = client.patch(f"/travelers/{tid}/bulk", json={"updates": {"first_name": "Ada"}})
    assert r.status_code == 409
    assert _read(client, tid)["first_name"] is None


def test_mutations_are_audited(client):
    tid = _create(client)
    client.patch(f"/travelers/{tid}", json={"field": "first_name", "value": "Ada"})
    client.post(f"/travelers/{tid}/lock-status", json={"locked": 1})
    client.delete(f"/travelers/{tid}")

    with session_scope(client.application) as s:
        actions = [e.action for e in s.query(AuditEvent).order_by(AuditEvent.id.asc()).all()]
    assert actions == ["traveler.create", "traveler.update_field", "traveler.lock", "traveler.delete"]
