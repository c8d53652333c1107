from pathlib import Path

import pytest
from sqlalchemy import func, select

from conftest import make_admin, register, venue_payload
from workcafe.core.security import Identity
from workcafe.models.enums import ModerationStatus
from workcafe.models.venues import Category, Venue, VenueAmenities, VenueHistory, VenueHours
from workcafe.schemas.venues import VenueCreate, VenueUpdate
from workcafe.services import venues as venue_service


def _submit(client, user, **overrides) -> int:
    r = client.post("/api/locations", json=venue_payload(**overrides), headers=user["headers"])
    assert r.status_code == 201, r.text
    return r.json()["id"]


def _history(client, admin, venue_id):
    r = client.get(f"/api/locations/{venue_id}/history", headers=admin["headers"])
    assert r.status_code == 200, r.text
    return r.json()


def test_submitted_location_is_pending_and_hidden(client, db):
    owner = register(client, "owner")
    other = register(client, "other")
    admin = make_admin(client, db)

    r = client.post("/api/locations", json=venue_payload(), headers=owner["headers"])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "pending"
    assert body["submitted_by"] == owner["id"]
    assert body["categories"] == ["coffee", "coworking"]
    assert len(body["hours"]) == 5
    assert body["amenities"]["power_outlets"] == "Abundant"
    assert body["dietary"]["has_vegan"] is True
    venue_id = body["id"]

    assert client.get(f"/api/locations/{venue_id}").status_code == 404
    assert client.get(f"/api/locations/{venue_id}", headers=other["headers"]).status_code == 404
    assert client.get(f"/api/locations/{venue_id}", headers=owner["headers"]).status_code == 200
    assert client.get(f"/api/cafes/{venue_id}", headers=admin["headers"]).status_code == 200

    assert client.get("/api/locations").json()["total"] == 0

    pending = client.get("/api/locations/admin/pending", headers=admin["headers"]).json()
    assert [p["id"] for p in pending] == [venue_id]
    assert pending[0]["submitted_by_name"] == "owner"


def test_pending_queue_is_admin_only(client):
    user = register(client, "plain")
    assert client.get("/api/locations/admin/pending", headers=user["headers"]).status_code == 403
    assert client.get("/api/locations/admin/pending").status_code == 401


def test_approve_publishes_and_logs_history(client, db):
    owner = register(client, "owner")
    admin = make_admin(client, db)
    venue_id = _submit(client, owner)

    r = client.put(f"/api/locations/admin/{venue_id}/approve", headers=admin["headers"])
    assert r.status_code == 200, r.text

    listed = client.get("/api/locations").json()
    assert [v["id"] for v in listed["items"]] == [venue_id]

    actions = [(h["action"], h["reason"]) for h in _history(client, admin, venue_id)]
    assert actions == [("create", "Initial submission"), ("approve", "Location approved by admin")]


def test_reject_requires_reason(client, db):
    owner = register(client, "owner")
    admin = make_admin(client, db)
    venue_id = _submit(client, owner)

    r = client.put(f"/api/locations/admin/{venue_id}/reject", json={}, headers=admin["headers"])
    assert r.status_code == 400
    r = client.put(f"/api/locations/admin/{venue_id}/reject", json={"rejection_reason": "   "}, headers=admin["headers"])
    assert r.status_code == 400

    r = client.put(
        f"/api/locations/admin/{venue_id}/reject",
        json={"rejection_reason": "Duplicate listing"},
        headers=admin["headers"],
    )
    assert r.status_code == 200, r.text

    detail = client.get(f"/api/locations/{venue_id}", headers=owner["headers"]).json()
    assert detail["status"] == "rejected"
    assert detail["rejection_reason"] == "Duplicate listing"

    submissions = client.get("/api/locations/user/submissions", headers=owner["headers"]).json()
    assert [(s["id"], s["status"]) for s in submissions] == [(venue_id, "rejected")]


def test_moderating_non_pending_venue_is_404_without_audit_row(client, db):
    owner = register(client, "owner")
    admin = make_admin(client, db)
    venue_id = _submit(client, owner)

    assert client.put(f"/api/locations/admin/{venue_id}/approve", headers=admin["headers"]).status_code == 200
    before = len(_history(client, admin, venue_id))

    r = client.put(f"/api/locations/admin/{venue_id}/approve", headers=admin["headers"])
    assert r.status_code == 404
    assert r.json()["detail"] == "Pending location not found"
    r = client.put(
        f"/api/locations/admin/{venue_id}/reject", json={"rejection_reason": "late"}, headers=admin["headers"]
    )
    assert r.status_code == 404

    assert len(_history(client, admin, venue_id)) == before
    assert client.put("/api/locations/admin/9999/approve", headers=admin["headers"]).status_code == 404


def test_update_permissions(client, db):
    owner = register(client, "owner")
    other = register(client, "other")
    admin = make_admin(client, db)
    venue_id = _submit(client, owner)

    r = client.put(f"/api/locations/{venue_id}", json={"name": "Hijacked"}, headers=other["headers"])
    assert r.status_code == 403

    r = client.put(f"/api/locations/{venue_id}", json={"name": "Renamed"}, headers=owner["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Renamed"

    r = client.put(f"/api/locations/{venue_id}", json={"name": "By admin"}, headers=admin["headers"])
    assert r.status_code == 200, r.text


def test_update_distinguishes_omitted_from_null(client):
    owner = register(client, "owner")
    venue_id = _submit(client, owner, phone="555-0100")

    r = client.put(f"/api/locations/{venue_id}", json={"description": None}, headers=owner["headers"])
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["description"] is None
    assert body["phone"] == "555-0100"
    assert body["name"] == "Bean There"

    r = client.put(
        f"/api/locations/{venue_id}", json={"amenities": {"wifi_speed": None}}, headers=owner["headers"]
    )
    assert r.status_code == 200, r.text
    amenities = r.json()["amenities"]
    assert amenities["wifi_speed"] is None
    assert amenities["power_outlets"] == "Abundant"

    r = client.put(f"/api/locations/{venue_id}", json={"name": None}, headers=owner["headers"])
    assert r.status_code == 400
    r = client.put(f"/api/locations/{venue_id}", json={"amenities": {"has_wifi": None}}, headers=owner["headers"])
    assert r.status_code == 400


def test_update_replaces_hours_and_categories(client, db):
    owner = register(client, "owner")
    venue_id = _submit(client, owner)

    r = client.put(
        f"/api/locations/{venue_id}",
        json={
            "hours": [{"day_of_week": 6, "is_closed": True}],
            "categories": ["Bakery"],
            "update_reason": "New weekend schedule",
        },
        headers=owner["headers"],
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert [(h["day_of_week"], h["is_closed"]) for h in body["hours"]] == [(6, True)]
    assert body["categories"] == ["bakery"]

    db.commit()
    assert db.scalar(select(func.count()).select_from(VenueHours).where(VenueHours.venue_id == venue_id)) == 1
    reasons = db.scalars(select(VenueHistory.reason).where(VenueHistory.venue_id == venue_id)).all()
    assert "New weekend schedule" in reasons


def test_duplicate_days_rejected(client):
    owner = register(client, "owner")
    hours = [{"day_of_week": 1, "open_time": "08:00:00", "close_time": "12:00:00"}] * 2
    r = client.post("/api/locations", json=venue_payload(hours=hours), headers=owner["headers"])
    assert r.status_code == 400


def test_lat_without_lng_rejected(client):
    owner = register(client, "owner")
    r = client.post("/api/locations", json=venue_payload(longitude=None), headers=owner["headers"])
    assert r.status_code == 400


def test_update_cannot_leave_half_a_coordinate(client):
    owner = register(client, "owner")
    venue_id = _submit(client, owner)

    for body in ({"latitude": None}, {"longitude": None}, {"latitude": None, "longitude": -122.6}):
        r = client.put(f"/api/locations/{venue_id}", json=body, headers=owner["headers"])
        assert r.status_code == 400, body

    detail = client.get(f"/api/locations/{venue_id}", headers=owner["headers"]).json()
    assert (detail["latitude"], detail["longitude"]) == (45.52, -122.68)

    r = client.put(f"/api/locations/{venue_id}", json={"latitude": None, "longitude": None}, headers=owner["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["latitude"] is None


def test_update_without_amenities_leaves_them_untouched(client, db):
    owner = register(client, "owner")
    editor = make_admin(client, db)
    venue_id = _submit(client, owner)
    before = client.get(f"/api/locations/{venue_id}", headers=owner["headers"]).json()["amenities"]

    r = client.put(f"/api/locations/{venue_id}", json={"name": "Renamed"}, headers=editor["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["amenities"]["last_updated"] == before["last_updated"]

    db.expire_all()
    assert db.get(VenueAmenities, venue_id).updated_by == owner["id"]


def test_appended_photos_keep_single_primary(client):
    owner = register(client, "owner")
    venue_id = _submit(client, owner)

    r = client.put(
        f"/api/locations/{venue_id}",
        json={"photos": [{"url": "https://img.example.com/c.jpg"}]},
        headers=owner["headers"],
    )
    assert r.status_code == 200, r.text
    photos = r.json()["photos"]
    assert [p["url"].rsplit("/", 1)[-1] for p in photos] == ["a.jpg", "b.jpg", "c.jpg"]
    assert [p["is_primary"] for p in photos] == [True, False, False]
    assert r.json()["primary_photo"] == "https://img.example.com/a.jpg"


def test_claim_only_once(client):
    owner = register(client, "owner")
    rival = register(client, "rival")
    venue_id = _submit(client, owner)

    r = client.post(f"/api/locations/{venue_id}/claim", headers=owner["headers"])
    assert r.status_code == 200, r.text

    r = client.post(f"/api/locations/{venue_id}/claim", headers=rival["headers"])
    assert r.status_code == 400
    assert r.json()["detail"] == "Location is already claimed"

    detail = client.get(f"/api/locations/{venue_id}", headers=owner["headers"]).json()
    assert detail["is_claimed"] is True
    assert detail["claimed_by"] == owner["id"]


def test_history_survives_delete(client, db):
    owner = register(client, "owner")
    admin = make_admin(client, db)
    venue_id = _submit(client, owner)

    assert client.delete(f"/api/locations/{venue_id}", headers=owner["headers"]).status_code == 403
    r = client.delete(f"/api/locations/{venue_id}", params={"reason": "Closed down"}, headers=admin["headers"])
    assert r.status_code == 200, r.text

    assert client.get(f"/api/locations/{venue_id}", headers=admin["headers"]).status_code == 404
    history = _history(client, admin, venue_id)
    assert history[-1]["action"] == "delete"
    assert history[-1]["reason"] == "Closed down"


def test_failed_create_leaves_nothing_behind(client, db, monkeypatch):
    owner = register(client, "owner")
    identity = Identity(id=owner["id"], username="owner", email="owner@example.com", role="user")

    def boom(*args, **kwargs):
        raise RuntimeError("amenities write failed")

    monkeypatch.setattr(venue_service, "_write_amenities", boom)

    with pytest.raises(RuntimeError):
        venue_service.create_venue(db, identity, VenueCreate(**venue_payload()), status=ModerationStatus.pending)

    assert db.scalar(select(func.count()).select_from(Venue)) == 0
    assert db.scalar(select(func.count()).select_from(VenueHours)) == 0
    assert db.scalar(select(func.count()).select_from(VenueHistory)) == 0


def test_failed_update_keeps_previous_state(client, db, monkeypatch):
    owner = register(client, "owner")
    identity = Identity(id=owner["id"], username="owner", email="owner@example.com", role="user")
    venue_id = _submit(client, owner)

    def boom(*args, **kwargs):
        raise RuntimeError("dietary write failed")

    monkeypatch.setattr(venue_service, "_write_dietary", boom)

    with pytest.raises(RuntimeError):
        venue_service.update_venue(db, identity, venue_id, VenueUpdate(name="Half written", hours=[], dietary={"has_vegan": False}))

    db.expire_all()
    venue = db.get(Venue, venue_id)
    assert venue.name == "Bean There"
    assert len(venue.hours) == 5


def test_photo_upload_partial_success(client):
    owner = register(client, "owner")
    venue_id = _submit(client, owner, photos=[])

    files = [
        ("photos", ("front.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")),
        ("photos", ("notes.txt", b"not an image", "text/plain")),
        ("photos", ("inside.png", b"\x89PNGfake", "image/png")),
    ]
    r = client.post(f"/api/locations/{venue_id}/photos", files=files, headers=owner["headers"])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["failed"] == ["notes.txt"]
    assert len(body["photos"]) == 2
    assert [p["is_primary"] for p in body["photos"]] == [True, False]
    assert body["photos"][0]["url"].startswith("/media/locations/")


def test_photo_upload_skips_file_that_cannot_be_written(client, monkeypatch):
    owner = register(client, "owner")
    venue_id = _submit(client, owner, photos=[])

    real_write = Path.write_bytes
    calls = []

    def flaky_write(self, data):
        calls.append(self.name)
        if len(calls) == 2:
            raise OSError(28, "No space left on device")
        return real_write(self, data)

    monkeypatch.setattr(Path, "write_bytes", flaky_write)

    files = [
        ("photos", (f"p{i}.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")) for i in range(3)
    ]
    r = client.post(f"/api/locations/{venue_id}/photos", files=files, headers=owner["headers"])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["failed"] == ["p1.jpg"]
    assert len(body["photos"]) == 2
    assert len(calls) == 3


def test_photo_upload_limit(client):
    owner = register(client, "owner")
    venue_id = _submit(client, owner)
    files = [("photos", (f"p{i}.jpg", b"\xff\xd8", "image/jpeg")) for i in range(11)]
    r = client.post(f"/api/locations/{venue_id}/photos", files=files, headers=owner["headers"])
    assert r.status_code == 400


def test_verify_location(client):
    owner = register(client, "owner")
    checker = register(client, "checker")
    venue_id = _submit(client, owner)

    r = client.post(
        f"/api/locations/{venue_id}/verify",
        json={"verified_wifi": True, "notes": "Fast and stable"},
        headers=checker["headers"],
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["verified_wifi"] is True
    assert body["verified_power"] is False
    assert body["user_id"] == checker["id"]


def test_categories_are_shared(client, db):
    owner = register(client, "owner")
    _submit(client, owner, categories=["coffee"])
    _submit(client, owner, name="Second", categories=["Coffee", "tea"])

    db.commit()
    assert sorted(db.scalars(select(Category.name)).all()) == ["coffee", "tea"]
