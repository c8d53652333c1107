from datetime import datetime, timedelta

from sqlalchemy import func, select

from conftest import create_cafe, make_admin, register
from workcafe.models.checkins import CheckIn
from workcafe.models.venues import Venue
from workcafe.services import checkins as checkin_service


def test_single_active_check_in(client, db):
    admin = make_admin(client, db)
    user = register(client, "worker")
    first = create_cafe(client, admin, name="First")
    second = create_cafe(client, admin, name="Second")

    r = client.post(f"/api/cafes/{first}/check-in", json={"occupancy_report": 40}, headers=user["headers"])
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "active"
    assert r.json()["occupancy_report"] == 40

    r = client.post(f"/api/cafes/{second}/check-in", headers=user["headers"])
    assert r.status_code == 201, r.text
    assert r.json()["venue_name"] == "Second"

    db.commit()
    open_rows = db.scalars(select(CheckIn).where(CheckIn.user_id == user["id"], CheckIn.check_out_time.is_(None))).all()
    assert [c.venue_id for c in open_rows] == [second]
    assert db.scalar(select(func.count()).select_from(CheckIn).where(CheckIn.status == "completed")) == 1

    me = client.get("/api/users/me", headers=user["headers"]).json()
    assert me["active_check_in"]["venue_id"] == second


def test_check_out_and_report(client, db):
    admin = make_admin(client, db)
    user = register(client, "worker")
    cafe_id = create_cafe(client, admin)

    r = client.post("/api/users/me/check-out", headers=user["headers"])
    assert r.status_code == 400
    assert r.json()["detail"] == "No active check-in found"
    assert client.patch("/api/users/me/check-in", json={"occupancy_report": 10}, headers=user["headers"]).status_code == 400

    client.post(f"/api/cafes/{cafe_id}/check-in", headers=user["headers"])
    r = client.patch("/api/users/me/check-in", json={"occupancy_report": 75}, headers=user["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["occupancy_report"] == 75
    assert client.patch("/api/users/me/check-in", json={"occupancy_report": 101}, headers=user["headers"]).status_code == 400

    r = client.post("/api/users/me/check-out", headers=user["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    assert r.json()["check_out_time"] is not None

    history = client.get("/api/users/me/check-ins", headers=user["headers"]).json()
    assert history["total"] == 1


def test_occupancy_percentage(client, db):
    admin = make_admin(client, db)
    cafe_id = create_cafe(client, admin, occupancy_limit=3)
    for name in ("a", "b"):
        user = register(client, f"worker_{name}")
        client.post(f"/api/cafes/{cafe_id}/check-in", headers=user["headers"])

    r = client.get(f"/api/cafes/{cafe_id}/occupancy")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["active_users"] == 2
    assert body["occupancy_limit"] == 3
    assert body["occupancy_percentage"] == 67
    assert sum(b["check_in_count"] for b in body["historical_data"]) == 2

    detail = client.get(f"/api/cafes/{cafe_id}").json()
    assert detail["active_users"] == 2
    assert detail["occupancy_percentage"] == 67

    active = client.get(f"/api/cafes/{cafe_id}/check-ins").json()
    assert sorted(c["username"] for c in active) == ["worker_a", "worker_b"]


def test_occupancy_percentage_rounding():
    assert checkin_service.occupancy_percentage(0, 10) == 0
    assert checkin_service.occupancy_percentage(1, 8) == 13
    assert checkin_service.occupancy_percentage(1, 200) == 1
    assert checkin_service.occupancy_percentage(5, 4) == 125
    assert checkin_service.occupancy_percentage(3, None) == 0
    assert checkin_service.occupancy_percentage(3, 0) == 0


def test_occupancy_history_window(client, db):
    admin = make_admin(client, db)
    user = register(client, "worker")
    cafe_id = create_cafe(client, admin)

    now = datetime(2024, 1, 10, 12, 0)
    for days_ago in (1, 2, 9):
        when = now - timedelta(days=days_ago)
        db.add(
            CheckIn(
                venue_id=cafe_id,
                user_id=user["id"],
                check_in_time=when,
                check_out_time=when + timedelta(hours=1),
                status="completed",
            )
        )
    db.commit()

    venue = db.get(Venue, cafe_id)
    data = checkin_service.occupancy(db, venue, now=now)
    assert data["active_users"] == 0
    assert data["occupancy_percentage"] == 0
    # 2024-01-09 is a Tuesday, 2024-01-08 a Monday
    assert data["historical_data"] == [
        {"day_of_week": 0, "hour_of_day": 12, "check_in_count": 1},
        {"day_of_week": 1, "hour_of_day": 12, "check_in_count": 1},
    ]


def test_check_in_requires_visible_venue(client):
    user = register(client, "worker")
    assert client.post("/api/cafes/999/check-in", headers=user["headers"]).status_code == 404
    assert client.post("/api/cafes/999/check-in").status_code == 401
