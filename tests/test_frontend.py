import pytest
import requests

from workcafe_web import app as web
from workcafe_web.api import APIError, WorkCafeAPI

CAFE = {
    "id": 7,
    "name": "Bean There",
    "address": "1 Main St",
    "city": "Portland",
    "avg_rating": 4.5,
    "reviews_count": 2,
    "primary_photo": None,
    "has_wifi": True,
    "wifi_speed": 100,
    "noise_level": "Quiet",
    "distance_km": None,
    "categories": ["coffee"],
}

ADMIN_ME = {"id": "a1", "username": "root", "role": "admin"}


@pytest.fixture()
def web_client():
    web.app.config.update(TESTING=True, SECRET_KEY="test")
    with web.app.test_client() as c:
        yield c


def _login(web_client, me):
    with web_client.session_transaction() as s:
        s["access_token"] = "tok"
        s["me_cache"] = me


def test_index_lists_cafes(web_client, monkeypatch):
    monkeypatch.setattr(web.api, "cafes", lambda page=1: {"items": [CAFE], "total": 1, "page": 1, "total_pages": 1})

    r = web_client.get("/")
    assert r.status_code == 200
    assert b"Bean There" in r.data
    assert b"1 cafe(s)" in r.data


def test_index_uses_search_when_filtered(web_client, monkeypatch):
    seen = {}

    def search(**kwargs):
        seen.update(kwargs)
        return {"items": [], "total": 0, "page": 1, "total_pages": 0}

    monkeypatch.setattr(web.api, "search_cafes", search)

    r = web_client.get("/?query=bean&amenities=wifi&amenities=vegan&openNow=1")
    assert r.status_code == 200
    assert b"No cafes found." in r.data
    assert seen["query"] == "bean"
    assert seen["amenities"] == ["wifi", "vegan"]
    assert seen["openNow"] == "true"


def test_index_survives_api_outage(web_client, monkeypatch):
    def down(page=1):
        raise APIError(503, "API unavailable: ConnectionError")

    monkeypatch.setattr(web.api, "cafes", down)
    r = web_client.get("/")
    assert r.status_code == 200
    assert b"Could not load cafes" in r.data


def test_login_stores_token(web_client, monkeypatch):
    monkeypatch.setattr(web.api, "login", lambda email, password: "jwt-token")

    r = web_client.post("/login?next=/profile", data={"email": "a@example.com", "password": "pw123456"})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/profile")
    with web_client.session_transaction() as s:
        assert s["access_token"] == "jwt-token"


@pytest.mark.parametrize(
    "target", ["https://evil.example.com", "//evil.example.com/phish", "/\\evil.example.com"]
)
def test_login_ignores_external_next(web_client, monkeypatch, target):
    monkeypatch.setattr(web.api, "login", lambda email, password: "jwt-token")
    r = web_client.post("/login", query_string={"next": target}, data={"email": "a@example.com", "password": "x"})
    assert r.status_code == 302
    assert "evil.example.com" not in r.headers["Location"]
    assert r.headers["Location"].endswith("/")


def test_protected_pages_redirect_to_login(web_client):
    r = web_client.get("/locations/new")
    assert r.status_code == 302
    assert "/login" in r.headers["Location"]


def test_moderation_requires_admin(web_client):
    _login(web_client, {"id": "u1", "username": "plain", "role": "user"})
    r = web_client.get("/admin/locations")
    assert r.status_code == 302


def test_admin_reject_needs_reason(web_client, monkeypatch):
    _login(web_client, ADMIN_ME)
    calls = []
    monkeypatch.setattr(web.api, "reject_location", lambda *a, **kw: calls.append((a, kw)))

    r = web_client.post("/admin/locations/3/reject", data={"rejection_reason": "  "})
    assert r.status_code == 302
    assert calls == []

    web_client.post("/admin/locations/3/reject", data={"rejection_reason": "Duplicate"})
    assert calls == [((3,), {"rejection_reason": "Duplicate"})]


def test_admin_pending_page(web_client, monkeypatch):
    _login(web_client, ADMIN_ME)
    pending = [dict(CAFE, country="USA", description=None, submitted_by_name="owner", created_at="2024-05-01T10:00:00")]
    monkeypatch.setattr(web.api, "pending_locations", lambda: pending)

    r = web_client.get("/admin/locations")
    assert r.status_code == 200
    assert b"by owner on 2024-05-01" in r.data


def test_location_payload_from_form():
    form = {
        "name": " Nook ",
        "address": "2 Elm",
        "city": "Salem",
        "country": "USA",
        "latitude": "44.9",
        "longitude": "bad",
        "has_wifi": "on",
        "wifi_speed": "50",
        "categories": "coffee, quiet ,",
        "photo_url": "https://img.example.com/n.jpg",
    }
    payload = web._location_payload(form)
    assert payload["name"] == "Nook"
    assert payload["latitude"] == 44.9
    assert payload["longitude"] is None
    assert payload["amenities"]["has_wifi"] is True
    assert payload["amenities"]["wifi_speed"] == 50
    assert payload["categories"] == ["coffee", "quiet"]
    assert payload["photos"] == [{"url": "https://img.example.com/n.jpg"}]


class _FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def test_api_error_messages(monkeypatch):
    api = WorkCafeAPI("http://api.test", token_getter=lambda: "tok")
    monkeypatch.setattr(
        requests,
        "request",
        lambda **kw: _FakeResponse(400, {"detail": "Validation failed", "errors": [{"field": "email", "message": "bad"}]}),
    )
    with pytest.raises(APIError) as exc:
        api.me()
    assert exc.value.status_code == 400
    assert exc.value.message == "email: bad"


def test_api_non_json_error(monkeypatch):
    api = WorkCafeAPI("http://api.test", token_getter=lambda: None)
    monkeypatch.setattr(requests, "request", lambda **kw: _FakeResponse(502, ValueError("no json")))
    with pytest.raises(APIError) as exc:
        api.cafes()
    assert exc.value.message == "HTTP 502"


def test_api_unreachable(monkeypatch):
    api = WorkCafeAPI("http://api.test", token_getter=lambda: None)

    def fail(**kw):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "request", fail)
    with pytest.raises(APIError) as exc:
        api.cafes()
    assert exc.value.status_code == 503
