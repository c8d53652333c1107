from conftest import auth_header, register


def test_register_and_me(client):
    r = client.post(
        "/api/users/register",
        json={"username": "user1", "email": "User1@Example.com", "password": "password123", "first_name": "Ada"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["access_token"]
    assert body["user"]["email"] == "user1@example.com"
    assert body["user"]["role"] == "user"

    r2 = client.get("/api/users/me", headers=auth_header(body["access_token"]))
    assert r2.status_code == 200, r2.text
    me = r2.json()
    assert me["username"] == "user1"
    assert me["first_name"] == "Ada"
    assert me["is_active"] is True
    assert me["active_check_in"] is None


def test_register_duplicate_400(client):
    register(client, "dup")

    r = client.post("/api/users/register", json={"username": "dup", "email": "other@example.com", "password": "password123"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Username or email already exists"

    r = client.post("/api/users/register", json={"username": "other", "email": "dup@example.com", "password": "password123"})
    assert r.status_code == 400


def test_register_validation_errors(client):
    r = client.post("/api/users/register", json={"username": "x", "email": "not-an-email", "password": "123"})
    assert r.status_code == 400
    body = r.json()
    assert body["detail"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"username", "email", "password"} <= fields


def test_login_invalid_credentials_401(client):
    register(client, "user2")
    r = client.post("/api/users/login", json={"email": "user2@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid email or password"


def test_login_and_token_form(client):
    register(client, "user3")

    r = client.post("/api/users/login", json={"email": "user3@example.com", "password": "password123"})
    assert r.status_code == 200, r.text
    assert r.json()["user"]["username"] == "user3"

    r = client.post("/api/users/token", data={"username": "user3@example.com", "password": "password123"})
    assert r.status_code == 200, r.text
    assert r.json()["token_type"] == "bearer"


def test_me_requires_token(client):
    assert client.get("/api/users/me").status_code == 401
    assert client.get("/api/users/me", headers=auth_header("garbage")).status_code == 401


def test_rate_limit_on_login(client):
    for _ in range(10):
        r = client.post("/api/users/token", data={"username": "x@example.com", "password": "wrongpass"})
        assert r.status_code == 401

    r = client.post("/api/users/login", json={"email": "x@example.com", "password": "wrongpass"})
    assert r.status_code == 429, r.text
    assert "Retry-After" in r.headers
