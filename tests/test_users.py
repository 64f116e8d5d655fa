import os

from config import settings

from conftest import auth, make_user

FORM = {
    "username": "Carol",
    "email": "Carol@Example.com",
    "full_name": "Carol Danvers",
    "password": "hunter22",
}


def avatar_file():
    return {"avatar": ("me.png", b"\x89PNG fake", "image/png")}


def test_register_user(client, db):
    res = client.post("/api/v1/users/register", data=FORM, files=avatar_file())
    assert res.status_code == 201
    body = res.json()
    assert body["statusCode"] == 201
    user = body["data"]
    assert user["username"] == "carol"
    assert user["email"] == "carol@example.com"
    assert "password_hash" not in user
    assert "refresh_token" not in user
    assert user["avatar"].startswith("/static/avatars/")
    assert user["cover_image"] is None

    stored = db["user"].find_one({"username": "carol"})
    assert stored["password_hash"] != "hunter22"
    path = os.path.join(settings.UPLOAD_DIR, "avatars", user["avatar"].rsplit("/", 1)[1])
    assert os.path.isfile(path)


def test_register_with_cover_image(client):
    files = {**avatar_file(), "cover_image": ("cover.jpg", b"jpeg", "image/jpeg")}
    res = client.post("/api/v1/users/register", data=FORM, files=files)
    assert res.status_code == 201
    assert res.json()["data"]["cover_image"].startswith("/static/covers/")


def test_register_requires_all_fields(client, db):
    res = client.post("/api/v1/users/register", data={**FORM, "full_name": "  "}, files=avatar_file())
    assert res.status_code == 400
    assert res.json()["message"] == "All fields are required"
    assert db["user"].count_documents({}) == 0


def test_register_requires_avatar(client, db):
    res = client.post("/api/v1/users/register", data=FORM)
    assert res.status_code == 400
    assert res.json()["message"] == "Avatar file is required"
    assert db["user"].count_documents({}) == 0


def test_register_duplicate_username_conflicts(client, db):
    make_user(db, "carol")
    res = client.post("/api/v1/users/register", data={**FORM, "email": "other@example.com"}, files=avatar_file())
    assert res.status_code == 409
    assert db["user"].count_documents({}) == 1


def test_register_duplicate_email_conflicts(client, db):
    make_user(db, "carol")
    res = client.post("/api/v1/users/register", data={**FORM, "username": "someone"}, files=avatar_file())
    assert res.status_code == 409
    assert db["user"].count_documents({}) == 1


def test_login_issues_tokens(client, db, alice):
    res = client.post("/api/v1/users/login", json={"username": "ALICE", "password": "secret123"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["user"]["username"] == "alice"
    assert "password_hash" not in data["user"]
    assert data["access_token"]
    assert db["user"].find_one({"_id": alice["_id"]})["refresh_token"] == data["refresh_token"]
    assert "access_token" in res.cookies


def test_login_failures(client, alice):
    assert client.post("/api/v1/users/login", json={"password": "secret123"}).status_code == 400
    assert client.post("/api/v1/users/login", json={"email": "nobody@example.com", "password": "x"}).status_code == 404
    res = client.post("/api/v1/users/login", json={"email": "alice@example.com", "password": "wrong"})
    assert res.status_code == 401


def test_current_user(client, alice):
    assert client.get("/api/v1/users/current-user").status_code == 401
    res = client.get("/api/v1/users/current-user", headers=auth(alice))
    assert res.status_code == 200
    assert res.json()["data"]["id"] == str(alice["_id"])
    assert "password_hash" not in res.json()["data"]


def test_invalid_token_is_rejected(client):
    res = client.get("/api/v1/users/current-user", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401


def test_refresh_token(client, db, alice):
    login = client.post("/api/v1/users/login", json={"username": "alice", "password": "secret123"})
    refresh_token = login.json()["data"]["refresh_token"]
    client.cookies.clear()

    res = client.post("/api/v1/users/refresh-token", json={"refresh_token": refresh_token})
    assert res.status_code == 200
    assert res.json()["data"]["access_token"]
    client.cookies.clear()

    assert client.post("/api/v1/users/refresh-token", json={"refresh_token": "garbage"}).status_code == 401
    assert client.post("/api/v1/users/refresh-token").status_code == 401


def test_logout_clears_refresh_token(client, db, alice):
    client.post("/api/v1/users/login", json={"username": "alice", "password": "secret123"})
    client.cookies.clear()
    res = client.post("/api/v1/users/logout", headers=auth(alice))
    assert res.status_code == 200
    assert "refresh_token" not in db["user"].find_one({"_id": alice["_id"]})
