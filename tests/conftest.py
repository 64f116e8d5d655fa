import mongomock
import pytest
from fastapi.testclient import TestClient

from config import settings
from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Comment, Playlist, User, Video
from security import create_access_token, hash_password


@pytest.fixture
def db():
    database = mongomock.MongoClient().videotube
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def make_user(db, username: str, password: str = "secret123") -> dict:
    user = User(
        username=username,
        email=f"{username}@example.com",
        full_name=username.title(),
        avatar=f"/static/avatars/{username}.png",
        password_hash=hash_password(password),
    )
    return create_document(db, "user", user)


def make_video(db, owner: dict, title: str = "A video", published: bool = True, views: int = 0) -> dict:
    video = Video(
        video_file="/static/videos/v.mp4",
        thumbnail="/static/thumbnails/t.jpg",
        title=title,
        description="about it",
        duration=12.5,
        views=views,
        is_published=published,
        owner=owner["_id"],
    )
    return create_document(db, "video", video)


def make_comment(db, video: dict, owner: dict, content: str = "Nice one") -> dict:
    return create_document(db, "comment", Comment(content=content, video=video["_id"], owner=owner["_id"]))


def make_playlist(db, owner: dict, name: str = "Favorites") -> dict:
    return create_document(db, "playlist", Playlist(name=name, description="x", owner=owner["_id"]))


@pytest.fixture
def alice(db):
    return make_user(db, "alice")


@pytest.fixture
def bob(db):
    return make_user(db, "bob")
