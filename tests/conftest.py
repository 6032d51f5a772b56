"""
Shared pytest fixtures.

- app: built with the test config and a FakeMediaHost, uploads parked in tmp_path
- client: test client without a cookie jar, so each request only carries what it is given
- cookie_client: test client with a cookie jar
- a fresh in-memory SQLite schema for every test
"""
import io
import os

# Must be set before models/ builds the engine
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest

from api import create_app
from models import storage
from utils.media import MediaHostError

API = "/api/v1"


class FakeMediaHost:
    """Stands in for MediaHostClient: records uploads and deletions."""

    def __init__(self):
        self.uploaded = []
        self.destroyed = []
        self.fail_uploads = False
        # number of uploads allowed to succeed before the host starts failing
        self.fail_after = None
        self._counter = 0

    def upload(self, local_path):
        if self.fail_uploads or (self.fail_after is not None and self._counter >= self.fail_after):
            raise MediaHostError("media host down")
        # the parked temp file must still exist while the upload runs
        assert os.path.exists(local_path)
        self._counter += 1
        public_id = f"asset{self._counter}"
        self.uploaded.append(public_id)
        return {
            "public_id": public_id,
            "url": f"http://media.test/image/upload/v1/{public_id}.png",
            "secure_url": f"https://media.test/image/upload/v1/{public_id}.png",
        }

    def destroy(self, public_id):
        self.destroyed.append(public_id)
        return {"result": "ok"}


@pytest.fixture(autouse=True)
def fresh_db():
    storage.reset()
    yield
    storage.close()


@pytest.fixture
def media_host():
    return FakeMediaHost()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def app(media_host, upload_dir):
    app = create_app("test", media_host=media_host)
    app.config["UPLOAD_TMP_DIR"] = str(upload_dir)
    return app


@pytest.fixture
def client(app):
    return app.test_client(use_cookies=False)


@pytest.fixture
def cookie_client(app):
    return app.test_client()


def image(name="avatar.png"):
    return (io.BytesIO(b"\x89PNG\r\n\x1a\nfake"), name)


def register(client, username="alice", email="a@x.com", password="pw1",
             fullname="Alice Liddell", avatar=True, cover_image=False):
    data = {"username": username, "email": email, "password": password, "fullname": fullname}
    if avatar:
        data["avatar"] = image()
    if cover_image:
        data["cover_image"] = image("cover.png")
    return client.post(f"{API}/auth/register", data=data, content_type="multipart/form-data")


def login(client, password="pw1", **identity):
    identity = identity or {"username": "alice"}
    return client.post(f"{API}/auth/login", json=dict(identity, password=password))


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def session_tokens(client):
    """Registered and logged-in alice: (user_id, access_token, refresh_token)."""
    user_id = register(client).get_json()["data"]["id"]
    data = login(client).get_json()["data"]
    return user_id, data["access_token"], data["refresh_token"]
