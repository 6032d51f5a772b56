import pytest

from conftest import API, register, login, bearer, image
from models import storage
from models.user import User
from models.video import Video
from models.subscription import Subscription


def _login_as(client, username, email):
    user_id = register(client, username=username, email=email, fullname=username.title()).get_json()["data"]["id"]
    token = login(client, username=username).get_json()["data"]["access_token"]
    return user_id, token


def _upload(client, token, route, field, name="new.png"):
    return client.patch(
        f"{API}/users/me/{route}",
        data={field: image(name)},
        content_type="multipart/form-data",
        headers=bearer(token),
    )


class TestCurrentUser:
    def test_me(self, client, session_tokens):
        user_id, access_token, _ = session_tokens
        resp = client.get(f"{API}/users/me", headers=bearer(access_token))

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["id"] == user_id
        assert "password_hash" not in data
        assert "refresh_token" not in data

    def test_me_with_access_cookie(self, client, cookie_client, session_tokens):
        _, access_token, _ = session_tokens
        cookie_client.set_cookie("access_token", access_token)
        assert cookie_client.get(f"{API}/users/me").status_code == 200

    def test_me_requires_token(self, client):
        resp = client.get(f"{API}/users/me")

        assert resp.status_code == 401
        assert resp.get_json() == {
            "status": 401,
            "error": "UNAUTHORIZED",
            "message": "Unauthorized request",
            "success": False,
        }

    def test_refresh_token_is_not_an_access_token(self, client, session_tokens):
        _, _, refresh_token = session_tokens
        assert client.get(f"{API}/users/me", headers=bearer(refresh_token)).status_code == 401


class TestUpdateDetails:
    def test_update_fullname_and_email(self, client, session_tokens):
        user_id, access_token, _ = session_tokens
        resp = client.patch(
            f"{API}/users/me",
            json={"fullname": "Alice L.", "email": "Alice@New.com"},
            headers=bearer(access_token),
        )

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["fullname"] == "Alice L."
        assert data["email"] == "alice@new.com"
        storage.close()
        assert storage.get(User, user_id).email == "alice@new.com"

    def test_nothing_to_update(self, client, session_tokens):
        _, access_token, _ = session_tokens
        resp = client.patch(f"{API}/users/me", json={}, headers=bearer(access_token))

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "fullname or email is required"

    @pytest.mark.parametrize("body", [["Alice L."], "Alice L."])
    def test_non_object_body_is_validation_error(self, client, session_tokens, body):
        _, access_token, _ = session_tokens
        resp = client.patch(f"{API}/users/me", json=body, headers=bearer(access_token))

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "VALIDATION_ERROR"

    def test_email_taken(self, client, session_tokens):
        _, access_token, _ = session_tokens
        register(client, username="bob", email="b@x.com")
        resp = client.patch(f"{API}/users/me", json={"email": "b@x.com"}, headers=bearer(access_token))

        assert resp.status_code == 409

    def test_keeping_own_email_is_not_a_conflict(self, client, session_tokens):
        _, access_token, _ = session_tokens
        resp = client.patch(f"{API}/users/me", json={"email": "a@x.com"}, headers=bearer(access_token))
        assert resp.status_code == 200


class TestImages:
    def test_replace_avatar_deletes_old_asset(self, client, media_host, session_tokens):
        _, access_token, _ = session_tokens
        resp = _upload(client, access_token, "avatar", "avatar")

        assert resp.status_code == 200
        assert resp.get_json()["data"]["avatar"].endswith("/asset2.png")
        assert media_host.destroyed == ["asset1"]

    def test_replace_cover_image(self, client, media_host):
        register(client, cover_image=True)
        token = login(client).get_json()["data"]["access_token"]
        resp = _upload(client, token, "cover-image", "cover_image")

        assert resp.status_code == 200
        assert resp.get_json()["data"]["cover_image"].endswith("/asset3.png")
        assert media_host.destroyed == ["asset2"]

    def test_first_cover_image_deletes_nothing(self, client, media_host, session_tokens):
        _, access_token, _ = session_tokens
        resp = _upload(client, access_token, "cover-image", "cover_image")

        assert resp.status_code == 200
        assert media_host.destroyed == []

    def test_missing_file(self, client, session_tokens):
        _, access_token, _ = session_tokens
        resp = client.patch(
            f"{API}/users/me/avatar",
            data={},
            content_type="multipart/form-data",
            headers=bearer(access_token),
        )

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Avatar file is missing"

    def test_upload_failure_keeps_old_avatar(self, client, media_host, upload_dir, session_tokens):
        user_id, access_token, _ = session_tokens
        before = storage.get(User, user_id).avatar
        media_host.fail_uploads = True

        resp = _upload(client, access_token, "avatar", "avatar")

        assert resp.status_code == 500
        assert list(upload_dir.iterdir()) == []
        assert media_host.destroyed == []
        storage.close()
        assert storage.get(User, user_id).avatar == before


class TestChannelProfile:
    def _subscribe(self, subscriber_id, channel_id):
        storage.new(Subscription(subscriber_id=subscriber_id, channel_id=channel_id))
        storage.save()

    def test_counts_and_is_subscribed(self, client):
        alice_id, alice_token = _login_as(client, "alice", "a@x.com")
        bob_id, bob_token = _login_as(client, "bob", "b@x.com")
        carol_id, _ = _login_as(client, "carol", "c@x.com")
        self._subscribe(bob_id, alice_id)
        self._subscribe(carol_id, alice_id)
        self._subscribe(alice_id, bob_id)

        resp = client.get(f"{API}/users/c/ALICE", headers=bearer(bob_token))
        assert resp.status_code == 200
        profile = resp.get_json()["data"]
        assert profile["username"] == "alice"
        assert profile["subscribers_count"] == 2
        assert profile["channels_subscribed_count"] == 1
        assert profile["is_subscribed"] is True
        assert "password_hash" not in profile

        own = client.get(f"{API}/users/c/alice", headers=bearer(alice_token)).get_json()["data"]
        assert own["is_subscribed"] is False

    def test_channel_without_subscriptions(self, client, session_tokens):
        _, access_token, _ = session_tokens
        profile = client.get(f"{API}/users/c/alice", headers=bearer(access_token)).get_json()["data"]

        assert profile["subscribers_count"] == 0
        assert profile["channels_subscribed_count"] == 0
        assert profile["is_subscribed"] is False

    def test_unknown_channel(self, client, session_tokens):
        _, access_token, _ = session_tokens
        resp = client.get(f"{API}/users/c/nobody", headers=bearer(access_token))

        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Channel does not exist"


class TestWatchHistory:
    def _video(self, owner_id, title):
        video = Video(
            owner_id=owner_id,
            title=title,
            video_file=f"https://media.test/{title}.mp4",
            thumbnail=f"https://media.test/{title}.jpg",
            duration=12.5,
        )
        storage.new(video)
        storage.save()
        return video.id

    def test_history_in_order_with_owner(self, client):
        alice_id, alice_token = _login_as(client, "alice", "a@x.com")
        bob_id, _ = _login_as(client, "bob", "b@x.com")
        first = self._video(bob_id, "first")
        second = self._video(alice_id, "second")

        alice = storage.get(User, alice_id)
        alice.watch_history = [second, first, second, "deleted-video"]
        alice.save()
        storage.close()

        resp = client.get(f"{API}/users/me/history", headers=bearer(alice_token))

        assert resp.status_code == 200
        items = resp.get_json()["data"]
        assert [v["title"] for v in items] == ["second", "first"]
        assert items[1]["owner"] == {
            "id": bob_id,
            "fullname": "Bob",
            "username": "bob",
            "avatar": items[1]["owner"]["avatar"],
        }
        assert "email" not in items[1]["owner"]

    def test_empty_history(self, client, session_tokens):
        _, access_token, _ = session_tokens
        resp = client.get(f"{API}/users/me/history", headers=bearer(access_token))

        assert resp.status_code == 200
        assert resp.get_json()["data"] == []
