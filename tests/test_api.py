from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.websockets import WebSocketDisconnect

from conftest import make_engine, run, token_for
from app.config import settings
from app.database import get_db
from app.exceptions import UpstreamFailure
from app.main import create_app
from app.repositories.user_repository import UserRepository
from app.schemas.auth import ExternalProfile


class FakeIdentityProvider:
    def __init__(self):
        self.profile = ExternalProfile(
            external_id="google-42",
            name="Ada Lovelace",
            email="ada@example.com",
            avatar_url="https://example.com/ada.png",
        )
        self.fail = False

    def authorization_url(self, state=None):
        return "https://accounts.google.com/o/oauth2/v2/auth?client_id=test"

    async def exchange_code(self, code):
        if self.fail:
            raise UpstreamFailure("Google said no")
        return self.profile

    async def aclose(self):
        pass


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def engine(tmp_path):
    api_engine = make_engine(tmp_path / "api.db")
    yield api_engine
    run(api_engine.dispose())


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def client(engine, session_factory, identity_provider):
    app = create_app(engine, session_factory, identity_provider=identity_provider)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def users(client, session_factory):
    async def seed():
        async with session_factory() as session:
            repo = UserRepository(session)
            return [
                await repo.create(name=name, email=f"{name.lower()}@example.com")
                for name in ("Alice", "Bob", "Carol")
            ]

    return run(seed())


def auth(user):
    return {"Authorization": f"Bearer {token_for(user)}"}


def befriend(client, sender, receiver):
    request = client.post(f"/api/v1/friends/request/{receiver.id}", headers=auth(sender))
    assert request.status_code == 201
    accepted = client.put(f"/api/v1/friends/accept/{request.json()['id']}", headers=auth(receiver))
    assert accepted.status_code == 200


class TestAuthentication:

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer nonsense"}])
    def test_protected_routes_need_a_valid_token(self, client, headers):
        response = client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert "detail" in response.json()

    def test_me_and_refresh(self, client, users):
        alice = users[0]

        me = client.get("/api/v1/auth/me", headers=auth(alice))
        assert me.status_code == 200
        assert me.json()["email"] == "alice@example.com"

        refreshed = client.post("/api/v1/auth/refresh", headers=auth(alice))
        assert refreshed.status_code == 200
        body = refreshed.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

        again = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert again.json()["id"] == alice.id

    def test_logout_marks_offline(self, client, users):
        alice = users[0]

        response = client.post("/api/v1/auth/logout", headers=auth(alice))

        assert response.status_code == 200
        assert client.get("/api/v1/auth/me", headers=auth(alice)).json()["is_online"] is False

    def test_google_redirect(self, client):
        response = client.get("/api/v1/auth/google", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith("https://accounts.google.com/")

    def test_callback_creates_user_and_hands_out_token(self, client):
        response = client.get("/api/v1/auth/google/callback?code=abc", follow_redirects=False)

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert location.path == "/auth/callback"
        token = parse_qs(location.query)["token"][0]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["name"] == "Ada Lovelace"
        assert me.json()["avatar"] == "https://example.com/ada.png"

    def test_callback_links_existing_email(self, client, users, identity_provider):
        identity_provider.profile = ExternalProfile(external_id="g-alice", name="A", email="Alice@Example.com")

        response = client.get("/api/v1/auth/google/callback?code=abc", follow_redirects=False)
        token = parse_qs(urlparse(response.headers["location"]).query)["token"][0]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["id"] == users[0].id

    def test_callback_without_code(self, client):
        response = client.get("/api/v1/auth/google/callback", follow_redirects=False)

        assert response.headers["location"].endswith("/login?error=no_code")

    def test_callback_with_failing_provider(self, client, identity_provider):
        identity_provider.fail = True

        response = client.get("/api/v1/auth/google/callback?code=abc", follow_redirects=False)

        assert response.headers["location"].endswith("/login?error=auth_failed")


def test_login_unavailable_without_provider(engine, session_factory):
    app = create_app(engine, session_factory)

    with TestClient(app) as client:
        # the environment leaves the Google credentials empty
        assert client.app.state.identity_provider is None
        assert client.get("/api/v1/auth/google", follow_redirects=False).status_code == 503


class TestUsers:

    def test_search_excludes_self(self, client, users):
        alice = users[0]

        response = client.get("/api/v1/users/search", params={"q": "example.com"}, headers=auth(alice))

        assert [u["name"] for u in response.json()] == ["Bob", "Carol"]

    def test_unknown_user(self, client, users):
        response = client.get("/api/v1/users/999", headers=auth(users[0]))

        assert response.status_code == 404
        assert response.json() == {"detail": "User not found"}


class TestFriends:

    def test_request_accept_and_list(self, client, users):
        alice, bob, _ = users

        sent = client.post(f"/api/v1/friends/request/{bob.id}", headers=auth(alice))
        assert sent.json()["status"] == "pending"

        pending = client.get("/api/v1/friends/requests", headers=auth(bob)).json()
        assert [r["sender"]["id"] for r in pending] == [alice.id]

        accepted = client.put(f"/api/v1/friends/accept/{sent.json()['id']}", headers=auth(bob))
        assert accepted.json()["status"] == "accepted"

        assert [f["id"] for f in client.get("/api/v1/friends/", headers=auth(alice)).json()] == [bob.id]
        assert [f["id"] for f in client.get("/api/v1/friends/", headers=auth(bob)).json()] == [alice.id]
        check = client.get(f"/api/v1/friends/check/{bob.id}", headers=auth(alice)).json()
        assert check == {"user_id": bob.id, "is_friend": True}

    def test_error_statuses(self, client, users):
        alice, bob, carol = users

        assert client.post(f"/api/v1/friends/request/{alice.id}", headers=auth(alice)).status_code == 422
        assert client.post("/api/v1/friends/request/999", headers=auth(alice)).status_code == 404

        sent = client.post(f"/api/v1/friends/request/{bob.id}", headers=auth(alice))
        assert client.post(f"/api/v1/friends/request/{alice.id}", headers=auth(bob)).status_code == 409
        assert client.put(f"/api/v1/friends/accept/{sent.json()['id']}", headers=auth(carol)).status_code == 403

        rejected = client.put(f"/api/v1/friends/reject/{sent.json()['id']}", headers=auth(bob))
        assert rejected.json()["status"] == "rejected"
        assert client.put(f"/api/v1/friends/accept/{sent.json()['id']}", headers=auth(bob)).status_code == 409


class TestChat:

    def test_send_history_and_conversations(self, client, users):
        alice, bob, _ = users
        befriend(client, alice, bob)

        sent = client.post("/api/v1/chat/message", json={"receiver": bob.id, "text": "hi bob"}, headers=auth(alice))
        assert sent.status_code == 201
        assert sent.json()["sender"]["id"] == alice.id

        conversations = client.get("/api/v1/chat/conversations", headers=auth(bob)).json()
        assert conversations[0]["user"]["id"] == alice.id
        assert conversations[0]["unread_count"] == 1

        history = client.get(f"/api/v1/chat/messages/{alice.id}", headers=auth(bob)).json()
        assert [m["text"] for m in history] == ["hi bob"]

        conversations = client.get("/api/v1/chat/conversations", headers=auth(bob)).json()
        assert conversations[0]["unread_count"] == 0

    def test_strangers_cannot_chat(self, client, users):
        alice, _, carol = users

        sent = client.post("/api/v1/chat/message", json={"receiver": carol.id, "text": "hi"}, headers=auth(alice))
        assert sent.status_code == 403
        assert client.get(f"/api/v1/chat/messages/{carol.id}", headers=auth(alice)).status_code == 403

    def test_message_length_limit(self, client, users):
        alice, bob, _ = users
        befriend(client, alice, bob)

        too_long = client.post("/api/v1/chat/message", json={"receiver": bob.id, "text": "x" * 1001}, headers=auth(alice))
        assert too_long.status_code == 422


class TestPosts:

    def test_upload_and_feed(self, client, users):
        alice = users[0]

        created = client.post(
            "/api/v1/posts/",
            data={"text": "look"},
            files={"image": ("cat.png", b"\x89PNG", "image/png")},
            headers=auth(alice),
        )
        assert created.status_code == 201
        post = created.json()
        assert post["author"]["id"] == alice.id
        assert post["image"].startswith(settings.MEDIA_URL + "/images/")

        media = client.get(urlparse(post["image"]).path)
        assert media.status_code == 200
        assert media.content == b"\x89PNG"

        feed = client.get("/api/v1/posts/", headers=auth(alice)).json()
        assert [p["id"] for p in feed] == [post["id"]]

    def test_empty_post_and_wrong_media(self, client, users):
        alice = users[0]

        assert client.post("/api/v1/posts/", data={"text": " "}, headers=auth(alice)).status_code == 422
        wrong = client.post(
            "/api/v1/posts/",
            files={"video": ("cat.png", b"\x89PNG", "image/png")},
            headers=auth(alice),
        )
        assert wrong.status_code == 422

    def test_only_author_edits(self, client, users):
        alice, bob, _ = users
        post = client.post("/api/v1/posts/", data={"text": "mine"}, headers=auth(alice)).json()

        assert client.put(f"/api/v1/posts/{post['id']}", data={"text": "ours"}, headers=auth(bob)).status_code == 403
        edited = client.put(f"/api/v1/posts/{post['id']}", data={"text": "still mine"}, headers=auth(alice))
        assert edited.json()["text"] == "still mine"

        assert client.delete(f"/api/v1/posts/{post['id']}", headers=auth(bob)).status_code == 403
        assert client.delete(f"/api/v1/posts/{post['id']}", headers=auth(alice)).status_code == 200
        assert client.get(f"/api/v1/posts/{post['id']}", headers=auth(alice)).status_code == 404


class TestRealtime:

    def test_binary_frame_is_reported_and_socket_stays_open(self, client, users):
        alice = users[0]

        with client.websocket_connect(f"/api/v1/ws/chat?token={token_for(alice)}") as ws:
            ws.send_bytes(b"\x00\x01")
            assert ws.receive_json() == {"type": "error", "data": {"message": "Binary frames are not supported"}}

            ws.send_json({"action": "ping"})
            assert ws.receive_json() == {"type": "pong", "data": {}}

    def test_bad_token_is_refused(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/ws/chat?token=garbage"):
                pass

        assert exc_info.value.code == 1008

    def test_message_between_connected_friends(self, client, users):
        alice, bob, _ = users
        befriend(client, alice, bob)

        with client.websocket_connect(f"/api/v1/ws/chat?token={token_for(alice)}") as alice_ws:
            with client.websocket_connect(
                "/api/v1/ws/chat", headers={"Authorization": f"Bearer {token_for(bob)}"}
            ) as bob_ws:
                assert bob_ws.receive_json() == {"type": "onlineFriendsList", "data": {"onlineUserIds": [alice.id]}}
                assert alice_ws.receive_json() == {"type": "userOnline", "data": {"userId": bob.id, "isOnline": True}}

                online = client.get("/api/v1/ws/online-users").json()
                assert online == {"online_users": [alice.id, bob.id], "count": 2}

                alice_ws.send_json({"action": "sendMessage", "data": {"receiver": bob.id, "text": "realtime"}})
                delivered = bob_ws.receive_json()
                confirmed = alice_ws.receive_json()
                assert delivered["type"] == "newMessage"
                assert confirmed["type"] == "messageSent"
                assert delivered["data"] == confirmed["data"]

                bob_ws.send_text("{not json")
                assert bob_ws.receive_json() == {"type": "error", "data": {"message": "Invalid JSON format"}}

            offline = alice_ws.receive_json()
            assert offline["type"] == "userOffline"
            assert offline["data"]["userId"] == bob.id

        bob_now = client.get(f"/api/v1/users/{bob.id}", headers=auth(alice)).json()
        assert bob_now["is_online"] is False

    def test_http_send_reaches_open_socket(self, client, users):
        alice, bob, _ = users
        befriend(client, alice, bob)

        with client.websocket_connect(f"/api/v1/ws/chat?token={token_for(bob)}") as bob_ws:
            client.post("/api/v1/chat/message", json={"receiver": bob.id, "text": "via http"}, headers=auth(alice))

            event = bob_ws.receive_json()
            assert event["type"] == "newMessage"
            assert event["data"]["text"] == "via http"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").json()["version"] == settings.VERSION
