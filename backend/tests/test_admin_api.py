"""
API tests for the admin console.
"""

import pytest


@pytest.fixture
async def admin_client(make_client, admin_user, login):
    ac = make_client()
    await login(ac, "admin@x.com", admin=True)
    return ac


@pytest.fixture
async def alice_client(make_client, subscriber, login):
    ac = make_client()
    await login(ac, "alice@x.com")
    return ac


async def open_session(ac, *messages):
    session_id = (await ac.post("/api/chat/sessions", json={})).json()["id"]
    for text in messages:
        await ac.post(f"/api/chat/sessions/{session_id}/messages", json={"content": text})
    return session_id


class TestAdminConsole:

    @pytest.mark.asyncio
    async def test_requires_admin(self, async_client):
        for path in ("/api/admin/dashboard", "/api/admin/live-data", "/api/admin/users", "/api/admin/chats"):
            response = await async_client.get(path)
            assert response.status_code == 403, path

    @pytest.mark.asyncio
    async def test_dashboard(self, admin_client, alice_client, create_user, mock_notifier):
        await create_user("bob")
        await open_session(alice_client, "m1", "m2")

        response = await admin_client.get("/api/admin/dashboard")

        assert response.status_code == 200
        body = response.json()
        assert body["stats"]["total_users"] == 2
        assert body["stats"]["subscribed_users"] == 1
        assert body["stats"]["active_chats"] == 1
        assert body["stats"]["unread_messages"] == 2
        assert body["stats"]["total_messages"] == 2
        assert {u["username"] for u in body["users"]} == {"alice", "bob"}
        assert all("password_hash" not in u for u in body["users"])
        assert [m["content"] for m in body["recent_messages"]] == ["m2", "m1"]

    @pytest.mark.asyncio
    async def test_live_data(self, admin_client, alice_client, mock_notifier):
        await open_session(alice_client, "m1", "m2", "m3")

        response = await admin_client.get("/api/admin/live-data")

        assert response.status_code == 200
        body = response.json()
        assert body["unread_count"] == 3
        assert body["active_session_count"] == 1
        # alice logged in moments ago; admins are never counted
        assert body["online_user_count"] == 1
        assert "as_of" in body

    @pytest.mark.asyncio
    async def test_online_count_drops_on_logout(self, admin_client, alice_client):
        await alice_client.post("/api/users/logout")
        body = (await admin_client.get("/api/admin/live-data")).json()
        assert body["online_user_count"] == 0

    @pytest.mark.asyncio
    async def test_view_marks_read(self, admin_client, alice_client, mock_notifier):
        session_id = await open_session(alice_client, "m1", "m2")

        [chat] = (await admin_client.get("/api/admin/chats")).json()
        assert chat["unread_count"] == 2
        assert chat["user"]["username"] == "alice"

        messages = (await admin_client.get(f"/api/admin/chats/{session_id}/messages")).json()
        assert [m["content"] for m in messages] == ["m1", "m2"]

        [chat] = (await admin_client.get("/api/admin/chats")).json()
        assert chat["unread_count"] == 0
        assert (await admin_client.get("/api/admin/live-data")).json()["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_mark_single_message_read(self, admin_client, alice_client, mock_notifier):
        session_id = await open_session(alice_client, "m1")
        [message] = (await alice_client.get(f"/api/chat/sessions/{session_id}/messages")).json()

        response = await admin_client.patch(f"/api/admin/messages/{message['id']}/read")
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        again = await admin_client.patch(f"/api/admin/messages/{message['id']}/read")
        assert again.status_code == 200

    @pytest.mark.asyncio
    async def test_reply_and_close(self, admin_client, alice_client, mock_notifier):
        session_id = await open_session(alice_client, "help")

        reply = await admin_client.post(
            f"/api/admin/chats/{session_id}/messages", json={"content": "check the battery"}
        )
        assert reply.status_code == 201
        assert reply.json()["sender_type"] == "admin"
        assert reply.json()["is_read"] is True

        closed = await admin_client.post(f"/api/admin/chats/{session_id}/close")
        assert closed.status_code == 200
        assert closed.json()["status"] == "closed"

        blocked = await alice_client.post(
            f"/api/chat/sessions/{session_id}/messages", json={"content": "thanks"}
        )
        assert blocked.status_code == 403
        assert (await admin_client.get("/api/admin/chats")).json() == []

    @pytest.mark.asyncio
    async def test_grant_subscription(self, admin_client, make_client, create_user, login):
        bob = await create_user("bob")

        response = await admin_client.post(
            "/api/admin/subscriptions", json={"user_id": str(bob.id)}
        )
        assert response.status_code == 201

        bob_client = make_client()
        await login(bob_client, "bob@x.com")
        created = await bob_client.post("/api/chat/sessions", json={})
        assert created.status_code == 201

    @pytest.mark.asyncio
    async def test_unknown_session(self, admin_client):
        missing = "00000000-0000-0000-0000-000000000000"
        assert (await admin_client.post(f"/api/admin/chats/{missing}/close")).status_code == 404
        assert (
            await admin_client.get(f"/api/admin/chats/{missing}/messages")
        ).status_code == 404
