"""
API tests for subscriptions, chat sessions, messages and attachments.
"""

from decimal import Decimal

import pytest

from mechanic_chat.infrastructure.payments.stripe_service import StripeServiceError


class TestSubscriptionsApi:

    @pytest.mark.asyncio
    async def test_purchase(self, async_client, create_user, login, mock_stripe_service):
        await create_user("bob")
        await login(async_client, "bob@x.com")

        response = await async_client.post(
            "/api/subscriptions",
            json={"amount": "9.99", "payment_id": "pi_123", "user_id": "ignored"},
        )

        assert response.status_code == 201
        mock_stripe_service.verify_payment.assert_awaited_once_with("pi_123", Decimal("9.99"))

        status = (await async_client.get("/api/subscriptions/status")).json()
        assert status["has_active_subscription"] is True
        assert status["days_remaining"] == 30

        listed = (await async_client.get("/api/subscriptions")).json()
        assert [s["payment_id"] for s in listed] == ["pi_123"]

    @pytest.mark.asyncio
    async def test_wrong_amount(self, async_client, create_user, login, mock_stripe_service):
        await create_user("bob")
        await login(async_client, "bob@x.com")

        response = await async_client.post(
            "/api/subscriptions", json={"amount": "1.00", "payment_id": "pi_1"}
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "amount"

    @pytest.mark.asyncio
    async def test_payment_reuse(self, make_client, create_user, login, mock_stripe_service):
        await create_user("bob")
        await create_user("carol")
        bob, carol = make_client(), make_client()
        await login(bob, "bob@x.com")
        await login(carol, "carol@x.com")

        body = {"amount": "9.99", "payment_id": "pi_same"}
        assert (await bob.post("/api/subscriptions", json=body)).status_code == 201
        assert (await carol.post("/api/subscriptions", json=body)).status_code == 409

    @pytest.mark.asyncio
    async def test_unverified_payment(self, async_client, create_user, login, mock_stripe_service):
        await create_user("bob")
        await login(async_client, "bob@x.com")
        mock_stripe_service.verify_payment.side_effect = StripeServiceError("declined")

        response = await async_client.post(
            "/api/subscriptions", json={"amount": "9.99", "payment_id": "pi_bad"}
        )
        assert response.status_code == 402
        assert response.json()["details"]["action"] == "subscribe"

    @pytest.mark.asyncio
    async def test_requires_login(self, async_client):
        response = await async_client.post(
            "/api/subscriptions", json={"amount": "9.99", "payment_id": "pi_1"}
        )
        assert response.status_code == 401


class TestChatApi:

    @pytest.mark.asyncio
    async def test_no_subscription_is_402(self, async_client, create_user, login):
        await create_user("bob")
        await login(async_client, "bob@x.com")

        response = await async_client.post("/api/chat/sessions", json={"vehicle_info": {}})

        assert response.status_code == 402
        assert response.json()["details"]["action"] == "subscribe"

    @pytest.mark.asyncio
    async def test_session_flow(self, async_client, subscriber, login, mock_notifier):
        await login(async_client, "alice@x.com")

        created = await async_client.post(
            "/api/chat/sessions", json={"vehicle_info": {"type": "car", "make": "Ford"}}
        )
        assert created.status_code == 201
        session_id = created.json()["id"]

        sent = await async_client.post(
            f"/api/chat/sessions/{session_id}/messages", json={"content": "engine won't start"}
        )
        assert sent.status_code == 201
        assert sent.json()["sender_type"] == "user"
        assert sent.json()["is_read"] is False

        sessions = (await async_client.get("/api/chat/sessions")).json()
        assert len(sessions) == 1
        assert sessions[0]["message_count"] == 1
        assert sessions[0]["last_message"]["content"] == "engine won't start"
        assert sessions[0]["vehicle_info"]["make"] == "Ford"

        fetched = await async_client.get(f"/api/chat/sessions/{session_id}")
        assert fetched.status_code == 200

    @pytest.mark.asyncio
    async def test_first_message_notifies_once(self, async_client, subscriber, login, mock_notifier):
        await login(async_client, "alice@x.com")
        session_id = (await async_client.post("/api/chat/sessions", json={})).json()["id"]

        for text in ("first", "second", "third"):
            response = await async_client.post(
                f"/api/chat/sessions/{session_id}/messages", json={"content": text}
            )
            assert response.status_code == 201

        mock_notifier.notify_first_message.assert_called_once_with(
            "alice", "alice@x.com", "first", session_id
        )

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_fail_send(self, async_client, subscriber, login, mock_notifier):
        mock_notifier.notify_first_message.return_value = False
        await login(async_client, "alice@x.com")
        session_id = (await async_client.post("/api/chat/sessions", json={})).json()["id"]

        response = await async_client.post(
            f"/api/chat/sessions/{session_id}/messages", json={"content": "hello"}
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_foreign_session_is_404(
        self, make_client, subscriber, create_user, grant_subscription, login, mock_notifier
    ):
        carol = await create_user("carol")
        await grant_subscription(carol)
        alice_client, carol_client = make_client(), make_client()
        await login(alice_client, "alice@x.com")
        await login(carol_client, "carol@x.com")

        session_id = (await carol_client.post("/api/chat/sessions", json={})).json()["id"]
        await carol_client.post(
            f"/api/chat/sessions/{session_id}/messages", json={"content": "secret"}
        )

        assert (await alice_client.get(f"/api/chat/sessions/{session_id}")).status_code == 404
        assert (
            await alice_client.get(f"/api/chat/sessions/{session_id}/messages")
        ).status_code == 404
        assert (
            await alice_client.post(
                f"/api/chat/sessions/{session_id}/messages", json={"content": "hi"}
            )
        ).status_code == 404
        assert (await alice_client.get("/api/chat/sessions")).json() == []

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, async_client, subscriber, login):
        await login(async_client, "alice@x.com")
        session_id = (await async_client.post("/api/chat/sessions", json={})).json()["id"]

        response = await async_client.post(
            f"/api/chat/sessions/{session_id}/messages", json={"content": ""}
        )
        assert response.status_code == 422


class TestAttachmentApi:

    @pytest.mark.asyncio
    async def test_upload_and_serve(self, async_client, subscriber, login, mock_notifier):
        await login(async_client, "alice@x.com")
        session_id = (await async_client.post("/api/chat/sessions", json={})).json()["id"]

        uploaded = await async_client.post(
            f"/api/chat/sessions/{session_id}/attachments",
            files={"file": ("dash.png", b"\x89PNG fake", "image/png")},
        )
        assert uploaded.status_code == 201
        body = uploaded.json()
        assert body["content"] == "[File: dash.png]"
        url = body["attachments"][0]["url"]

        served = await async_client.get(url)
        assert served.status_code == 200
        assert served.content == b"\x89PNG fake"
        assert served.headers["content-type"].startswith("image/png")

    @pytest.mark.asyncio
    async def test_upload_as_first_turn_notifies_once(
        self, async_client, subscriber, login, mock_notifier
    ):
        await login(async_client, "alice@x.com")
        session_id = (await async_client.post("/api/chat/sessions", json={})).json()["id"]

        uploaded = await async_client.post(
            f"/api/chat/sessions/{session_id}/attachments",
            files={"file": ("dash.png", b"\x89PNG fake", "image/png")},
        )
        assert uploaded.status_code == 201
        sent = await async_client.post(
            f"/api/chat/sessions/{session_id}/messages", json={"content": "engine won't start"}
        )
        assert sent.status_code == 201

        mock_notifier.notify_first_message.assert_called_once_with(
            "alice", "alice@x.com", "[File: dash.png]", session_id
        )

    @pytest.mark.asyncio
    async def test_bad_type(self, async_client, subscriber, login):
        await login(async_client, "alice@x.com")
        session_id = (await async_client.post("/api/chat/sessions", json={})).json()["id"]

        response = await async_client.post(
            f"/api/chat/sessions/{session_id}/attachments",
            files={"file": ("run.sh", b"#!/bin/sh", "application/x-sh")},
        )
        assert response.status_code == 400

        messages = (await async_client.get(f"/api/chat/sessions/{session_id}/messages")).json()
        assert messages == []

    @pytest.mark.asyncio
    async def test_unknown_attachment(self, async_client, db_engine):
        response = await async_client.get("/api/attachments/nope.png")
        assert response.status_code == 404
