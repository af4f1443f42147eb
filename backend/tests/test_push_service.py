"""
Tests for push and SMS delivery.

Provider calls are mocked: httpx for Expo, pywebpush for Web Push and the
Twilio client for SMS.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pywebpush import WebPushException
from twilio.base.exceptions import TwilioException

from config import settings
from services import push_service, sms_service


EXPO_TOKEN = "ExponentPushToken[abc123]"
SUBSCRIPTION = {"endpoint": "https://push.example.com/sub/1", "keys": {"p256dh": "k", "auth": "a"}}


def _expo_response(payload: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        json=payload,
        request=httpx.Request("POST", settings.expo_push_url),
    )


@pytest.fixture
def vapid(monkeypatch):
    monkeypatch.setattr(settings, "vapid_public_key", "public-key")
    monkeypatch.setattr(settings, "vapid_private_key", "private-key")


class TestHelpers:

    @pytest.mark.unit
    @pytest.mark.parametrize("token,expected", [
        ("ExponentPushToken[xyz]", True),
        ("ExpoPushToken[xyz]", True),
        ("web_1699999999", False),
        ("", False),
        (None, False),
    ])
    def test_is_expo_token(self, token, expected):
        assert push_service.is_expo_token(token) is expected

    @pytest.mark.unit
    def test_build_expo_message(self):
        message = push_service.build_expo_message(EXPO_TOKEN, 7, "Hi", "Body", {"orderId": "3"})
        assert message["to"] == EXPO_TOKEN
        assert message["data"] == {"orderId": "3", "userId": "7"}
        assert message["priority"] == "high"
        assert message["channelId"] == "orders"


@pytest.mark.integration
class TestExpo:

    async def test_success_returns_ticket(self, db_session, make_user):
        user = await make_user(push_token=EXPO_TOKEN)
        post = AsyncMock(return_value=_expo_response({"data": {"status": "ok", "id": "ticket-1"}}))
        with patch.object(httpx.AsyncClient, "post", post):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")

        assert result == {"success": True, "channel": "expo", "ticketId": "ticket-1"}
        sent = post.call_args.kwargs["json"]
        assert sent["to"] == EXPO_TOKEN
        assert sent["data"]["userId"] == str(user.id)

    async def test_device_not_registered_clears_token(self, db_session, make_user):
        user = await make_user(push_token=EXPO_TOKEN)
        ticket = {"data": [{"status": "error", "message": "gone", "details": {"error": "DeviceNotRegistered"}}]}
        with patch.object(httpx.AsyncClient, "post", AsyncMock(return_value=_expo_response(ticket))):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")

        assert result["success"] is False
        assert user.push_token is None

    async def test_http_error_is_reported_not_raised(self, db_session, make_user):
        user = await make_user(push_token=EXPO_TOKEN)
        with patch.object(httpx.AsyncClient, "post", AsyncMock(return_value=_expo_response({}, 500))):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")
        assert result["success"] is False
        assert result["channel"] == "expo"
        assert user.push_token == EXPO_TOKEN

    async def test_fake_web_token_cleared_without_network(self, db_session, make_user):
        user = await make_user(push_token="web_1699999999")
        post = AsyncMock()
        with patch.object(httpx.AsyncClient, "post", post):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")

        post.assert_not_called()
        assert user.push_token is None
        assert result == {"success": False, "channel": None, "error": "No push token or subscription"}

    async def test_malformed_token_skipped(self, db_session, make_user):
        user = await make_user(push_token="not-a-token")
        result = await push_service.send_push_notification(db_session, user, "Hi", "Body")
        assert result["error"] == "Invalid Expo push token"

    async def test_non_json_body_is_reported_not_raised(self, db_session, make_user):
        user = await make_user(push_token=EXPO_TOKEN)
        html = httpx.Response(
            200, text="<html>gateway</html>", request=httpx.Request("POST", settings.expo_push_url)
        )
        with patch.object(httpx.AsyncClient, "post", AsyncMock(return_value=html)):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")
        assert result == {"success": False, "channel": "expo", "error": "Invalid response from Expo"}
        assert user.push_token == EXPO_TOKEN

    @pytest.mark.parametrize("payload", [["ok"], {"data": "ok"}, {"data": []}])
    async def test_unexpected_json_shape_is_reported(self, db_session, make_user, payload):
        user = await make_user(push_token=EXPO_TOKEN)
        with patch.object(httpx.AsyncClient, "post", AsyncMock(return_value=_expo_response(payload))):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")
        assert result["success"] is False
        assert result["error"] == "Invalid response from Expo"

    async def test_bad_body_does_not_stop_fan_out(self, db_session, make_user):
        first = await make_user(push_token=EXPO_TOKEN)
        second = await make_user(push_token="ExponentPushToken[def456]")
        bad = httpx.Response(200, text="oops", request=httpx.Request("POST", settings.expo_push_url))
        good = _expo_response({"data": {"status": "ok", "id": "ticket-2"}})
        with patch.object(httpx.AsyncClient, "post", AsyncMock(side_effect=[bad, good])):
            results = await push_service.send_push_to_many(db_session, [first, second], "Hi", "Body")
        assert [r["success"] for r in results] == [False, True]
        assert results[1]["ticketId"] == "ticket-2"


@pytest.mark.integration
class TestWebPush:

    async def test_web_push_preferred(self, db_session, make_user, vapid):
        user = await make_user(push_subscription=SUBSCRIPTION, push_token=EXPO_TOKEN)
        with patch("services.push_service.webpush", MagicMock()) as webpush:
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body", {"a": "1"})

        assert result == {"success": True, "channel": "web"}
        assert webpush.call_args.kwargs["subscription_info"] == SUBSCRIPTION
        assert webpush.call_args.kwargs["vapid_claims"] == {"sub": settings.vapid_subject}

    async def test_gone_subscription_cleared_then_falls_back(self, db_session, make_user, vapid):
        user = await make_user(push_subscription=SUBSCRIPTION, push_token=EXPO_TOKEN)
        gone = WebPushException("Push failed: 410 Gone", response=MagicMock(status_code=410))
        post = AsyncMock(return_value=_expo_response({"data": {"status": "ok", "id": "t"}}))
        with patch("services.push_service.webpush", MagicMock(side_effect=gone)), \
             patch.object(httpx.AsyncClient, "post", post):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")

        assert user.push_subscription is None
        assert result["channel"] == "expo"
        assert result["success"] is True

    async def test_other_failure_keeps_subscription(self, db_session, make_user, vapid):
        user = await make_user(push_subscription=SUBSCRIPTION)
        failure = WebPushException("Push failed: 500", response=MagicMock(status_code=500))
        with patch("services.push_service.webpush", MagicMock(side_effect=failure)):
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")

        assert user.push_subscription == SUBSCRIPTION
        assert result["success"] is False
        assert "500" in result["error"]

    async def test_unconfigured_vapid_skips_web(self, db_session, make_user):
        user = await make_user(push_subscription=SUBSCRIPTION)
        with patch("services.push_service.webpush", MagicMock()) as webpush:
            result = await push_service.send_push_notification(db_session, user, "Hi", "Body")
        webpush.assert_not_called()
        assert result["success"] is False

    async def test_subscription_supersedes_fake_token(self, db_session, make_user):
        user = await make_user(push_token="web_123")
        await push_service.save_push_subscription(db_session, user=user, subscription=SUBSCRIPTION)
        assert user.push_token is None
        assert user.push_platform == "web"

        await push_service.clear_push_subscription(db_session, user=user)
        assert user.push_subscription is None


@pytest.mark.integration
async def test_fan_out_reports_per_user(db_session, make_user):
    with_token = await make_user(push_token=EXPO_TOKEN)
    without = await make_user()
    post = AsyncMock(return_value=_expo_response({"data": {"status": "ok", "id": "t"}}))
    with patch.object(httpx.AsyncClient, "post", post):
        results = await push_service.send_push_to_many(db_session, [with_token, without], "Hi", "Body")

    assert [(r["userId"], r["success"]) for r in results] == [(with_token.id, True), (without.id, False)]


class TestSms:

    @pytest.mark.unit
    async def test_unconfigured_only_logs(self):
        result = await sms_service.send_sms("+919812345678", "Your code is 123456")
        assert result == {"success": True, "delivered": False}

    @pytest.mark.unit
    async def test_sends_through_twilio(self, monkeypatch):
        monkeypatch.setattr(settings, "twilio_account_sid", "AC123")
        monkeypatch.setattr(settings, "twilio_auth_token", "token")
        monkeypatch.setattr(settings, "twilio_phone_number", "+15005550006")
        client = MagicMock()
        client.messages.create.return_value = MagicMock(sid="SM1")

        with patch("services.sms_service.get_client", return_value=client):
            result = await sms_service.send_sms("+919812345678", "hello")

        assert result == {"success": True, "delivered": True, "sid": "SM1"}
        client.messages.create.assert_called_once_with(
            body="hello", from_="+15005550006", to="+919812345678"
        )

    @pytest.mark.unit
    async def test_twilio_failure_reported(self, monkeypatch):
        monkeypatch.setattr(settings, "twilio_account_sid", "AC123")
        monkeypatch.setattr(settings, "twilio_auth_token", "token")
        monkeypatch.setattr(settings, "twilio_phone_number", "+15005550006")
        client = MagicMock()
        client.messages.create.side_effect = TwilioException("bad number")

        with patch("services.sms_service.get_client", return_value=client):
            result = await sms_service.send_sms("+919812345678", "hello")

        assert result["success"] is False
        assert result["delivered"] is False
        assert "bad number" in result["error"]


class TestVapidKeys:

    @pytest.mark.unit
    def test_generated_pair_matches(self):
        from cryptography.hazmat.primitives import serialization
        from py_vapid import Vapid
        from py_vapid.utils import b64urldecode

        from scripts.generate_vapid_keys import generate_keys

        keys = generate_keys()
        public_raw = b64urldecode(keys["public_key"])
        assert len(public_raw) == 65 and public_raw[0] == 4
        assert len(b64urldecode(keys["private_key"])) == 32
        assert "=" not in keys["public_key"]

        # pywebpush loads the private key the same way
        loaded = Vapid.from_string(keys["private_key"])
        assert loaded.public_key.public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        ) == public_raw
