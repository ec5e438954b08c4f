"""Tests for alert sinks and the dispatcher."""
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from authlib.integrations.httpx_client import OAuth1Auth

from flight_ticker.config import Settings
from flight_ticker.services.notification import (
    AlertDispatcher,
    AlertSink,
    NotificationHistory,
    SocialSink,
    TelegramSink,
    WebhookSink,
    build_sinks,
    format_message,
)
from flight_ticker.services.price_detector import DropEvent


@pytest.fixture
def event():
    return DropEvent(
        route_code="NRT",
        city="Tokyo",
        price=235000,
        delta=-15000,
        outbound_date=date(2025, 3, 14),
        inbound_date=date(2025, 3, 16),
    )


@pytest.fixture
def http_client():
    response = MagicMock()
    response.raise_for_status = MagicMock()
    client = AsyncMock()
    client.post = AsyncMock(return_value=response)
    return client


class FakeSink(AlertSink):
    def __init__(self, name, configured=True, error=None):
        self.name = name
        self.configured = configured
        self.error = error
        self.calls = []

    def is_configured(self):
        return self.configured

    async def send(self, event, client):
        self.calls.append(event)
        if self.error:
            raise self.error


def _dispatcher(sinks):
    dispatcher = AlertDispatcher(sinks)
    dispatcher._http_client = AsyncMock()
    return dispatcher


class TestFormatting:
    def test_message_mentions_route_price_and_drop(self, event):
        message = format_message(event)
        assert "Tokyo (NRT)" in message
        assert "235,000 KRW" in message
        assert "15,000" in message
        assert "-6%" in message
        assert "2025-03-14 → 2025-03-16" in message


class TestTelegramSink:
    def test_requires_token_and_chat(self):
        assert not TelegramSink("", "123").is_configured()
        assert not TelegramSink("tok", "").is_configured()
        assert TelegramSink("tok", "123").is_configured()

    async def test_send_message_without_image(self, event, http_client):
        sink = TelegramSink("tok", "123", site_url="https://ticker.example.com/")
        await sink.send(event, http_client)

        call_args = http_client.post.call_args
        assert call_args[0][0] == "https://api.telegram.org/bottok/sendMessage"
        body = call_args[1]["json"]
        assert body["chat_id"] == "123"
        assert body["parse_mode"] == "Markdown"
        assert "Tokyo" in body["text"]
        buttons = body["reply_markup"]["inline_keyboard"][0]
        assert buttons[0]["url"] == "https://ticker.example.com/?city=NRT"
        assert buttons[1]["url"] == "https://ticker.example.com/"

    async def test_send_photo_with_share_image(self, event, http_client):
        sink = TelegramSink("tok", "123", share_image_url="https://img.example.com/og")
        await sink.send(event, http_client)

        call_args = http_client.post.call_args
        assert call_args[0][0].endswith("/sendPhoto")
        body = call_args[1]["json"]
        photo = httpx.URL(body["photo"])
        assert photo.params["city"] == "Tokyo"
        assert photo.params["price"] == "235000"
        assert photo.params["drop"] == "15000"
        assert photo.params["date"] == "2025-03-14"
        assert "caption" in body
        assert "reply_markup" not in body

    async def test_http_error_propagates(self, event, http_client):
        http_client.post.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
            "bad", request=httpx.Request("POST", "https://api.telegram.org"), response=httpx.Response(400)
        )
        with pytest.raises(httpx.HTTPStatusError):
            await TelegramSink("tok", "123").send(event, http_client)


class TestWebhookSink:
    async def test_posts_payload(self, event, http_client):
        sink = WebhookSink("https://hooks.example.com/drop")
        assert sink.is_configured()
        await sink.send(event, http_client)

        call_args = http_client.post.call_args
        assert call_args[0][0] == "https://hooks.example.com/drop"
        assert call_args[1]["json"] == {
            "city": "Tokyo",
            "code": "NRT",
            "price": 235000,
            "drop": 15000,
            "dropPercent": 6,
            "date": "2025-03-14",
        }

    def test_empty_url_not_configured(self):
        assert not WebhookSink("").is_configured()


class TestSocialSink:
    def test_needs_all_four_credentials(self):
        assert not SocialSink("k", "s", "t", "").is_configured()
        assert SocialSink("k", "s", "t", "ts").is_configured()

    async def test_signs_with_oauth1(self, event, http_client):
        sink = SocialSink("k", "s", "t", "ts", site_url="https://ticker.example.com")
        await sink.send(event, http_client)

        call_args = http_client.post.call_args
        assert call_args[0][0] == SocialSink.TWEET_URL
        assert isinstance(call_args[1]["auth"], OAuth1Auth)
        text = call_args[1]["json"]["text"]
        assert "Tokyo" in text
        assert "https://ticker.example.com/?city=NRT" in text


class TestBuildSinks:
    def test_unconfigured_by_default(self):
        settings = Settings(telegram_bot_token="", telegram_chat_id="", webhook_url="")
        sinks = build_sinks(settings)
        assert [s.name for s in sinks] == ["telegram", "webhook", "social"]
        assert not any(s.is_configured() for s in sinks)

    def test_configured_from_settings(self):
        settings = Settings(telegram_bot_token="tok", telegram_chat_id="1", webhook_url="https://h")
        configured = [s.name for s in build_sinks(settings) if s.is_configured()]
        assert configured == ["telegram", "webhook"]


class TestAlertDispatcher:
    async def test_skips_unconfigured(self, event):
        off = FakeSink("telegram", configured=False)
        on = FakeSink("webhook")
        result = await _dispatcher([off, on]).dispatch(event)

        assert result.skipped == ["telegram"]
        assert result.sent == ["webhook"]
        assert off.calls == []

    async def test_failure_does_not_stop_other_sinks(self, event):
        broken = FakeSink("telegram", error=RuntimeError("boom"))
        webhook = FakeSink("webhook")
        social = FakeSink("social")
        result = await _dispatcher([broken, webhook, social]).dispatch(event)

        assert result.failed == ["telegram"]
        assert result.sent == ["webhook", "social"]
        assert result.any_sent

    async def test_all_failing_never_raises(self, event):
        sinks = [FakeSink("a", error=httpx.ConnectError("down")), FakeSink("b", error=ValueError("x"))]
        result = await _dispatcher(sinks).dispatch(event)

        assert result.sent == []
        assert result.failed == ["a", "b"]
        assert not result.any_sent

    async def test_no_sinks_configured(self, event):
        dispatcher = _dispatcher([FakeSink("telegram", configured=False)])
        result = await dispatcher.dispatch(event)

        assert not result.any_sent
        assert dispatcher.get_notifications() == []

    async def test_records_history(self, event):
        dispatcher = _dispatcher([FakeSink("webhook"), FakeSink("social", error=RuntimeError())])
        await dispatcher.dispatch(event)

        notifications = dispatcher.get_notifications()
        assert len(notifications) == 1
        assert notifications[0]["route_code"] == "NRT"
        assert notifications[0]["sent_to"] == ["webhook"]
        assert notifications[0]["failed"] == ["social"]

    async def test_close_releases_client(self):
        dispatcher = _dispatcher([])
        client = dispatcher._http_client
        await dispatcher.close()
        client.aclose.assert_awaited_once()
        assert dispatcher._http_client is None


class TestNotificationHistory:
    async def test_bounded_and_newest_first(self):
        history = NotificationHistory(max_notifications=2)
        dispatcher = AlertDispatcher([FakeSink("webhook")], history=history)
        dispatcher._http_client = AsyncMock()

        for code in ["NRT", "KIX", "FUK"]:
            await dispatcher.dispatch(DropEvent(code, "City", 100000, -20000, date(2025, 3, 14)))

        recent = dispatcher.get_notifications()
        assert [n["route_code"] for n in recent] == ["FUK", "KIX"]
        assert len(dispatcher.get_notifications(limit=1)) == 1

        history.clear()
        assert history.get_recent() == []
