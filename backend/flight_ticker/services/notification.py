from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Optional, List, Dict
import uuid
import logging
import httpx
from authlib.integrations.httpx_client import OAuth1Auth

from flight_ticker.config import Settings, get_settings
from flight_ticker.services.price_detector import DropEvent

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """Record of one drop alert fan-out."""
    id: str
    title: str
    message: str
    timestamp: datetime
    route_code: str
    sent_to: List[str]
    failed: List[str]


class NotificationHistory:
    """In-memory notification history for dashboard display."""

    def __init__(self, max_notifications: int = 100):
        self._notifications: List[Notification] = []
        self._max_notifications = max_notifications

    def add(self, notification: Notification):
        self._notifications.append(notification)
        if len(self._notifications) > self._max_notifications:
            self._notifications.pop(0)

    def get_recent(self, limit: int = 50) -> List[Dict]:
        recent = self._notifications[-limit:] if limit else self._notifications
        return [asdict(n) for n in reversed(recent)]

    def clear(self):
        self._notifications.clear()


def format_title(event: DropEvent) -> str:
    return f"✈️ {event.city} ({event.route_code}) {event.price:,} KRW"


def format_message(event: DropEvent) -> str:
    dates = event.outbound_date.isoformat()
    if event.inbound_date:
        dates += f" → {event.inbound_date.isoformat()}"
    message = f"📉 Price drop: ICN → {event.city} ({event.route_code})\n"
    message += f"📅 {dates}\n"
    message += f"💰 {event.price:,} KRW (▼{event.drop:,}, -{event.drop_percent}%)"
    return message


class AlertSink(ABC):
    """A notification endpoint. Unconfigured sinks are skipped, not failed."""
    name: str = "base"

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    async def send(self, event: DropEvent, client: httpx.AsyncClient) -> None:
        """Deliver the alert; raise on any failure."""


class TelegramSink(AlertSink):
    name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, site_url: str = "", share_image_url: str = ""):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.site_url = site_url.rstrip("/")
        self.share_image_url = share_image_url

    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def share_image(self, event: DropEvent) -> Optional[str]:
        if not self.share_image_url:
            return None
        url = httpx.URL(self.share_image_url, params={
            "city": event.city,
            "price": event.price,
            "drop": event.drop,
            "date": event.outbound_date.isoformat(),
        })
        return str(url)

    def reply_markup(self, event: DropEvent) -> Optional[dict]:
        if not self.site_url:
            return None
        return {
            "inline_keyboard": [[
                {"text": "📈 Price chart", "url": f"{self.site_url}/?city={event.route_code}"},
                {"text": "🔎 All routes", "url": f"{self.site_url}/"},
            ]]
        }

    async def send(self, event: DropEvent, client: httpx.AsyncClient) -> None:
        text = format_message(event)
        body = {"chat_id": self.chat_id, "parse_mode": "Markdown"}
        markup = self.reply_markup(event)
        if markup:
            body["reply_markup"] = markup

        image = self.share_image(event)
        if image:
            method = "sendPhoto"
            body.update(photo=image, caption=text)
        else:
            method = "sendMessage"
            body["text"] = text

        response = await client.post(
            f"https://api.telegram.org/bot{self.bot_token}/{method}",
            json=body,
        )
        response.raise_for_status()


class WebhookSink(AlertSink):
    name = "webhook"

    def __init__(self, url: str):
        self.url = url

    def is_configured(self) -> bool:
        return bool(self.url)

    async def send(self, event: DropEvent, client: httpx.AsyncClient) -> None:
        response = await client.post(self.url, json=event.to_payload())
        response.raise_for_status()


class SocialSink(AlertSink):
    """Posts to X (Twitter) API v2 with an OAuth 1.0a user-context signature."""
    name = "social"

    TWEET_URL = "https://api.twitter.com/2/tweets"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        access_token: str,
        access_secret: str,
        site_url: str = "",
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.access_token = access_token
        self.access_secret = access_secret
        self.site_url = site_url.rstrip("/")

    def is_configured(self) -> bool:
        return all([self.api_key, self.api_secret, self.access_token, self.access_secret])

    def compose(self, event: DropEvent) -> str:
        text = (
            f"📉 ICN → {event.city} weekend fare down {event.drop:,} KRW (-{event.drop_percent}%)\n"
            f"Now {event.price:,} KRW for {event.outbound_date.isoformat()}"
        )
        if self.site_url:
            text += f"\n{self.site_url}/?city={event.route_code}"
        return text

    async def send(self, event: DropEvent, client: httpx.AsyncClient) -> None:
        auth = OAuth1Auth(
            client_id=self.api_key,
            client_secret=self.api_secret,
            token=self.access_token,
            token_secret=self.access_secret,
        )
        response = await client.post(self.TWEET_URL, json={"text": self.compose(event)}, auth=auth)
        response.raise_for_status()


def build_sinks(settings: Optional[Settings] = None) -> List[AlertSink]:
    settings = settings or get_settings()
    return [
        TelegramSink(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            site_url=settings.site_url,
            share_image_url=settings.share_image_url,
        ),
        WebhookSink(settings.webhook_url),
        SocialSink(
            api_key=settings.twitter_api_key,
            api_secret=settings.twitter_api_secret,
            access_token=settings.twitter_access_token,
            access_secret=settings.twitter_access_secret,
            site_url=settings.site_url,
        ),
    ]


@dataclass
class DispatchResult:
    sent: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def any_sent(self) -> bool:
        return bool(self.sent)


class AlertDispatcher:
    """
    Fans a drop event out to every configured sink.

    Sinks are independent: one failing never stops the others, and nothing
    raised by a sink reaches the caller.
    """

    def __init__(self, sinks: List[AlertSink], history: Optional[NotificationHistory] = None):
        self.sinks = sinks
        self.history = history or NotificationHistory()
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0)
        return self._http_client

    async def close(self):
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def dispatch(self, event: DropEvent) -> DispatchResult:
        result = DispatchResult()
        client = await self._get_client()

        for sink in self.sinks:
            if not sink.is_configured():
                logger.debug(f"Skipping {sink.name} sink - not configured")
                result.skipped.append(sink.name)
                continue

            try:
                await sink.send(event, client)
                result.sent.append(sink.name)
                logger.info(f"Alert sent via {sink.name}: {event.route_code} {event.outbound_date}")
            except Exception as e:
                result.failed.append(sink.name)
                logger.warning(f"{sink.name} alert failed for {event.route_code}: {e}")

        if result.sent or result.failed:
            self.history.add(Notification(
                id=str(uuid.uuid4()),
                title=format_title(event),
                message=format_message(event),
                timestamp=datetime.now(timezone.utc),
                route_code=event.route_code,
                sent_to=list(result.sent),
                failed=list(result.failed),
            ))

        return result

    def get_notifications(self, limit: int = 50) -> List[Dict]:
        """Get recent notifications for dashboard."""
        return self.history.get_recent(limit)
