import json
from datetime import datetime, timedelta, timezone

import redis.asyncio as redis
import structlog

from app.core.config import Settings
from app.schemas.common import as_utc

logger = structlog.get_logger()


class Notifier:
    """Best-effort hooks fired after event mutations"""

    async def on_event_created(self, event_id: int) -> None:
        raise NotImplementedError

    async def schedule_reminder(self, event_id: int, when_utc: datetime) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class NoOpNotifier(Notifier):
    """Logs and returns"""

    async def on_event_created(self, event_id: int) -> None:
        logger.debug("notification_skipped", kind="event_created", event_id=event_id)

    async def schedule_reminder(self, event_id: int, when_utc: datetime) -> None:
        logger.debug("notification_skipped", kind="event_reminder", event_id=event_id, when=when_utc.isoformat())


class RedisNotifier(Notifier):
    """Publishes JSON messages for the notification worker"""

    def __init__(
            self,
            client: redis.Redis,
            notifications_channel: str = "event-notifications",
            reminders_channel: str = "event-reminders"
    ):
        self.client = client
        self.notifications_channel = notifications_channel
        self.reminders_channel = reminders_channel

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisNotifier":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        logger.info("redis_notifier_initialized", redis_url=settings.redis_url)
        return cls(
            client,
            notifications_channel=settings.event_notifications_channel,
            reminders_channel=settings.event_reminders_channel
        )

    async def on_event_created(self, event_id: int) -> None:
        message = {
            "type": "event_created",
            "event_id": event_id,
            "published_at": datetime.now(timezone.utc).isoformat()
        }
        await self.client.publish(self.notifications_channel, json.dumps(message))

    async def schedule_reminder(self, event_id: int, when_utc: datetime) -> None:
        message = {
            "type": "event_reminder",
            "event_id": event_id,
            "remind_at": as_utc(when_utc).isoformat()
        }
        await self.client.publish(self.reminders_channel, json.dumps(message))

    async def close(self) -> None:
        await self.client.aclose()


def build_notifier(settings: Settings) -> Notifier:
    if settings.notifications_backend == "redis":
        return RedisNotifier.from_settings(settings)
    return NoOpNotifier()


async def notify_event_created(notifier: Notifier, event, lead: timedelta = timedelta(hours=24)) -> None:
    """
    Announce a new event and queue its reminder.

    The reminder is scheduled `lead` before the start, only when that instant
    is still ahead. Failures are logged; they never reach the caller.
    """
    try:
        await notifier.on_event_created(event.id)

        remind_at = as_utc(event.start_time) - lead
        if remind_at > datetime.now(timezone.utc):
            await notifier.schedule_reminder(event.id, remind_at)
    except Exception as e:
        logger.error("notification_failed", event_id=event.id, error=str(e))
