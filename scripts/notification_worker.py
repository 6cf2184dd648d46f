"""
Notification Worker - Consumes event notifications from Redis

Usage:
    python scripts/notification_worker.py
"""
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import redis.asyncio as redis
import structlog

from app.core.config import settings

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ]
)

logger = structlog.get_logger()


def handle_message(channel: str, data: str) -> dict | None:
    """Decode one published message and log the delivery it stands for"""
    try:
        message = json.loads(data)
    except (TypeError, ValueError) as e:
        logger.error("notification_parse_failed", channel=channel, data=data, error=str(e))
        return None

    if channel == settings.event_reminders_channel:
        logger.info("reminder_delivery", event_id=message.get("event_id"), remind_at=message.get("remind_at"))
    else:
        logger.info("notification_delivery", event_id=message.get("event_id"), type=message.get("type"))
    return message


async def run():
    client = redis.from_url(settings.redis_url, decode_responses=True)
    pubsub = client.pubsub()
    channels = [settings.event_notifications_channel, settings.event_reminders_channel]
    await pubsub.subscribe(*channels)

    logger.info("worker_started", channels=channels)
    print("Notification Worker started. Press Ctrl+C to stop.")

    try:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            handle_message(message["channel"], message["data"])
    finally:
        await pubsub.unsubscribe(*channels)
        await pubsub.aclose()
        await client.aclose()


def main():
    """Main worker loop"""
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("worker_stopped")
        print("\nWorker stopped.")


if __name__ == "__main__":
    main()
