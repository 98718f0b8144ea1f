"""User notifications published over Redis pub/sub."""

import json
import logging
from datetime import datetime
from typing import Optional

import redis

logger = logging.getLogger(__name__)

STATUS_UPDATED_EVENT = "meeting.application.status.updated"
NOTIFICATION_CREATED_EVENT = "notification.created"


class Notifier:
    """Broadcasts status updates and toasts to a user's private channels.

    Delivery is best-effort: publishing failures are logged and never raised.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "Notifier":
        return cls(redis.from_url(redis_url))

    def _publish(self, channel: str, event: str, data: dict):
        message = json.dumps({"event": event, "data": data}, default=str)
        try:
            self.client.publish(channel, message)
        except redis.RedisError as e:
            logger.warning(f"Failed to publish {event} to {channel}: {e}")

    def status_updated(self, user_id: int, application):
        status = application.latest_status
        self._publish(
            f"meeting-application.generate.{user_id}",
            STATUS_UPDATED_EVENT,
            {
                "id": application.id,
                "latest_status": int(status) if status is not None else None,
                "latest_status_text": status.text() if status is not None else None,
            },
        )

    def toast(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str = "success",
        life: Optional[int] = 6000,
    ):
        self._publish(
            f"notification.{user_id}",
            NOTIFICATION_CREATED_EVENT,
            {
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": type,
                "life": life,
                "created_at": datetime.utcnow().isoformat(),
            },
        )
