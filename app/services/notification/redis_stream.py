import json
import logging

from app.core.config import settings
from app.services.notification.base import EventChannel

logger = logging.getLogger(__name__)


class RedisStreamChannel(EventChannel):
    """Appends events to a Redis stream the dashboard's notification layer reads."""

    MAX_LEN = 10_000

    def __init__(self, redis, stream: str | None = None):
        self.redis = redis
        self.stream = stream or settings.event_stream

    async def publish(self, event_type: str, payload: dict, *, dedup_key: str, **kwargs) -> str:
        entry_id = await self.redis.xadd(
            self.stream,
            {
                "type": event_type,
                "dedup_key": dedup_key,
                "payload": json.dumps(payload, default=str),
            },
            maxlen=self.MAX_LEN,
            approximate=True,
        )
        logger.debug(f"Event {event_type} appended to {self.stream} as {entry_id}")
        return entry_id
