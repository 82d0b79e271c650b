import logging
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from app.core.config import settings
from typing import Type, TypeVar

from app.services.notification.notification_service import NotificationService
from app.services.notification.redis_stream import RedisStreamChannel
from app.db.sessions import get_async_session


logger = logging.getLogger(__name__)

T = TypeVar("T")



# Create ONE Redis client (connection pool)
redis_client = Redis.from_url(
    settings.redis_url,
    decode_responses=True,  # returns str instead of bytes
    socket_timeout=settings.storage_timeout_seconds,
)


# SERVICE DEPENDENCIES

async def get_redis() -> Redis:
    return redis_client


def get_notification_service(redis: Redis = Depends(get_redis)) -> NotificationService:
    return NotificationService(channels=[RedisStreamChannel(redis)])


def get_service(service_cls: Type[T]):
    def _get(
        db: AsyncSession = Depends(get_async_session),
        notification_service: NotificationService = Depends(get_notification_service),
    ) -> T:
        try:
            return service_cls(db, notification_service)
        except TypeError:
            return service_cls(db)

    return _get
