import asyncio
import logging

from app.core.config import settings
from app.core.deps import get_notification_service, redis_client
from app.core.logging import setup_logging
from app.db.sessions import session_scope
from app.services.order_service import OrderLifecycle

logger = logging.getLogger(__name__)


async def repair(older_than_seconds: int | None = None) -> int:
    if older_than_seconds is None:
        older_than_seconds = settings.repair_older_than_seconds

    async with session_scope() as session:
        lifecycle = OrderLifecycle(session, get_notification_service(redis_client))
        repaired = await lifecycle.repair_pending(older_than_seconds=older_than_seconds)

    print(f"Repaired {repaired} unfinished order transition(s)")
    return repaired

if __name__ == "__main__":
    setup_logging(settings.log_level)
    asyncio.run(repair())
