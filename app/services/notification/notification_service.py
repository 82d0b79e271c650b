import logging
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from app.db.enums import OrderStatus
from app.models.order import Order
from app.services.notification.base import EventChannel

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Outbound order events for the dashboard's notification layer.

    Called after the database commit. A channel failure is logged and does
    not undo the committed change; consumers can always re-read the order.
    """

    def __init__(self, channels: List[EventChannel] | None = None):
        self.channels = channels or []

    async def _emit(self, event_type: str, payload: dict, dedup_key: str) -> None:
        for channel in self.channels:
            try:
                await channel.publish(event_type, payload, dedup_key=dedup_key)
            except Exception as e:
                logger.error(
                    f"Event {event_type} ({dedup_key}) not delivered via {type(channel).__name__}: {e}"
                )

    async def order_created(self, order: Order) -> None:
        created_at = order.created_at or datetime.now(timezone.utc)
        await self._emit(
            "order_created",
            {
                "order_id": str(order.id),
                "order_number": order.order_number,
                "customer_name": order.customer_name,
            },
            dedup_key=f"{order.id}:created:{created_at.isoformat()}",
        )

    async def order_transitioned(
        self,
        *,
        order_id: UUID,
        from_status: OrderStatus,
        to_status: OrderStatus,
        at: datetime,
    ) -> None:
        timestamp = at.isoformat()
        await self._emit(
            "order_transitioned",
            {
                "order_id": str(order_id),
                "from_status": from_status.value,
                "to_status": to_status.value,
                "timestamp": timestamp,
            },
            dedup_key=f"{order_id}:{to_status.value}:{timestamp}",
        )
