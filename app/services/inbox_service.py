import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.retry import guarded
from app.crud.order import OrderCRUD

logger = logging.getLogger(__name__)


class InboxService:
    """Read/unread flags behind the dashboard's notification bell."""

    def __init__(self, session: AsyncSession):
        self.order_crud = OrderCRUD(session)
        self.session = session

    async def unread(self, limit: int = 20) -> dict:
        return {
            "count": await self.order_crud.count_unread(),
            "orders": await self.order_crud.unread(limit=limit),
        }

    async def mark_read(self, order_id: UUID) -> None:
        await self.order_crud.mark_read(order_id)
        await guarded(self.session.commit())

    async def mark_all_read(self) -> int:
        marked = await self.order_crud.mark_all_read()
        await guarded(self.session.commit())
        logger.info(f"{marked} order(s) marked as read")
        return marked
