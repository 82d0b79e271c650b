from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.crud.order import OrderCRUD
from app.crud.variant import VariantStockCRUD
from app.db.enums import OrderStatus


class DashboardService:
    def __init__(self, session: AsyncSession):
        self.order_crud = OrderCRUD(session)
        self.stock = VariantStockCRUD(session)

    async def get_stats(self) -> dict:
        """Headline figures for the dashboard home page."""
        return {
            "total_revenue": await self.order_crud.revenue(),
            "total_orders": await self.order_crud.count(),
            "pending_orders": await self.order_crud.count(OrderStatus.PENDING),
            "low_stock_variants": await self.stock.count_low_stock(settings.low_stock_threshold),
            "recent_orders": await self.order_crud.list_orders(limit=5),
        }
