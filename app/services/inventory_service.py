import logging
from collections import defaultdict
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.crud.variant import VariantStockCRUD
from app.db.enums import OrderStatus
from app.models.order import Order

logger = logging.getLogger(__name__)


class InventoryReconciler:
    """
    Applies the stock delta implied by an order status change.

    This is the only writer of variant stock on behalf of orders. It never
    commits: the lifecycle runs it inside the same transaction as the status
    write so both land together or not at all.

    Variants are touched in ascending id order, one UPDATE per variant, so
    two orders sharing variants always lock rows in the same order.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.stock = VariantStockCRUD(session)

    @staticmethod
    def stock_direction(
        from_status: OrderStatus | None,
        to_status: OrderStatus,
    ) -> int:
        """
        +1 restore, -1 consume, 0 nothing.

        from_status=None is the state of an order that does not exist yet.
        """
        if from_status == to_status:
            return 0

        holds_stock_before = from_status not in (None, OrderStatus.CANCELLED)
        holds_stock_after = to_status != OrderStatus.CANCELLED

        if holds_stock_before and not holds_stock_after:
            return 1
        if not holds_stock_before and holds_stock_after:
            return -1
        return 0

    @staticmethod
    def quantities_by_variant(order: Order) -> dict[UUID, int]:
        """Per-variant totals in lock order. Lines without a variant are left out."""
        totals: dict[UUID, int] = defaultdict(int)
        for item in order.items:
            if item.variant_id is None:
                logger.warning(
                    f"Order #{order.order_number}: line '{item.product_name}' has no variant, stock untouched"
                )
                continue
            totals[item.variant_id] += item.quantity
        return {variant_id: totals[variant_id] for variant_id in sorted(totals)}

    async def reconcile(
        self,
        order: Order,
        from_status: OrderStatus | None,
        to_status: OrderStatus,
        *,
        strict: bool = False,
    ) -> None:
        """
        With strict=True a consumption that exceeds stock raises
        ValidationError instead of flooring at zero. The caller must roll
        back: variants already taken in this call are not given back here.
        """
        direction = self.stock_direction(from_status, to_status)
        if direction == 0:
            logger.debug(
                f"Order #{order.order_number}: {from_status} -> {to_status.value} has no stock effect"
            )
            return

        for variant_id, quantity in self.quantities_by_variant(order).items():
            if strict and direction < 0:
                remaining = await self.stock.consume(variant_id, quantity)
                if remaining is None:
                    raise ValidationError(
                        f"Not enough stock for variant {variant_id}: {quantity} requested"
                    )
            else:
                try:
                    remaining = await self.stock.adjust(variant_id, direction * quantity)
                except NotFoundError:
                    logger.warning(
                        f"Order #{order.order_number}: variant {variant_id} no longer exists, stock untouched"
                    )
                    continue

            logger.info(
                f"Order #{order.order_number}: variant {variant_id} "
                f"{'+' if direction > 0 else '-'}{quantity} -> {remaining}",
                extra={"order_number": order.order_number, "variant_id": variant_id},
            )
