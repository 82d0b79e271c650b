import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, List
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    LedgerError,
    NotFoundError,
    ValidationError,
    WindowExpiredError,
)
from app.core.retry import guarded, retry_on_unavailable
from app.crud.order import OrderCRUD
from app.crud.variant import VariantStockCRUD
from app.crud.wilaya import WilayaCRUD
from app.db.enums import OrderStatus
from app.models.order import Order
from app.models.order_item import OrderItem
from app.schemas.order import CustomerIn, ManualOrderLine
from app.services.inventory_service import InventoryReconciler
from app.services.notification.notification_service import NotificationService

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PENDING, OrderStatus.SHIPPED, OrderStatus.CANCELLED}
    ),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    # Re-activation / admin correction
    OrderStatus.CANCELLED: frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED}),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OrderLifecycle:
    """
    Order state machine and its inventory side effects.

    A status change is committed in two steps. First a reconciliation marker
    is committed, conditional on the status the caller observed. Then the
    stock delta, the new status and the cleared marker commit together. A
    crash between the two leaves the marker behind; re-running the same
    transition or `repair_pending` finishes it exactly once.
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: NotificationService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.notification_service = notification_service
        self.clock = clock
        self.order_crud = OrderCRUD(session)
        self.stock = VariantStockCRUD(session)
        self.wilaya_crud = WilayaCRUD(session)
        self.reconciler = InventoryReconciler(session)

    async def get_order(self, order_id: UUID) -> Order:
        order = await self.order_crud.get(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    @staticmethod
    def check_transition(from_status: OrderStatus, to_status: OrderStatus) -> None:
        if from_status == to_status:
            raise InvalidTransitionError(f"Order is already {to_status.value}")

        if to_status not in ALLOWED_TRANSITIONS[from_status]:
            raise InvalidTransitionError(
                f"Cannot move an order from {from_status.value} to {to_status.value}"
            )

    # TRANSITIONS

    @retry_on_unavailable()
    async def transition(self, order_id: UUID, to_status: OrderStatus) -> Order:
        try:
            return await self._transition_once(order_id, to_status)
        except ConflictError as e:
            # One re-read; a second conflict goes back to the caller
            await self.session.rollback()
            logger.warning(f"Order {order_id}: {e}. Re-reading and retrying once.")
            return await self._transition_once(order_id, to_status)

    async def _transition_once(self, order_id: UUID, to_status: OrderStatus) -> Order:
        order = await self.get_order(order_id)

        if order.reconciliation_target is not None:
            if order.reconciliation_target != to_status:
                raise ConflictError(
                    f"Order #{order.order_number} has a pending change to "
                    f"{order.reconciliation_target.value}"
                )
            logger.warning(
                f"Order #{order.order_number}: resuming unfinished change to {to_status.value}"
            )
            return await self._complete(order, order.status, to_status)

        from_status = order.status
        self.check_transition(from_status, to_status)

        await self.order_crud.mark_reconciliation_pending(
            order.id, from_status, to_status, at=self.clock()
        )
        await guarded(self.session.commit())

        return await self._complete(order, from_status, to_status)

    async def _complete(
        self,
        order: Order,
        from_status: OrderStatus,
        to_status: OrderStatus,
    ) -> Order:
        """Stock delta + status write + marker clear, in one transaction."""
        # Rollback expires the instance; keep what the logs need
        order_id, order_number = order.id, order.order_number
        now = self.clock()
        try:
            await self.reconciler.reconcile(order, from_status, to_status)
            await self.order_crud.set_status(
                order_id,
                from_status,
                to_status,
                confirmed_at=now if to_status == OrderStatus.CONFIRMED else None,
            )
            await guarded(self.session.commit())
        except Exception:
            await self.session.rollback()
            logger.error(
                f"Order #{order_number}: {from_status.value} -> {to_status.value} "
                f"not committed, reconciliation marker kept"
            )
            raise

        logger.info(
            f"Order #{order_number}: {from_status.value} -> {to_status.value}",
            extra={
                "order_id": order_id,
                "order_number": order_number,
                "from_status": from_status,
                "to_status": to_status,
            },
        )

        await self.notification_service.order_transitioned(
            order_id=order_id,
            from_status=from_status,
            to_status=to_status,
            at=now,
        )

        return await self.get_order(order_id)

    async def undo_confirmation(self, order_id: UUID) -> Order:
        order = await self.get_order(order_id)

        if order.status != OrderStatus.CONFIRMED:
            raise InvalidTransitionError(
                f"Only confirmed orders can be un-confirmed (status={order.status.value})"
            )

        window = timedelta(hours=settings.undo_confirmation_window_hours)
        confirmed_at = as_utc(order.confirmed_at)

        if confirmed_at is None or self.clock() - confirmed_at >= window:
            raise WindowExpiredError(
                f"Order #{order.order_number} was confirmed more than "
                f"{settings.undo_confirmation_window_hours}h ago"
            )

        return await self.transition(order_id, OrderStatus.PENDING)

    # QUERIES

    async def visible_orders(
        self,
        *,
        status: OrderStatus | None = None,
        search: str | None = None,
        include_archived: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Order]:
        archived_before = None
        if not include_archived:
            archived_before = self.clock() - timedelta(days=settings.confirmed_archive_days)

        return await self.order_crud.list_orders(
            status=status,
            search=search,
            archived_before=archived_before,
            skip=skip,
            limit=limit,
        )

    # MANUAL ORDERS

    @retry_on_unavailable()
    async def place_manual_order(
        self,
        customer: CustomerIn,
        lines: List[ManualOrderLine],
    ) -> Order:
        try:
            return await self._place_once(customer, lines)
        except ConflictError as e:
            await self.session.rollback()
            logger.warning(f"Manual order: {e}. Retrying once.")
            return await self._place_once(customer, lines)

    async def _place_once(
        self,
        customer: CustomerIn,
        lines: List[ManualOrderLine],
    ) -> Order:
        if not lines:
            raise ValidationError("An order needs at least one line")

        wilaya = await self.wilaya_crud.get(customer.wilaya_id)
        if not wilaya or not wilaya.is_active:
            raise ValidationError(f"Unknown wilaya {customer.wilaya_id}")

        variants = await self.stock.get_many({line.variant_id for line in lines})

        requested: dict[UUID, int] = defaultdict(int)
        for line in lines:
            if line.variant_id not in variants:
                raise ValidationError(f"Unknown variant {line.variant_id}")
            if line.quantity <= 0:
                raise ValidationError("Quantity must be positive")
            requested[line.variant_id] += line.quantity

        # Early, friendly rejection; the decrement below re-checks atomically
        for variant_id, quantity in requested.items():
            available = await self.stock.read(variant_id)
            if quantity > available:
                variant = variants[variant_id]
                raise ValidationError(
                    f"Only {available} left of {variant.product.name} "
                    f"({variant.size}/{variant.color_name}), requested {quantity}"
                )

        order = Order(
            customer_first_name=customer.first_name,
            customer_last_name=customer.last_name,
            customer_phone=customer.phone,
            wilaya_id=wilaya.id,
            municipality_name=customer.municipality_name,
            address=customer.address,
            delivery_type=customer.delivery_type,
            delivery_price=wilaya.delivery_price(customer.delivery_type),
            status=OrderStatus.PENDING,
            is_read=False,
        )

        items = []
        for line in lines:
            variant = variants[line.variant_id]
            items.append(
                OrderItem(
                    product_id=variant.product_id,
                    variant_id=variant.id,
                    product_name=variant.product.name,
                    price=line.unit_price if line.unit_price is not None else variant.product.selling_price,
                    quantity=line.quantity,
                    selected_size=variant.size,
                    selected_color=variant.color_name,
                )
            )

        try:
            order = await self.order_crud.create(order, items)
            # Manual orders reserve stock at creation, not at confirmation.
            # Strict: stock taken since the check above fails the order.
            await self.reconciler.reconcile(order, None, OrderStatus.PENDING, strict=True)
            await guarded(self.session.commit())
        except ValidationError:
            await self.session.rollback()
            raise
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("Order number already taken") from e

        logger.info(f"Manual order #{order.order_number} placed for {order.customer_name}")

        await self.notification_service.order_created(order)

        return await self.get_order(order.id)

    # DELETION

    @retry_on_unavailable()
    async def delete_order(self, order_id: UUID) -> None:
        """Removes the order and its lines. Stock is not restored; cancel first for that."""
        await self.order_crud.delete_cascade(order_id)
        await guarded(self.session.commit())

        logger.warning(f"AUDIT: Order {order_id} deleted (stock not restored)")

    # REPAIR

    async def repair_pending(self, older_than_seconds: int | None = None) -> int:
        """Finish every status change whose marker is older than the threshold."""
        if older_than_seconds is None:
            older_than_seconds = settings.repair_older_than_seconds
        cutoff = self.clock() - timedelta(seconds=older_than_seconds)
        stale = await self.order_crud.pending_reconciliations(cutoff)
        order_ids = [order.id for order in stale]

        repaired = 0
        for order_id in order_ids:
            order = await self.get_order(order_id)
            if order.reconciliation_target is None:
                continue
            try:
                await self._complete(order, order.status, order.reconciliation_target)
                repaired += 1
            except LedgerError as e:
                logger.error(f"Repair of order {order_id} failed: {e}")

        if repaired:
            logger.warning(f"Repaired {repaired} unfinished order transition(s)")
        return repaired
