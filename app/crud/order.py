from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import String, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.retry import guarded
from app.db.enums import OrderStatus
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.product import ProductVariant


class OrderCRUD:
    """
    Persistence for the Order + OrderItem aggregate.

    Status writes are conditional on the status the caller observed, and
    nothing here touches stock. Methods flush but never commit.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _with_items(self):
        return (
            select(Order)
            .options(selectinload(Order.items))
            .execution_options(populate_existing=True)
        )

    async def _next_order_number(self) -> int:
        current = await guarded(
            self.session.scalar(select(func.coalesce(func.max(Order.order_number), 0)))
        )
        return current + 1

    async def create(self, order: Order, lines: list[OrderItem]) -> Order:
        """Assign number and timestamps, derive the total, flush."""
        if not lines:
            raise ValidationError("An order needs at least one line")

        for line in lines:
            if line.quantity is None or line.quantity <= 0:
                raise ValidationError(
                    f"Quantity for '{line.product_name}' must be positive"
                )

        order.order_number = await self._next_order_number()
        order.created_at = datetime.now(timezone.utc)
        order.total_price = sum((line.line_total for line in lines), Decimal("0.00"))
        order.items = list(lines)

        self.session.add(order)
        await guarded(self.session.flush())
        return order

    async def get(self, order_id: UUID) -> Order | None:
        return await guarded(
            self.session.scalar(self._with_items().where(Order.id == order_id))
        )

    async def list_orders(
        self,
        *,
        status: OrderStatus | None = None,
        search: str | None = None,
        archived_before: datetime | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = self._with_items()

        if status:
            stmt = stmt.where(Order.status == status)

        if search:
            term = f"%{search.strip().lstrip('#')}%"
            stmt = stmt.where(
                or_(
                    Order.customer_first_name.ilike(term),
                    Order.customer_last_name.ilike(term),
                    Order.customer_phone.ilike(term),
                    cast(Order.order_number, String).ilike(term),
                )
            )

        if archived_before is not None:
            # Confirmed orders age out of the working view
            stmt = stmt.where(
                or_(
                    Order.status != OrderStatus.CONFIRMED,
                    Order.confirmed_at.is_(None),
                    Order.confirmed_at >= archived_before,
                )
            )

        stmt = stmt.order_by(Order.created_at.desc(), Order.order_number.desc()).offset(skip).limit(limit)

        result = await guarded(self.session.execute(stmt))
        return list(result.scalars().all())

    async def _ensure_exists(self, order_id: UUID) -> None:
        found = await guarded(self.session.scalar(select(Order.id).where(Order.id == order_id)))
        if not found:
            raise NotFoundError(f"Order {order_id} not found")

    async def mark_reconciliation_pending(
        self,
        order_id: UUID,
        from_status: OrderStatus,
        to_status: OrderStatus,
        at: datetime | None = None,
    ) -> None:
        """Claim the order for a status change. Fails if anyone moved it first."""
        result = await guarded(
            self.session.execute(
                update(Order)
                .where(
                    Order.id == order_id,
                    Order.status == from_status,
                    Order.reconciliation_target.is_(None),
                )
                .values(
                    reconciliation_target=to_status,
                    reconciliation_started_at=at or datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
        )
        if result.rowcount == 0:
            await self._ensure_exists(order_id)
            raise ConflictError(
                f"Order {order_id} changed since it was read (expected status={from_status.value})"
            )

    async def set_status(
        self,
        order_id: UUID,
        from_status: OrderStatus,
        to_status: OrderStatus,
        confirmed_at: datetime | None = None,
    ) -> None:
        """Pure field update, conditional on the observed status. Clears the marker."""
        values = {
            "status": to_status,
            "reconciliation_target": None,
            "reconciliation_started_at": None,
        }
        if confirmed_at is not None:
            values["confirmed_at"] = confirmed_at

        result = await guarded(
            self.session.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == from_status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        )
        if result.rowcount == 0:
            await self._ensure_exists(order_id)
            raise ConflictError(
                f"Order {order_id} is no longer {from_status.value}"
            )

    async def pending_reconciliations(self, older_than: datetime) -> list[Order]:
        result = await guarded(
            self.session.execute(
                self._with_items()
                .where(
                    Order.reconciliation_target.is_not(None),
                    Order.reconciliation_started_at <= older_than,
                )
                .order_by(Order.reconciliation_started_at.asc())
            )
        )
        return list(result.scalars().all())

    async def detach_product(self, product_id: UUID) -> int:
        """Null the weak references to a product and its variants. Snapshots stay."""
        variant_ids = select(ProductVariant.id).where(ProductVariant.product_id == product_id)

        await guarded(
            self.session.execute(
                update(OrderItem)
                .where(OrderItem.variant_id.in_(variant_ids))
                .values(variant_id=None)
                .execution_options(synchronize_session=False)
            )
        )
        result = await guarded(
            self.session.execute(
                update(OrderItem)
                .where(OrderItem.product_id == product_id)
                .values(product_id=None)
                .execution_options(synchronize_session=False)
            )
        )
        return result.rowcount

    async def detach_variants(self, variant_ids: list[UUID]) -> int:
        """Null line references to variants about to be removed from a product."""
        if not variant_ids:
            return 0
        result = await guarded(
            self.session.execute(
                update(OrderItem)
                .where(OrderItem.variant_id.in_(variant_ids))
                .values(variant_id=None)
                .execution_options(synchronize_session=False)
            )
        )
        return result.rowcount

    async def delete_cascade(self, order_id: UUID) -> None:
        """Lines first, then the order."""
        await self._ensure_exists(order_id)

        await guarded(
            self.session.execute(
                delete(OrderItem)
                .where(OrderItem.order_id == order_id)
                .execution_options(synchronize_session=False)
            )
        )
        await guarded(
            self.session.execute(
                delete(Order)
                .where(Order.id == order_id)
                .execution_options(synchronize_session=False)
            )
        )

    # --- Notification flags ---

    async def unread(self, limit: int = 20) -> list[Order]:
        result = await guarded(
            self.session.execute(
                self._with_items()
                .where(Order.is_read.is_(False))
                .order_by(Order.created_at.desc())
                .limit(limit)
            )
        )
        return list(result.scalars().all())

    async def count_unread(self) -> int:
        return await guarded(
            self.session.scalar(select(func.count(Order.id)).where(Order.is_read.is_(False)))
        )

    async def mark_read(self, order_id: UUID) -> None:
        result = await guarded(
            self.session.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Order {order_id} not found")

    async def mark_all_read(self) -> int:
        result = await guarded(
            self.session.execute(
                update(Order)
                .where(Order.is_read.is_(False))
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
        )
        return result.rowcount

    # --- Dashboard figures ---

    async def revenue(self) -> Decimal:
        total = await guarded(
            self.session.scalar(
                select(func.coalesce(func.sum(Order.total_price), 0)).where(
                    Order.status != OrderStatus.CANCELLED
                )
            )
        )
        return Decimal(str(total))

    async def count(self, status: OrderStatus | None = None) -> int:
        stmt = select(func.count(Order.id))
        if status:
            stmt = stmt.where(Order.status == status)
        return await guarded(self.session.scalar(stmt))
