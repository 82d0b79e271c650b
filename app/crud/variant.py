from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.core.exceptions import NotFoundError
from app.core.retry import guarded
from app.models.product import ProductVariant


class VariantStockCRUD:
    """
    On-hand quantity per variant.

    Adjustments are a single UPDATE so concurrent callers never lose each
    other's writes. Nothing here commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def adjust(self, variant_id: UUID, delta: int) -> int:
        """Apply delta atomically, flooring at 0. Returns the new quantity."""
        new_quantity = ProductVariant.quantity + delta
        stmt = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(quantity=case((new_quantity < 0, 0), else_=new_quantity))
            .returning(ProductVariant.quantity)
            .execution_options(synchronize_session=False)
        )
        result = await guarded(self.session.execute(stmt))
        quantity = result.scalar_one_or_none()

        if quantity is None:
            raise NotFoundError(f"Variant {variant_id} not found")

        self._sync_cached(variant_id, quantity)
        return quantity

    async def consume(self, variant_id: UUID, quantity: int) -> int | None:
        """
        Take `quantity` units only if that many are on hand.

        Check and decrement are one statement, so a concurrent writer cannot
        slip in between. Returns the new quantity, or None when stock is short
        or the variant is gone (nothing is changed in either case).
        """
        stmt = (
            update(ProductVariant)
            .where(
                ProductVariant.id == variant_id,
                ProductVariant.quantity >= quantity,
            )
            .values(quantity=ProductVariant.quantity - quantity)
            .returning(ProductVariant.quantity)
            .execution_options(synchronize_session=False)
        )
        result = await guarded(self.session.execute(stmt))
        remaining = result.scalar_one_or_none()

        if remaining is not None:
            self._sync_cached(variant_id, remaining)
        return remaining

    def _sync_cached(self, variant_id: UUID, quantity: int) -> None:
        # Keep any loaded instance in step with the row
        cached = self.session.identity_map.get(self.session.identity_key(ProductVariant, variant_id))
        if cached is not None:
            set_committed_value(cached, "quantity", quantity)

    async def read(self, variant_id: UUID) -> int:
        quantity = await guarded(
            self.session.scalar(
                select(ProductVariant.quantity).where(ProductVariant.id == variant_id)
            )
        )
        if quantity is None:
            raise NotFoundError(f"Variant {variant_id} not found")
        return quantity

    async def get_many(self, variant_ids) -> dict[UUID, ProductVariant]:
        """Variants by id with their product loaded; missing ids are absent."""
        if not variant_ids:
            return {}
        result = await guarded(
            self.session.execute(
                select(ProductVariant)
                .options(selectinload(ProductVariant.product))
                .where(ProductVariant.id.in_(list(variant_ids)))
            )
        )
        return {v.id: v for v in result.scalars().all()}

    async def count_low_stock(self, threshold: int) -> int:
        return await guarded(
            self.session.scalar(
                select(func.count(ProductVariant.id)).where(ProductVariant.quantity < threshold)
            )
        )
