from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ConflictError, ValidationError
from app.core.retry import guarded
from app.models.product import Product, ProductVariant
from app.schemas.product import ProductCreate, ProductUpdate


class CRUDProduct:
    # A PATCH sending null for these leaves them unchanged
    REQUIRED_FIELDS = {"name", "price", "is_active"}

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, id: UUID) -> Product | None:
        """Fetch a product by ID with its variants."""
        return await guarded(
            self.session.scalar(
                select(Product)
                .options(selectinload(Product.variants))
                .where(Product.id == id)
                .execution_options(populate_existing=True)
            )
        )

    async def create_new_product(self, *, obj_in: ProductCreate) -> Product:
        """Create a Product and its variants in one flush."""
        data = obj_in.model_dump(exclude={"variants"})

        db_obj = Product(**data)
        db_obj.variants = [ProductVariant(**v.model_dump()) for v in obj_in.variants]
        self.session.add(db_obj)

        await self._flush(obj_in.name)

        return db_obj

    def variants_to_remove(self, product: Product, obj_in: ProductUpdate) -> list[UUID]:
        """
        Ids of the product's variants missing from a full variant list.

        Ids that are not the product's own are rejected.
        """
        if obj_in.variants is None:
            return []

        existing = {v.id for v in product.variants}
        kept = {v.id for v in obj_in.variants if v.id is not None}

        unknown = kept - existing
        if unknown:
            raise ValidationError(
                f"Variant(s) {', '.join(str(i) for i in unknown)} do not belong to '{product.name}'"
            )
        return [variant_id for variant_id in existing if variant_id not in kept]

    async def update_product(self, product: Product, obj_in: ProductUpdate) -> Product:
        """Apply a PATCH to a product loaded with its variants. Upserts variants by id."""
        name = obj_in.name or product.name

        for field, value in obj_in.model_dump(exclude_unset=True, exclude={"variants"}).items():
            if value is None and field in self.REQUIRED_FIELDS:
                continue
            setattr(product, field, value)

        if obj_in.variants is not None:
            kept = {v.id for v in obj_in.variants if v.id is not None}
            for variant in [v for v in product.variants if v.id not in kept]:
                product.variants.remove(variant)

            # Removals go out first so a re-added size/color does not collide
            await self._flush(name)

            existing = {v.id: v for v in product.variants}
            for variant_in in obj_in.variants:
                data = variant_in.model_dump(exclude={"id"})
                if variant_in.id is None:
                    product.variants.append(ProductVariant(**data))
                    continue
                for field, value in data.items():
                    setattr(existing[variant_in.id], field, value)

        await self._flush(name)
        return product

    async def _flush(self, name: str) -> None:
        try:
            await guarded(self.session.flush())
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"Duplicate size/color combination for '{name}'"
            ) from e

    async def get_multi_product(
        self,
        *,
        skip: int = 0,
        limit: int = 20,
        active: bool | None = None,
        category_id: UUID | None = None,
    ) -> list[Product]:
        """Fetch products (optionally by active flag or category) with their variants."""
        stmt = select(Product).options(selectinload(Product.variants))

        if active is not None:
            stmt = stmt.where(Product.is_active == active)

        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)

        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)

        result = await guarded(self.session.execute(stmt))
        return list(result.scalars().all())

    async def delete_product(self, product_id: UUID) -> None:
        """Delete variants, then the product. Order lines must be detached first."""
        await guarded(
            self.session.execute(
                delete(ProductVariant)
                .where(ProductVariant.product_id == product_id)
                .execution_options(synchronize_session=False)
            )
        )
        await guarded(
            self.session.execute(
                delete(Product)
                .where(Product.id == product_id)
                .execution_options(synchronize_session=False)
            )
        )
