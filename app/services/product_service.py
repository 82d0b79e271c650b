import logging
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
from app.core.exceptions import NotFoundError, ValidationError
from app.core.retry import guarded, retry_on_unavailable
from app.crud.category import CategoryCRUD
from app.crud.order import OrderCRUD
from app.crud.product import CRUDProduct
from app.crud.variant import VariantStockCRUD
from app.models.product import Product
from app.schemas.product import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

class ProductService:
    """Catalog administration: products, their variants and manual stock corrections."""

    def __init__(self, session: AsyncSession):
        self.product_crud = CRUDProduct(session)
        self.category_crud = CategoryCRUD(session)
        self.order_crud = OrderCRUD(session)
        self.stock = VariantStockCRUD(session)
        self.session = session

    async def create_product(self, product_in: ProductCreate) -> Product:
        await self._check_category(product_in.category_id)
        product = await self.product_crud.create_new_product(obj_in=product_in)
        await guarded(self.session.commit())

        logger.info(
            f"Product '{product.name}' created with {len(product_in.variants)} variant(s)"
        )
        return await self.get_product(product.id)

    async def get_product(self, product_id: UUID) -> Product:
        product = await self.product_crud.get(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def get_catalog(
        self,
        skip: int = 0,
        limit: int = 20,
        active: bool | None = None,
        category_id: UUID | None = None,
    ):
        return await self.product_crud.get_multi_product(
            skip=skip, limit=limit, active=active, category_id=category_id
        )

    @retry_on_unavailable()
    async def update_product(self, product_id: UUID, product_in: ProductUpdate) -> Product:
        """
        Edit product fields and, when a variant list is sent, upsert it.

        Variants left out of the list are deleted; order lines that pointed
        at them keep their snapshot and lose only the reference.
        """
        product = await self.get_product(product_id)
        if "category_id" in product_in.model_fields_set:
            await self._check_category(product_in.category_id)

        removed = self.product_crud.variants_to_remove(product, product_in)
        detached = await self.order_crud.detach_variants(removed)

        await self.product_crud.update_product(product, product_in)
        await guarded(self.session.commit())

        if removed:
            logger.warning(
                f"AUDIT: Product {product_id} edited, {len(removed)} variant(s) removed, "
                f"{detached} order line(s) detached"
            )
        else:
            logger.info(f"Product {product_id} edited")
        return await self.get_product(product_id)

    async def _check_category(self, category_id: UUID | None) -> None:
        if category_id is not None and not await self.category_crud.get(category_id):
            raise ValidationError(f"Unknown category {category_id}")

    @retry_on_unavailable()
    async def delete_product(self, product_id: UUID) -> int:
        """
        Remove a product and its variants.

        Historical order lines keep their snapshot and lose only the
        reference. Returns how many lines were detached.
        """
        await self.get_product(product_id)

        detached = await self.order_crud.detach_product(product_id)
        await self.product_crud.delete_product(product_id)
        await guarded(self.session.commit())

        logger.warning(
            f"AUDIT: Product {product_id} deleted, {detached} order line(s) detached"
        )
        return detached

    @retry_on_unavailable()
    async def adjust_stock(self, variant_id: UUID, delta: int) -> int:
        """Manual stock correction from the dashboard."""
        quantity = await self.stock.adjust(variant_id, delta)
        await guarded(self.session.commit())

        logger.info(f"Stock correction on variant {variant_id}: {delta:+d} -> {quantity}")
        return quantity
