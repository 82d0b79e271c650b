from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.core.retry import guarded
from app.models.category import Category
from app.models.product import Product
from app.schemas.category import CategoryCreate, CategoryUpdate


class CategoryCRUD:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, category_id: UUID) -> Category | None:
        return await guarded(self.session.get(Category, category_id))

    async def get_all(self) -> list[Category]:
        stmt = select(Category).order_by(Category.display_order.asc(), Category.name.asc())
        result = await guarded(self.session.execute(stmt))
        return list(result.scalars().all())

    async def create(self, obj_in: CategoryCreate) -> Category:
        category = Category(**obj_in.model_dump())
        self.session.add(category)
        await self._flush(obj_in.name)
        return category

    async def update(self, category: Category, obj_in: CategoryUpdate) -> Category:
        for field, value in obj_in.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "display_order"):
                continue
            setattr(category, field, value)
        await self._flush(category.name)
        return category

    async def delete(self, category_id: UUID) -> int:
        """Uncategorise its products, then drop it. Returns how many products were released."""
        released = await guarded(
            self.session.execute(
                update(Product)
                .where(Product.category_id == category_id)
                .values(category_id=None)
                .execution_options(synchronize_session=False)
            )
        )
        await guarded(
            self.session.execute(
                delete(Category)
                .where(Category.id == category_id)
                .execution_options(synchronize_session=False)
            )
        )
        return released.rowcount

    async def _flush(self, name: str) -> None:
        try:
            await guarded(self.session.flush())
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Category '{name}' already exists") from e
