import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.retry import guarded
from app.crud.category import CategoryCRUD
from app.models.category import Category
from app.schemas.category import CategoryCreate, CategoryUpdate

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, session: AsyncSession):
        self.category_crud = CategoryCRUD(session)
        self.session = session

    async def list_categories(self) -> list[Category]:
        return await self.category_crud.get_all()

    async def get_category(self, category_id: UUID) -> Category:
        category = await self.category_crud.get(category_id)
        if not category:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    async def create_category(self, category_in: CategoryCreate) -> Category:
        category = await self.category_crud.create(category_in)
        await guarded(self.session.commit())
        # Loads server defaults such as created_at
        await guarded(self.session.refresh(category))
        logger.info(f"Category '{category.name}' added")
        return category

    async def update_category(self, category_id: UUID, category_in: CategoryUpdate) -> Category:
        category = await self.get_category(category_id)
        category = await self.category_crud.update(category, category_in)
        await guarded(self.session.commit())
        await guarded(self.session.refresh(category))
        return category

    async def delete_category(self, category_id: UUID) -> int:
        await self.get_category(category_id)
        released = await self.category_crud.delete(category_id)
        await guarded(self.session.commit())

        logger.warning(f"AUDIT: Category {category_id} deleted, {released} product(s) uncategorised")
        return released
