import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.retry import guarded
from app.crud.wilaya import WilayaCRUD
from app.schemas.wilaya import WilayaCreate, WilayaUpdate

logger = logging.getLogger(__name__)


class WilayaService:
    def __init__(self, session: AsyncSession):
        self.wilaya_crud = WilayaCRUD(session)
        self.session = session

    async def list_wilayas(self, active_only: bool = False):
        return await self.wilaya_crud.get_all(active_only=active_only)

    async def create_wilaya(self, wilaya_in: WilayaCreate):
        wilaya = await self.wilaya_crud.create(wilaya_in)
        await guarded(self.session.commit())
        logger.info(f"Wilaya '{wilaya.name}' added")
        return wilaya

    async def update_wilaya(self, wilaya_id: UUID, wilaya_in: WilayaUpdate):
        wilaya = await self.wilaya_crud.get(wilaya_id)
        if not wilaya:
            raise NotFoundError(f"Wilaya {wilaya_id} not found")

        wilaya = await self.wilaya_crud.update(wilaya, wilaya_in)
        await guarded(self.session.commit())
        logger.info(f"Wilaya '{wilaya.name}' updated")
        return wilaya
