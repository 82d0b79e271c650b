from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.core.retry import guarded
from app.models.wilaya import Wilaya
from app.schemas.wilaya import WilayaCreate, WilayaUpdate


class WilayaCRUD:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, wilaya_id: UUID) -> Wilaya | None:
        return await guarded(self.session.get(Wilaya, wilaya_id))

    async def get_all(self, *, active_only: bool = False) -> list[Wilaya]:
        stmt = select(Wilaya).order_by(Wilaya.name.asc())
        if active_only:
            stmt = stmt.where(Wilaya.is_active.is_(True))
        result = await guarded(self.session.execute(stmt))
        return list(result.scalars().all())

    async def create(self, obj_in: WilayaCreate) -> Wilaya:
        wilaya = Wilaya(**obj_in.model_dump())
        self.session.add(wilaya)
        try:
            await guarded(self.session.flush())
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Wilaya '{obj_in.name}' already exists") from e
        return wilaya

    async def update(self, wilaya: Wilaya, obj_in: WilayaUpdate) -> Wilaya:
        for field, value in obj_in.model_dump(exclude_unset=True).items():
            setattr(wilaya, field, value)
        await guarded(self.session.flush())
        return wilaya
