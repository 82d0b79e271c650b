from fastapi import APIRouter, Depends
from starlette import status
from typing import List
from uuid import UUID
from app.core.deps import get_service
from app.schemas.wilaya import WilayaCreate, WilayaRead, WilayaUpdate
from app.services.wilaya_service import WilayaService

router = APIRouter(prefix="/wilayas", tags=["Delivery"])


@router.get("", response_model=List[WilayaRead])
async def list_wilayas(
    active_only: bool = False,
    service: WilayaService = Depends(get_service(WilayaService)),
):
    return await service.list_wilayas(active_only=active_only)


@router.post("", response_model=WilayaRead, status_code=status.HTTP_201_CREATED)
async def create_wilaya(
    body: WilayaCreate,
    service: WilayaService = Depends(get_service(WilayaService)),
):
    return await service.create_wilaya(body)


@router.patch("/{wilaya_id}", response_model=WilayaRead)
async def update_wilaya(
    wilaya_id: UUID,
    body: WilayaUpdate,
    service: WilayaService = Depends(get_service(WilayaService)),
):
    """Change delivery prices or hide the zone from checkout."""
    return await service.update_wilaya(wilaya_id, body)
