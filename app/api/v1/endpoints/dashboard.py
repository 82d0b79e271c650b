from fastapi import APIRouter, Depends
from app.core.deps import get_service
from app.schemas.dashboard import DashboardStats
from app.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    service: DashboardService = Depends(get_service(DashboardService)),
):
    return await service.get_stats()
