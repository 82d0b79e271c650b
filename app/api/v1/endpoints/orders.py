import logging
from fastapi import APIRouter, Depends, Query, Request, status
from typing import List
from uuid import UUID
from app.core.deps import get_service
from app.core.limiter import MANUAL_ORDER_LIMIT, limiter
from app.db.enums import OrderStatus
from app.schemas.order import (
    ManualOrderCreate,
    OrderListResponse,
    OrderRead,
    RepairResult,
    StatusUpdate,
    UnreadOrders,
)
from app.services.inbox_service import InboxService
from app.services.order_service import OrderLifecycle

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
)


# LIST ORDERS (WORKING VIEW)
@router.get("", response_model=List[OrderListResponse])
async def list_orders(
    status_filter: OrderStatus | None = Query(None, alias="status"),
    search: str | None = None,
    include_archived: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    service: OrderLifecycle = Depends(get_service(OrderLifecycle)),
):
    """
    Orders for the working view. Confirmed orders older than the archive
    window are hidden unless include_archived is set.
    """
    return await service.visible_orders(
        status=status_filter,
        search=search,
        include_archived=include_archived,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(MANUAL_ORDER_LIMIT)
async def place_manual_order(
    request: Request,
    body: ManualOrderCreate,
    service: OrderLifecycle = Depends(get_service(OrderLifecycle)),
):
    """Manual order entry. Stock is reserved immediately."""
    return await service.place_manual_order(body.customer, body.lines)


# NOTIFICATION INBOX
@router.get("/unread", response_model=UnreadOrders)
async def unread_orders(
    limit: int = Query(20, ge=1, le=100),
    service: InboxService = Depends(get_service(InboxService)),
):
    return await service.unread(limit=limit)


@router.post("/read-all")
async def mark_all_read(
    service: InboxService = Depends(get_service(InboxService)),
):
    marked = await service.mark_all_read()
    return {"marked": marked}


# RECONCILIATION REPAIR
@router.post("/reconciliation/repair", response_model=RepairResult)
async def repair_reconciliations(
    older_than_seconds: int | None = Query(None, ge=0),
    service: OrderLifecycle = Depends(get_service(OrderLifecycle)),
):
    """Finish status changes that stopped between stock update and status commit."""
    repaired = await service.repair_pending(older_than_seconds=older_than_seconds)
    return {"repaired": repaired}


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: UUID,
    service: OrderLifecycle = Depends(get_service(OrderLifecycle)),
):
    return await service.get_order(order_id)


@router.post("/{order_id}/status", response_model=OrderRead)
async def change_status(
    order_id: UUID,
    body: StatusUpdate,
    service: OrderLifecycle = Depends(get_service(OrderLifecycle)),
):
    return await service.transition(order_id, body.status)


@router.post("/{order_id}/undo-confirmation", response_model=OrderRead)
async def undo_confirmation(
    order_id: UUID,
    service: OrderLifecycle = Depends(get_service(OrderLifecycle)),
):
    return await service.undo_confirmation(order_id)


@router.post("/{order_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
    order_id: UUID,
    service: InboxService = Depends(get_service(InboxService)),
):
    await service.mark_read(order_id)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: UUID,
    service: OrderLifecycle = Depends(get_service(OrderLifecycle)),
):
    """Permanently remove an order. Does not restore stock; cancel first for that."""
    await service.delete_order(order_id)
