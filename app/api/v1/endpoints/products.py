import logging
from fastapi import Depends, APIRouter, Query, Request
from starlette import status
from typing import List
from uuid import UUID
from app.core.deps import get_service
from app.core.limiter import STOCK_ADJUST_LIMIT, limiter
from app.services.product_service import ProductService
from app.schemas.product import ProductCreate, ProductRead, ProductUpdate, StockAdjust, StockRead


# Initialize logger for audit events
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    service: ProductService = Depends(get_service(ProductService)),
):
    """Add a product with its size/color variants."""
    return await service.create_product(body)

@router.get("", response_model=List[ProductRead])
async def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    active: bool | None = None,
    category_id: UUID | None = None,
    service: ProductService = Depends(get_service(ProductService)),
):
    return await service.get_catalog(
        skip=skip, limit=limit, active=active, category_id=category_id
    )

@router.get("/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: UUID,
    service: ProductService = Depends(get_service(ProductService)),
):
    return await service.get_product(product_id)

@router.patch("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: UUID,
    body: ProductUpdate,
    service: ProductService = Depends(get_service(ProductService)),
):
    """
    Edit a product. A `variants` list replaces the current one: entries with
    an id are updated, entries without are added, missing ones are removed.
    """
    return await service.update_product(product_id, body)

@router.delete("/{product_id}")
async def delete_product(
    product_id: UUID,
    service: ProductService = Depends(get_service(ProductService)),
):
    """Delete a product. Past order lines keep their snapshot."""
    detached = await service.delete_product(product_id)
    return {"detached_order_lines": detached}

@router.post("/variants/{variant_id}/adjust", response_model=StockRead)
@limiter.limit(STOCK_ADJUST_LIMIT)
async def adjust_stock(
    request: Request,
    variant_id: UUID,
    body: StockAdjust,
    service: ProductService = Depends(get_service(ProductService)),
):
    """Manual stock correction. The result never drops below zero."""
    quantity = await service.adjust_stock(variant_id, body.delta)
    return {"variant_id": variant_id, "quantity": quantity}
