from fastapi import APIRouter, Depends
from starlette import status
from typing import List
from uuid import UUID
from app.core.deps import get_service
from app.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from app.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["Catalog"])


@router.get("", response_model=List[CategoryRead])
async def list_categories(
    service: CategoryService = Depends(get_service(CategoryService)),
):
    """Categories in storefront menu order."""
    return await service.list_categories()


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    service: CategoryService = Depends(get_service(CategoryService)),
):
    return await service.create_category(body)


@router.patch("/{category_id}", response_model=CategoryRead)
async def update_category(
    category_id: UUID,
    body: CategoryUpdate,
    service: CategoryService = Depends(get_service(CategoryService)),
):
    return await service.update_category(category_id, body)


@router.delete("/{category_id}")
async def delete_category(
    category_id: UUID,
    service: CategoryService = Depends(get_service(CategoryService)),
):
    """Products in the category stay, without a category."""
    released = await service.delete_category(category_id)
    return {"uncategorised_products": released}
