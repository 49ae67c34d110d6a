from typing import List

from fastapi import APIRouter

from expense_desk.models.category import CategoryDefinition
from expense_desk.services.categories import get_category, list_categories

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=List[CategoryDefinition], summary="List expense categories")
async def list_categories_endpoint():
    return list_categories()


@router.get(
    "/{category_id}", response_model=CategoryDefinition, summary="Get one category definition"
)
async def get_category_endpoint(category_id: str):
    # CategoryNotFound is mapped to 404 by the app-level handler
    return get_category(category_id)
