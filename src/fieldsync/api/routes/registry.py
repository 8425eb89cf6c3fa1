"""Registry routes: which categories and fields can be tracked."""
from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from fieldsync.tracking import registry

router = APIRouter()


class CategoryResponse(BaseModel):
    name: str
    display_name: str
    description: str
    fields: List[str]


@router.get("/categories", response_model=List[CategoryResponse])
def list_categories():
    """Categories and fields that can be tracked."""
    return [
        CategoryResponse(
            name=info.name,
            display_name=info.display_name,
            description=info.description,
            fields=list(info.fields),
        )
        for info in registry.categories()
    ]
