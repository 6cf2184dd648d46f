from fastapi import APIRouter, Depends, status

from app.api.deps import get_category_store, get_current_user, get_localizer
from app.core.errors import NotFoundError
from app.core.i18n import Localizer
from app.models.user import User
from app.schemas.category import CategoryCreate, CategoryResponse
from app.schemas.common import envelope
from app.services.category_store import CategoryStore

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("")
async def list_categories(categories: CategoryStore = Depends(get_category_store)):
    items = await categories.get_all()
    return envelope([CategoryResponse.model_validate(c) for c in items])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
        payload: CategoryCreate,
        _user: User = Depends(get_current_user),
        categories: CategoryStore = Depends(get_category_store),
        _: Localizer = Depends(get_localizer)
):
    """Get-or-create by case-insensitive name"""
    category = await categories.create(payload.name)
    return envelope(CategoryResponse.model_validate(category), _("categoryCreated"))


@router.put("/{category_id}")
async def rename_category(
        category_id: int,
        payload: CategoryCreate,
        _user: User = Depends(get_current_user),
        categories: CategoryStore = Depends(get_category_store),
        _: Localizer = Depends(get_localizer)
):
    """Rename a category; another category already holding the name is a 409"""
    category = await categories.update(category_id, payload.name)
    if category is None:
        raise NotFoundError()
    return envelope(CategoryResponse.model_validate(category), _("categoryUpdated"))


@router.delete("/{category_id}")
async def delete_category(
        category_id: int,
        _user: User = Depends(get_current_user),
        categories: CategoryStore = Depends(get_category_store),
        _: Localizer = Depends(get_localizer)
):
    """Events and user preferences lose the tag; they are not deleted"""
    if not await categories.delete(category_id):
        raise NotFoundError()
    return envelope(message=_("categoryDeleted"))
