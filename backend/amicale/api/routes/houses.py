"""
House endpoints. The availability list is the calendar of blocked days.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.db.session import get_db
from amicale.models.user import User
from amicale.schemas.house import HouseCreate, HouseResponse, HouseUpdate
from amicale.services.house_service import (
    create_house,
    delete_house,
    get_house_with_availability,
    update_house,
)
from amicale.core.security import require_responsible

router = APIRouter(prefix="/houses", tags=["Houses"])


@router.post("", response_model=HouseResponse, status_code=status.HTTP_201_CREATED)
async def create_house_endpoint(
    house_data: HouseCreate,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
):
    return await create_house(db, house_data)


@router.get("/{house_id}", response_model=HouseResponse)
async def get_house_endpoint(
    house_id: int,
    db: AsyncSession = Depends(get_db),
):
    """House details with `unavailableDates` (YYYY-MM-DD, ascending)."""
    return await get_house_with_availability(db, house_id)


@router.put("/{house_id}", response_model=HouseResponse)
async def update_house_endpoint(
    house_id: int,
    patch: HouseUpdate,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
):
    return await update_house(db, house_id, patch)


@router.delete("/{house_id}")
async def delete_house_endpoint(
    house_id: int,
    user: User = Depends(require_responsible),
    db: AsyncSession = Depends(get_db),
):
    """Remove the house together with its calendar and its stays."""
    removed = await delete_house(db, house_id)
    return {
        "success": True,
        "message": "House and related bookings deleted successfully.",
        "bookingsDeleted": removed,
    }
