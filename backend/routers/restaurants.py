"""
Restaurant endpoints.

Anyone may list restaurants; only owners may create or change them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import guarded
from auth.guards import AuthContext, AuthenticatedGuard, RoleGuard
from database import get_db
from models import UserRole
from schemas import RestaurantCreate, RestaurantResponse, RestaurantUpdate
from services import restaurants as restaurant_service
from utils.audit import audit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/restaurants", tags=["restaurants"])

require_owner = guarded(AuthenticatedGuard(), RoleGuard([UserRole.OWNER]))


@router.get("", response_model=list[RestaurantResponse], name="getRestaurants")
async def list_restaurants(
    name: Optional[str] = Query(None, description="Exact restaurant name"),
    vegan_only: Optional[bool] = Query(None),
    is_good: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List restaurants, optionally filtered."""
    restaurants = await restaurant_service.list_restaurants(
        db, {"name": name, "vegan_only": vegan_only, "is_good": is_good}
    )
    return [RestaurantResponse.model_validate(r) for r in restaurants]


@router.post(
    "",
    response_model=RestaurantResponse,
    status_code=status.HTTP_201_CREATED,
    name="createRestaurant",
)
async def create_restaurant(
    body: RestaurantCreate,
    context: AuthContext = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Create a restaurant (owners only)."""
    restaurant = await restaurant_service.create_restaurant(db, body.model_dump())
    audit.log(
        action="CREATE",
        actor="user",
        resource="Restaurant",
        resource_id=str(restaurant.id),
        status="success",
    )
    return RestaurantResponse.model_validate(restaurant)


@router.patch("/{restaurant_id}", response_model=RestaurantResponse, name="updateRestaurant")
async def update_restaurant(
    restaurant_id: int,
    body: RestaurantUpdate,
    context: AuthContext = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Update any subset of a restaurant's fields (owners only)."""
    restaurant = await restaurant_service.update_restaurant(
        db, restaurant_id, body.model_dump(exclude_unset=True, exclude_none=True)
    )
    if restaurant is None:
        raise HTTPException(status_code=404, detail=f"Restaurant {restaurant_id} not found")

    audit.log(
        action="UPDATE",
        actor="user",
        resource="Restaurant",
        resource_id=str(restaurant.id),
        status="success",
    )
    return RestaurantResponse.model_validate(restaurant)
