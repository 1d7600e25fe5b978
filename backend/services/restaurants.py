"""Restaurant create/read/update over the restaurants table."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Restaurant

logger = logging.getLogger(__name__)

FILTERABLE_FIELDS = ("name", "vegan_only", "is_good")


async def list_restaurants(
    db: AsyncSession,
    filters: Optional[Dict[str, Any]] = None,
) -> List[Restaurant]:
    """Return restaurants matching every provided (non-None) filter."""
    query = select(Restaurant).order_by(Restaurant.id)
    for field, value in (filters or {}).items():
        if field in FILTERABLE_FIELDS and value is not None:
            query = query.where(getattr(Restaurant, field) == value)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_restaurant(db: AsyncSession, fields: Dict[str, Any]) -> Restaurant:
    restaurant = Restaurant(**fields)
    db.add(restaurant)
    await db.commit()
    await db.refresh(restaurant)
    logger.info(f"Created restaurant id={restaurant.id} name={restaurant.name!r}")
    return restaurant


async def update_restaurant(
    db: AsyncSession,
    restaurant_id: int,
    changes: Dict[str, Any],
) -> Optional[Restaurant]:
    """Apply ``changes`` to a restaurant. Returns None if it does not exist."""
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        return None
    for field, value in changes.items():
        setattr(restaurant, field, value)
    await db.commit()
    await db.refresh(restaurant)
    logger.info(f"Updated restaurant id={restaurant.id}: {', '.join(sorted(changes))}")
    return restaurant
