"""Shop location index bootstrap.

Run as ``python -m marketplace.maintenance`` after deploying to an existing
database: creates the location index when it is missing and resets shops
that never saved a location to the unset default.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy import inspect, or_, update
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import settings
from .database import engine as default_engine
from .models.shop import LOCATION_INDEX_NAME, Shop

logger = logging.getLogger(__name__)


def _location_index():
    return next(ix for ix in Shop.__table__.indexes if ix.name == LOCATION_INDEX_NAME)


async def ensure_spatial_index(engine: Optional[AsyncEngine] = None) -> Dict[str, Any]:
    """
    Make sure shop location lookups are indexed and unset shops sit at (0, 0).

    Returns:
        ``{"created": bool, "reset": int}``: whether the index had to be created
        and how many unset shops were normalised.
    """
    engine = engine or default_engine
    default_radius = settings.default_delivery_radius_km

    async with engine.begin() as conn:
        names = await conn.run_sync(
            lambda sync_conn: [ix["name"] for ix in inspect(sync_conn).get_indexes(Shop.__tablename__)]
        )
        created = LOCATION_INDEX_NAME not in names
        if created:
            await conn.run_sync(lambda sync_conn: _location_index().create(sync_conn))
            logger.info("Created index %s on %s", LOCATION_INDEX_NAME, Shop.__tablename__)
        else:
            logger.info("Index %s already exists", LOCATION_INDEX_NAME)

        result = await conn.execute(
            update(Shop.__table__)
            .where(
                Shop.location_set.is_(False),
                or_(
                    Shop.latitude != 0,
                    Shop.longitude != 0,
                    Shop.delivery_radius_km != default_radius,
                ),
            )
            .values(latitude=0.0, longitude=0.0, delivery_radius_km=default_radius)
        )
        reset = result.rowcount or 0

    if reset:
        logger.info("Reset %d shops without a saved location", reset)
    return {"created": created, "reset": reset}


async def _main() -> None:
    from .database import init_db
    from .logging_utils import configure_logging

    configure_logging(fmt="text")
    await init_db()
    await ensure_spatial_index()
    await default_engine.dispose()


if __name__ == "__main__":
    asyncio.run(_main())
