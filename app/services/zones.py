"""Read-only access to the restricted-zone registry."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models.zone import RestrictedZone
from app.schemas.violation import ZoneData

logger = logging.getLogger(__name__)


class ZoneRegistryError(Exception):
    pass


def to_zone_data(zone: RestrictedZone) -> ZoneData:
    return ZoneData(
        name=zone.zone_name,
        type=zone.zone_type,
        lat=zone.location_lat,
        lng=zone.location_lng,
        radius_meters=zone.radius_meters,
    )


class ZoneRegistry:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def load(self) -> list[ZoneData]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(RestrictedZone).order_by(RestrictedZone.zone_name))
                return [to_zone_data(z) for z in result.scalars().all()]
        # pydantic's ValidationError is a ValueError: a malformed row is a registry fault
        except (SQLAlchemyError, ValueError) as e:
            logger.exception("Zone registry read failed")
            raise ZoneRegistryError(f"Zone registry unavailable: {e}") from e
