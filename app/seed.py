import secrets
import uuid

import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.models.zone import RestrictedZone


SEED_ZONES = [
    {"zone_name": "Modern School Barakhamba Road", "zone_type": "school", "location_lat": 28.6310, "location_lng": 77.2180, "radius_meters": 100},
    {"zone_name": "Lady Hardinge Medical College", "zone_type": "hospital", "location_lat": 28.6366, "location_lng": 77.2090, "radius_meters": 150},
    {"zone_name": "Jantar Mantar", "zone_type": "heritage_site", "location_lat": 28.6271, "location_lng": 77.2166, "radius_meters": 200},
    {"zone_name": "India Gate", "zone_type": "heritage_site", "location_lat": 28.6129, "location_lng": 77.2295, "radius_meters": 300},
    {"zone_name": "AIIMS New Delhi", "zone_type": "hospital", "location_lat": 28.5672, "location_lng": 77.2100, "radius_meters": 200},
]

SEED_USER_ID = str(uuid.uuid5(uuid.NAMESPACE_DNS, "user-citizen"))
SEED_USER_USERNAME = "citizen"
SEED_USER_PASSWORD = "citizen123"


def _zone_id(name: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, f"zone-{name}"))


async def seed_data(session: AsyncSession) -> None:
    result = await session.execute(select(User).limit(1))
    if result.scalars().first() is not None:
        return

    for z in SEED_ZONES:
        session.add(RestrictedZone(id=_zone_id(z["zone_name"]), **z))

    password_hash = bcrypt.hashpw(SEED_USER_PASSWORD.encode(), bcrypt.gensalt()).decode()
    session.add(User(
        id=SEED_USER_ID,
        username=SEED_USER_USERNAME,
        password_hash=password_hash,
        access_token=secrets.token_urlsafe(32),
    ))

    await session.commit()
