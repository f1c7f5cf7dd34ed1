from fastapi import APIRouter

from app.database import async_session
from app.services.zones import ZoneRegistry
from app.utils.response import success_response

router = APIRouter(prefix="/zones", tags=["zones"])


@router.get("")
async def get_zones():
    zones = await ZoneRegistry(async_session).load()
    return success_response(data=[z.model_dump() for z in zones])
