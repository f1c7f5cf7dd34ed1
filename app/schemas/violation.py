from pydantic import BaseModel, Field


class ViolationData(BaseModel):
    type: str
    severity: str
    description: str
    confidence: float = Field(ge=0, le=100)


class ZoneData(BaseModel):
    name: str
    type: str
    lat: float
    lng: float
    radius_meters: float = Field(gt=0)
