from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.violation import ViolationData


class LocationData(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: str | None = None


class CamelModel(BaseModel):
    """Serialized with camelCase keys (`model_dump(by_alias=True)`)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportSubmitted(CamelModel):
    report_id: str


class ReportStatusResponse(CamelModel):
    report_id: str
    status: str
    verdict: str | None = None
    failure_reason: str | None = None
    image_url: str
    location: LocationData
    violations: list[ViolationData]
    created_at: str
    updated_at: str


class ReportSummary(CamelModel):
    report_id: str
    status: str
    verdict: str | None = None
    violation_count: int
    created_at: str
    updated_at: str
