from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, get_ingestion_gateway
from app.models.user import User
from app.schemas.report import ReportSubmitted
from app.services.aggregator import sort_for_triage
from app.services.ingestion import IngestionGateway, parse_location, read_upload
from app.services.report_queries import get_report_status, list_reports
from app.utils.response import success_response

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", status_code=201)
async def submit_report(
    file: UploadFile = File(...),
    lat: float = Form(...),
    lng: float = Form(...),
    address: str | None = Form(default=None),
    user: User = Depends(get_current_user),
    gateway: IngestionGateway = Depends(get_ingestion_gateway),
):
    location = parse_location(lat, lng, address)
    content = await read_upload(file, gateway.max_image_size_bytes)
    report_id = await gateway.submit(user, content, location)
    return success_response(
        data=ReportSubmitted(report_id=report_id).model_dump(by_alias=True),
        message="Report submitted successfully. AI analysis in progress.",
    )


@router.get("")
async def get_reports(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reports = await list_reports(db, user.id)
    return success_response(data=[r.model_dump(by_alias=True) for r in reports])


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    order: str = Query(default="merged", pattern="^(merged|severity)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    report = await get_report_status(db, report_id, owner_id=user.id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    if order == "severity":
        report.violations = sort_for_triage(report.violations)
    return success_response(data=report.model_dump(by_alias=True))
