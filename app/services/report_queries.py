"""Read path for report status polling. No side effects."""
from sqlalchemy import func, select

from app.models.report import Report, STATUS_COMPLETED
from app.models.violation import Violation
from app.schemas.report import LocationData, ReportStatusResponse, ReportSummary
from app.schemas.violation import ViolationData


def to_violation_data(v: Violation) -> ViolationData:
    return ViolationData(
        type=v.violation_type,
        severity=v.severity,
        description=v.description,
        confidence=v.confidence_score,
    )


async def get_report_status(db, report_id: str, owner_id: str | None = None) -> ReportStatusResponse | None:
    report = await db.get(Report, report_id)
    if report is None or (owner_id is not None and report.user_id != owner_id):
        return None

    violations: list[ViolationData] = []
    if report.status == STATUS_COMPLETED:
        result = await db.execute(
            select(Violation)
            .where(Violation.report_id == report_id)
            .order_by(Violation.position)
        )
        violations = [to_violation_data(v) for v in result.scalars().all()]

    return ReportStatusResponse(
        report_id=report.id,
        status=report.status,
        verdict=report.verdict,
        failure_reason=report.failure_reason,
        image_url=report.image_url,
        location=LocationData(
            lat=report.location_lat,
            lng=report.location_lng,
            address=report.location_address,
        ),
        violations=violations,
        created_at=report.created_at,
        updated_at=report.updated_at,
    )


async def list_reports(db, owner_id: str) -> list[ReportSummary]:
    counts = (
        select(Violation.report_id, func.count(Violation.id).label("n"))
        .group_by(Violation.report_id)
        .subquery()
    )
    result = await db.execute(
        select(Report, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.report_id == Report.id)
        .where(Report.user_id == owner_id)
        .order_by(Report.created_at.desc())
    )
    return [
        ReportSummary(
            report_id=report.id,
            status=report.status,
            verdict=report.verdict,
            violation_count=count,
            created_at=report.created_at,
            updated_at=report.updated_at,
        )
        for report, count in result.all()
    ]
