import uuid
from dataclasses import dataclass

from app.models.report import VERDICT_COMPLIANT, VERDICT_NON_COMPLIANT
from app.models.violation import SEVERITIES, Violation
from app.schemas.violation import ViolationData


@dataclass(frozen=True)
class AggregateResult:
    report_id: str
    violations: list[ViolationData]

    @property
    def verdict(self) -> str:
        return VERDICT_NON_COMPLIANT if self.violations else VERDICT_COMPLIANT

    def to_records(self, created_at: str) -> list[Violation]:
        return [
            Violation(
                id=str(uuid.uuid4()),
                report_id=self.report_id,
                position=position,
                violation_type=v.type,
                severity=v.severity,
                description=v.description,
                confidence_score=v.confidence,
                created_at=created_at,
            )
            for position, v in enumerate(self.violations)
        ]


def aggregate(
    report_id: str,
    classifier_violations: list[ViolationData],
    zone_violations: list[ViolationData],
) -> AggregateResult:
    """Classifier violations first, zone violations appended. No cross-source dedup."""
    return AggregateResult(
        report_id=report_id,
        violations=[*classifier_violations, *zone_violations],
    )


def severity_rank(severity: str) -> int:
    return SEVERITIES.index(severity)


def sort_for_triage(violations: list[ViolationData]) -> list[ViolationData]:
    """Most severe first; stable within a severity."""
    return sorted(violations, key=lambda v: severity_rank(v.severity), reverse=True)
