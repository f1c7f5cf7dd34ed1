from sqlalchemy import Column, String, Integer, Float, ForeignKey

from app.database import Base

VIOLATION_TYPES = ("size", "location", "structural", "content")

# Display/triage order, least to most severe
SEVERITIES = ("low", "medium", "high", "critical")

DEFAULT_CONFIDENCE = 85.0


class Violation(Base):
    __tablename__ = "violations"

    id = Column(String, primary_key=True)
    report_id = Column(String, ForeignKey("billboard_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    violation_type = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    description = Column(String, nullable=False)
    confidence_score = Column(Float, nullable=False, default=DEFAULT_CONFIDENCE)
    created_at = Column(String, nullable=False)
