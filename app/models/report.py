from sqlalchemy import Column, String, Float, ForeignKey

from app.database import Base

STATUS_PENDING = "pending"
STATUS_ANALYZING = "analyzing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_FAILED})

VERDICT_COMPLIANT = "compliant"
VERDICT_NON_COMPLIANT = "non-compliant"


class Report(Base):
    __tablename__ = "billboard_reports"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    image_url = Column(String, nullable=False)
    image_key = Column(String, nullable=False)
    location_lat = Column(Float, nullable=False)
    location_lng = Column(Float, nullable=False)
    location_address = Column(String, nullable=True)
    status = Column(String, nullable=False, default=STATUS_PENDING)
    verdict = Column(String, nullable=True)
    failure_reason = Column(String, nullable=True)
    failed_at = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)
