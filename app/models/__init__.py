from app.models.user import User
from app.models.report import Report
from app.models.violation import Violation
from app.models.zone import RestrictedZone

__all__ = ["User", "Report", "Violation", "RestrictedZone"]
