"""Accepts a billboard photo + location and hands the new report to the lifecycle manager."""
import logging
import math
import uuid

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.models.report import Report, STATUS_PENDING
from app.models.user import User
from app.schemas.report import LocationData
from app.services.blob_store import StorageError
from app.services.image_validator import InvalidImageError, validate_image
from app.utils.exceptions import InvalidSubmissionError, StorageUnavailableError
from app.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)


def parse_location(lat: float, lng: float, address: str | None = None) -> LocationData:
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidSubmissionError("Latitude and longitude must be finite numbers")
    try:
        return LocationData(lat=lat, lng=lng, address=(address or "").strip() or None)
    except ValidationError as e:
        raise InvalidSubmissionError(
            "Latitude must be within [-90, 90] and longitude within [-180, 180]"
        ) from e


async def read_upload(file, max_size_bytes: int) -> bytes:
    """Read at most one byte past the limit so oversized uploads are rejected without buffering them."""
    content = await file.read(max_size_bytes + 1)
    if len(content) > max_size_bytes:
        raise InvalidSubmissionError(f"Image exceeds {max_size_bytes} bytes")
    return content


class IngestionGateway:
    def __init__(self, session_factory, blob_store, lifecycle, max_image_size_bytes: int):
        self._session_factory = session_factory
        self._blob_store = blob_store
        self._lifecycle = lifecycle
        self.max_image_size_bytes = max_image_size_bytes

    async def submit(self, owner: User, content: bytes, location: LocationData) -> str:
        """Validate, store, create a pending report and start analysis. Returns the report id."""
        try:
            extension, _ = validate_image(content, self.max_image_size_bytes)
        except InvalidImageError as e:
            raise InvalidSubmissionError(str(e)) from e

        try:
            key, url = self._blob_store.put(owner.id, content, extension)
        except StorageError as e:
            raise StorageUnavailableError("Failed to upload image") from e

        report_id = str(uuid.uuid4())
        now = utc_now_iso()
        report = Report(
            id=report_id,
            user_id=owner.id,
            image_url=url,
            image_key=key,
            location_lat=location.lat,
            location_lng=location.lng,
            location_address=location.address,
            status=STATUS_PENDING,
            created_at=now,
            updated_at=now,
        )

        try:
            async with self._session_factory() as db:
                db.add(report)
                await db.commit()
        except SQLAlchemyError as e:
            logger.exception("Report creation failed for user %s", owner.id)
            try:
                self._blob_store.delete(key)
            except OSError:
                logger.exception("Could not remove orphaned blob %s", key)
            raise StorageUnavailableError("Failed to create report") from e

        logger.info("Report %s submitted by user %s", report_id, owner.id)
        self._lifecycle.dispatch(report_id)
        return report_id
