"""Report state machine: pending -> analyzing -> completed | failed.

Every transition is a conditional UPDATE on the current status, so a report
only ever moves forward and two runs can never both claim the same report.
"""
import asyncio
import logging
import mimetypes
import re

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from app.models.report import (
    Report,
    STATUS_PENDING,
    STATUS_ANALYZING,
    STATUS_COMPLETED,
    STATUS_FAILED,
)
from app.schemas.report import LocationData
from app.schemas.violation import ViolationData
from app.services.aggregator import AggregateResult, aggregate
from app.services.blob_store import StorageError
from app.services.classifier import ClassifierResult, ClassifierUnavailableError
from app.services.geofence import evaluate_location
from app.services.zones import ZoneRegistryError
from app.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

ZONE_POLICY_FAIL = "fail"
ZONE_POLICY_IGNORE = "ignore"

INTERRUPTED_REASON = "Analysis interrupted before completion"


def mask_secrets(message: str) -> str:
    return re.sub(r"sk-[A-Za-z0-9_-]+", "sk-***", message)


class ReportLifecycleManager:
    """Sole writer of report status and violations."""

    def __init__(
        self,
        session_factory,
        classifier,
        zone_registry,
        blob_store=None,
        max_attempts: int = 3,
        attempt_timeout: float = 60.0,
        backoff_seconds: float = 2.0,
        zone_failure_policy: str = ZONE_POLICY_FAIL,
        sleep=asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if zone_failure_policy not in (ZONE_POLICY_FAIL, ZONE_POLICY_IGNORE):
            raise ValueError(f"Unknown zone failure policy: {zone_failure_policy}")

        self._session_factory = session_factory
        self._classifier = classifier
        self._zone_registry = zone_registry
        self._blob_store = blob_store
        self.max_attempts = max_attempts
        self.attempt_timeout = attempt_timeout
        self.backoff_seconds = backoff_seconds
        self.zone_failure_policy = zone_failure_policy
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()

    # -- scheduling ---------------------------------------------------------

    def dispatch(self, report_id: str) -> asyncio.Task:
        """Start analysis in the background; the caller does not wait."""
        task = asyncio.create_task(self.analyze(report_id), name=f"analyze-{report_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def recover(self) -> None:
        """Fail reports a dead process left in `analyzing`, re-dispatch stranded `pending` ones."""
        async with self._session_factory() as db:
            result = await db.execute(
                update(Report)
                .where(Report.status == STATUS_ANALYZING)
                .values(
                    status=STATUS_FAILED,
                    failure_reason=INTERRUPTED_REASON,
                    failed_at=utc_now_iso(),
                    updated_at=utc_now_iso(),
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if result.rowcount:
                logger.warning("Marked %d interrupted reports as failed", result.rowcount)

            result = await db.execute(select(Report.id).where(Report.status == STATUS_PENDING))
            pending_ids = list(result.scalars().all())

        for report_id in pending_ids:
            logger.info("Re-dispatching pending report %s", report_id)
            self.dispatch(report_id)

    # -- analysis -----------------------------------------------------------

    async def analyze(self, report_id: str) -> str | None:
        """Drive one report to a terminal state. Returns that state, or None if not claimed."""
        lock = self._locks.setdefault(report_id, asyncio.Lock())
        if lock.locked():
            logger.info("Analysis already in flight for report %s", report_id)
            return None

        async with lock:
            try:
                return await self._run(report_id)
            finally:
                self._locks.pop(report_id, None)

    async def _run(self, report_id: str) -> str | None:
        async with self._session_factory() as db:
            claimed = await self._transition(db, report_id, STATUS_PENDING, STATUS_ANALYZING)
            if not claimed:
                logger.info("Report %s is not pending, skipping analysis", report_id)
                return None
            report = await db.get(Report, report_id)

        logger.info("Analyzing report %s", report_id)
        location = LocationData(
            lat=report.location_lat,
            lng=report.location_lng,
            address=report.location_address,
        )

        classifier_outcome, zone_outcome = await asyncio.gather(
            self._classify_with_retry(report, location),
            self._evaluate_zones(location),
            return_exceptions=True,
        )

        for outcome in (classifier_outcome, zone_outcome):
            if isinstance(outcome, (ClassifierUnavailableError, ZoneRegistryError)):
                await self._fail(report_id, str(outcome))
                return STATUS_FAILED
            if isinstance(outcome, BaseException):
                logger.error("Unexpected analysis error for report %s", report_id, exc_info=outcome)
                await self._fail(report_id, f"Unexpected analysis error: {outcome}")
                return STATUS_FAILED

        if classifier_outcome.degraded:
            logger.warning("Report %s: classifier answer degraded to a flagged violation", report_id)

        result = aggregate(report_id, classifier_outcome.violations, zone_outcome)

        try:
            completed = await self._complete(result)
        except SQLAlchemyError as e:
            logger.exception("Persisting violations failed for report %s", report_id)
            await self._fail(report_id, f"Failed to persist violations: {e}")
            return STATUS_FAILED

        if not completed:
            logger.warning("Report %s left analyzing state before completion", report_id)
            return None

        logger.info(
            "Report %s completed: %s, %d violations",
            report_id, result.verdict, len(result.violations),
        )
        return STATUS_COMPLETED

    def _load_image(self, report: Report) -> tuple[bytes | None, str]:
        content_type = mimetypes.guess_type(report.image_key)[0] or "image/jpeg"
        if self._blob_store is None:
            return None, content_type
        try:
            return self._blob_store.get(report.image_key), content_type
        except StorageError:
            logger.warning("Blob %s unreadable, classifier will fetch by URL", report.image_key)
            return None, content_type

    async def _classify_with_retry(self, report: Report, location: LocationData) -> ClassifierResult:
        image_bytes, content_type = self._load_image(report)
        last_error: ClassifierUnavailableError | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.wait_for(
                    self._classifier.classify(report.image_url, location, image_bytes, content_type),
                    timeout=self.attempt_timeout,
                )
            except asyncio.TimeoutError:
                last_error = ClassifierUnavailableError(
                    f"Classifier timed out after {self.attempt_timeout:g}s"
                )
            except ClassifierUnavailableError as e:
                last_error = e

            logger.warning(
                "Classifier attempt %d/%d failed for report %s: %s",
                attempt, self.max_attempts, report.id, last_error,
            )
            if attempt < self.max_attempts:
                await self._sleep(self.backoff_seconds * 2 ** (attempt - 1))

        raise ClassifierUnavailableError(f"{last_error} (gave up after {self.max_attempts} attempts)")

    async def _evaluate_zones(self, location: LocationData) -> list[ViolationData]:
        try:
            zones = await self._zone_registry.load()
        except ZoneRegistryError:
            if self.zone_failure_policy == ZONE_POLICY_IGNORE:
                logger.warning("Zone registry unavailable, treating as no matching zones")
                return []
            raise
        return evaluate_location(location.lat, location.lng, zones)

    # -- persistence --------------------------------------------------------

    async def _transition(self, db, report_id: str, from_status: str, to_status: str, **values) -> bool:
        result = await db.execute(
            update(Report)
            .where(Report.id == report_id, Report.status == from_status)
            .values(status=to_status, updated_at=utc_now_iso(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            return False
        await db.commit()
        return True

    async def _complete(self, result: AggregateResult) -> bool:
        """Violations and the completed status commit together or not at all."""
        now = utc_now_iso()
        async with self._session_factory() as db:
            async with db.begin():
                moved = await db.execute(
                    update(Report)
                    .where(Report.id == result.report_id, Report.status == STATUS_ANALYZING)
                    .values(status=STATUS_COMPLETED, verdict=result.verdict, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if moved.rowcount != 1:
                    return False
                db.add_all(result.to_records(created_at=now))
        return True

    async def _fail(self, report_id: str, reason: str) -> None:
        reason = mask_secrets(reason)
        logger.error("Report %s failed: %s", report_id, reason)
        try:
            async with self._session_factory() as db:
                await self._transition(
                    db, report_id, STATUS_ANALYZING, STATUS_FAILED,
                    failure_reason=reason, failed_at=utc_now_iso(),
                )
        except SQLAlchemyError:
            # Report stays `analyzing` until startup recovery fails it
            logger.exception("Could not record failure for report %s", report_id)
