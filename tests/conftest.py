import asyncio
import io
import os
import tempfile

import pytest

_TEST_DATA_DIR = tempfile.mkdtemp(prefix="billboard-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DATA_DIR}/test.sqlite3"
os.environ["DATA_DIR"] = _TEST_DATA_DIR


@pytest.fixture(autouse=True, scope="session")
def setup_test_db():
    # Disable deployment key and real classifier for tests
    from app.config import settings
    settings.api_key = ""
    settings.openai_api_key = ""

    from app.database import create_tables, async_session
    from app.seed import seed_data

    async def _setup():
        await create_tables()
        async with async_session() as session:
            await seed_data(session)

    asyncio.run(_setup())


def make_image(fmt: str = "JPEG", size=(32, 24)) -> bytes:
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


HANG = object()


class FakeClassifier:
    """Plays back outcomes in order: a ClassifierResult, an exception, or HANG."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def classify(self, image_url, location, image_bytes=None, content_type="image/jpeg"):
        self.calls.append((image_url, location, image_bytes, content_type))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if outcome is HANG:
            await asyncio.sleep(3600)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeZoneRegistry:
    def __init__(self, zones=None, error=None):
        self.zones = zones or []
        self.error = error

    async def load(self):
        if self.error is not None:
            raise self.error
        return list(self.zones)


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def build_manager():
    """Factory for a lifecycle manager wired to the test database and fakes."""
    from app.database import async_session
    from app.services.lifecycle import ReportLifecycleManager

    def _build(classifier, zone_registry=None, **kwargs):
        kwargs.setdefault("attempt_timeout", 5.0)
        kwargs.setdefault("sleep", _no_sleep)
        return ReportLifecycleManager(
            session_factory=async_session,
            classifier=classifier,
            zone_registry=zone_registry or FakeZoneRegistry(),
            **kwargs,
        )

    return _build


@pytest.fixture
def override_lifecycle():
    """Swap the app's lifecycle manager for the duration of a test."""
    from app.dependencies import get_lifecycle_manager
    from app.main import app

    def _install(manager):
        app.dependency_overrides[get_lifecycle_manager] = lambda: manager
        return manager

    yield _install
    app.dependency_overrides.pop(get_lifecycle_manager, None)
