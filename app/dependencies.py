import os

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import async_session, get_db
from app.models.user import User
from app.services.blob_store import LocalBlobStore
from app.services.classifier import ClassifierAdapter
from app.services.ingestion import IngestionGateway
from app.services.lifecycle import ReportLifecycleManager
from app.services.zones import ZoneRegistry
from app.utils.exceptions import AuthenticationError

_blob_store: LocalBlobStore | None = None
_lifecycle_manager: ReportLifecycleManager | None = None


def blob_dir() -> str:
    return os.path.join(settings.data_dir, "blobs")


async def verify_api_key(x_api_key: str = Header(default="")) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


async def get_current_user(
    authorization: str = Header(default=""),
    db: AsyncSession = Depends(get_db),
) -> User:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("No authorization header")

    result = await db.execute(select(User).where(User.access_token == token.strip()))
    user = result.scalars().first()
    if user is None:
        raise AuthenticationError("Invalid token")
    return user


def get_blob_store() -> LocalBlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore(blob_dir(), settings.public_base_url)
    return _blob_store


def get_lifecycle_manager() -> ReportLifecycleManager:
    global _lifecycle_manager
    if _lifecycle_manager is None:
        classifier = ClassifierAdapter(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.classifier_timeout_seconds,
        )
        _lifecycle_manager = ReportLifecycleManager(
            session_factory=async_session,
            classifier=classifier,
            zone_registry=ZoneRegistry(async_session),
            blob_store=get_blob_store(),
            max_attempts=settings.classifier_max_attempts,
            attempt_timeout=settings.classifier_timeout_seconds,
            backoff_seconds=settings.classifier_backoff_seconds,
            zone_failure_policy=settings.zone_lookup_failure_policy,
        )
    return _lifecycle_manager


def get_ingestion_gateway(
    lifecycle: ReportLifecycleManager = Depends(get_lifecycle_manager),
    blob_store: LocalBlobStore = Depends(get_blob_store),
) -> IngestionGateway:
    return IngestionGateway(
        session_factory=async_session,
        blob_store=blob_store,
        lifecycle=lifecycle,
        max_image_size_bytes=settings.max_image_size_bytes,
    )
