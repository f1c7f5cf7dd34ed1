"""Local filesystem blob store returning dereferenceable URLs."""
import logging
import os
import time
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class LocalBlobStore:
    """Writes each upload under a fresh key; never overwrites."""

    def __init__(self, root_dir: str, public_base_url: str, url_prefix: str = "/media"):
        self.root = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")
        self.url_prefix = url_prefix
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def make_key(owner_id: str, extension: str = "jpg") -> str:
        millis = int(time.time() * 1000)
        return f"{owner_id}/{millis}-{uuid.uuid4().hex[:8]}-billboard.{extension}"

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}{self.url_prefix}/{key}"

    def put(self, owner_id: str, content: bytes, extension: str = "jpg") -> tuple[str, str]:
        """Store bytes and return (key, url)."""
        key = self.make_key(owner_id, extension)
        path = self.root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "xb") as f:
                f.write(content)
        except OSError as e:
            logger.exception("Blob write failed for key %s", key)
            raise StorageError(f"Failed to store image: {e}") from e

        logger.info("Stored blob %s (%d bytes)", key, len(content))
        return key, self.url_for(key)

    def get(self, key: str) -> bytes:
        path = self.root / key
        if not path.is_file():
            raise StorageError(f"Blob not found: {key}")
        return path.read_bytes()

    def delete(self, key: str) -> None:
        path = self.root / key
        if path.is_file():
            os.remove(path)
