"""
Object storage for generated and reference images.

Files live under a local media root that the app serves at ``/media``.
``upload`` returns the durable public URL of the stored object.

Usage:
    storage = LocalObjectStorage("/srv/lumiere/media", "https://lumiere.example")
    url = await storage.upload("ai-generated-designs/u1/s1/x.png", png_bytes, "image/png")
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import anyio

from backend.errors import UpstreamFailure

logger = logging.getLogger(__name__)

GENERATED_DESIGNS_PREFIX = "ai-generated-designs"
REFERENCE_IMAGES_PREFIX = "reference-images"
MEDIA_URL_PATH = "/media"

_DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "data")


def default_media_root() -> str:
    return os.getenv("MEDIA_ROOT") or os.path.join(_DATA_DIR, "media")


def generated_design_path(user_id: str, session_id: str) -> str:
    return f"{GENERATED_DESIGNS_PREFIX}/{user_id}/{session_id}/{uuid.uuid4()}.png"


def reference_image_path(user_id: str, extension: str) -> str:
    return f"{REFERENCE_IMAGES_PREFIX}/{user_id}/{uuid.uuid4()}{extension}"


class LocalObjectStorage:
    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None):
        self.root = Path(root or default_media_root()).resolve()
        base = public_base_url or os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
        self.public_base_url = base.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise ValueError(f"Storage path escapes media root: {path}")
        return target

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}{MEDIA_URL_PATH}/{path.lstrip('/')}"

    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store ``data`` at ``path`` and return its public URL."""
        target = self._resolve(path)
        try:
            await anyio.to_thread.run_sync(self._write, target, data)
        except OSError as e:
            raise UpstreamFailure(f"Storage upload failed: {e}") from e
        logger.info("Stored %s (%d bytes, %s)", path, len(data), content_type)
        return self.public_url(path)

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
