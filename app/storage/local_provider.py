"""
Local filesystem storage for generated quote documents.
Files are served back under /public/quotes/.
"""
import os
from typing import Optional, BinaryIO
from pathlib import Path
from urllib.parse import quote

import structlog

from ..config import settings
from .provider import StorageProvider


logger = structlog.get_logger(__name__)


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider."""

    def __init__(self, base_dir: Optional[str] = None, public_prefix: str = "/public/quotes"):
        self.base_dir = Path(base_dir or settings.quotes_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.public_prefix = public_prefix

    def _get_path(self, key: str) -> Path:
        """Get the local filesystem path for a given key."""
        # Flat namespace: strip any directory component
        clean_key = os.path.basename(key.replace("\\", "/"))
        return self.base_dir / clean_key

    def get_download_url(self, key: str) -> Optional[str]:
        return f"{settings.public_base_url}{self.public_prefix}/{quote(os.path.basename(key))}"

    def copy_in(self, src: bytes | BinaryIO, key: str) -> None:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            if hasattr(src, "read"):
                f.write(src.read())
            else:
                f.write(src)
        logger.info("document_stored", key=path.name, size_bytes=path.stat().st_size)

    def read(self, key: str) -> Optional[bytes]:
        path = self._get_path(key)
        if not path.exists():
            return None
        with open(path, "rb") as f:
            return f.read()

def get_storage() -> StorageProvider:
    return LocalStorageProvider()
