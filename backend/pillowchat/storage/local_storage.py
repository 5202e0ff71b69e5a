"""
Local Filesystem Storage Implementation.
Documents are files under a base directory; writes go through a temporary
file so a crash mid-write never leaves a truncated document behind.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles

from .interface import StorageInterface

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """Local filesystem storage rooted at ``base_dir``."""

    def __init__(self, base_dir: str = "./data"):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Resolve a relative path, rejecting anything outside base_dir."""
        full_path = (self.base_dir / path).resolve()
        if not full_path.is_relative_to(self.base_dir):
            raise ValueError(f"Invalid path: {path} - path traversal detected")
        return full_path

    async def save(self, path: str, content: bytes | str) -> bool:
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            # Unique per write so overlapping saves of one document never share a temp file
            tmp_path = full_path.with_name(f"{full_path.name}.{uuid.uuid4().hex}.tmp")

            data = content.encode("utf-8") if isinstance(content, str) else content
            try:
                async with aiofiles.open(tmp_path, "wb") as f:
                    await f.write(data)
                os.replace(tmp_path, full_path)
            finally:
                if tmp_path.exists():
                    tmp_path.unlink()
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error saving file {path}: {e}")
            return False

    async def load(self, path: str) -> Optional[bytes]:
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return None
            async with aiofiles.open(full_path, "rb") as f:
                return await f.read()
        except (OSError, ValueError) as e:
            logger.error(f"Error loading file {path}: {e}")
            return None

    async def exists(self, path: str) -> bool:
        try:
            return self._get_full_path(path).exists()
        except ValueError:
            return False

    async def delete(self, path: str) -> bool:
        try:
            full_path = self._get_full_path(path)
            if full_path.exists():
                full_path.unlink()
                return True
            return False
        except (OSError, ValueError) as e:
            logger.error(f"Error deleting file {path}: {e}")
            return False
