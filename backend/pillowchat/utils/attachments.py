"""
Attachment helpers - convert image files to inline data: URLs.
"""

import base64
import binascii
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import aiofiles

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/jpg", "image/webp", "image/gif"}


@dataclass
class Attachment:
    """Raw attachment bytes with their media type."""
    data: bytes
    media_type: str

    @classmethod
    async def from_path(cls, path: Union[str, Path]) -> "Attachment":
        """Read an attachment from disk, guessing its media type from the name."""
        media_type, _ = mimetypes.guess_type(str(path))
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        return cls(data=data, media_type=media_type or "application/octet-stream")

    @classmethod
    def from_base64(cls, encoded: str, media_type: str) -> "Attachment":
        """
        Build an attachment from a base64 string.

        Raises:
            ValueError: if the string is not valid base64
        """
        try:
            data = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 attachment: {e}") from e
        return cls(data=data, media_type=media_type)

    @property
    def is_image(self) -> bool:
        return self.media_type in ALLOWED_IMAGE_TYPES

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.media_type};base64,{encoded}"
