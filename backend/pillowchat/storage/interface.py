"""
Storage Interface - Abstract base class for storage backends.
Persistence only needs whole-document reads and writes keyed by path.
"""

from abc import ABC, abstractmethod
from typing import Optional


class StorageInterface(ABC):
    """Contract for key/path addressed document storage."""

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """
        Save content to the specified path, replacing any existing content.

        Args:
            path: Relative path (e.g., "sessions.json")
            content: Bytes or text to write

        Returns:
            bool: True if save was successful, False otherwise
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: File content, or None if it doesn't exist or can't be read
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a document exists at the specified path."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the document at the specified path.

        Returns:
            bool: True if a document was deleted
        """
        pass
