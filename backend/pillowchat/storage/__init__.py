"""Storage module - persistence of chat state."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .chat_storage import ChatPersistence, PersistedState

__all__ = ['StorageInterface', 'LocalStorage', 'ChatPersistence', 'PersistedState']
