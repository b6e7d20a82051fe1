from studyhub.storage.base import ContentStorage
from studyhub.storage.exceptions import (
    StorageError,
    ConstraintViolationError,
    StorageConnectionError,
    StorageConfigurationError,
)
from studyhub.storage.memory_storage import MemoryStorage
from studyhub.storage.sql_storage import SqlStorage
from studyhub.storage.sql_core_storage import SqlCoreStorage
from studyhub.storage.factory import create_storage

__all__ = [
    "ContentStorage",
    "StorageError",
    "ConstraintViolationError",
    "StorageConnectionError",
    "StorageConfigurationError",
    "MemoryStorage",
    "SqlStorage",
    "SqlCoreStorage",
    "create_storage",
]
