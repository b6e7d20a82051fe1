"""
Storage factory for selecting the backend from settings.

Depends on STORAGE_BACKEND (memory, sql, sql_core) and DATABASE_URL.
The storage is built once at startup and shared by every request.

Dependencies: studyhub.storage, studyhub.database, studyhub.config
System role: storage instantiation and selection
"""
import logging
from typing import Optional

from studyhub.config import Settings, STORAGE_BACKENDS, get_settings
from studyhub.database import create_db_engine, init_db
from studyhub.storage.base import ContentStorage, Clock
from studyhub.storage.exceptions import StorageConfigurationError
from studyhub.storage.memory_storage import MemoryStorage
from studyhub.storage.sql_core_storage import SqlCoreStorage
from studyhub.storage.sql_storage import SqlStorage

logger = logging.getLogger(__name__)


def create_storage(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> ContentStorage:
    """
    Factory function to get the storage backend based on configuration.

    Args:
        settings: application settings, read from the environment when omitted
        clock: timestamp source handed to the backend

    Returns:
        ContentStorage: MemoryStorage, SqlStorage or SqlCoreStorage

    Raises:
        StorageConfigurationError: unknown backend, or a relational backend
            without DATABASE_URL
    """
    settings = settings or get_settings()
    backend = settings.STORAGE_BACKEND.lower()

    if backend == "memory":
        logger.info(f"{__name__}:create_storage - Creating in-memory storage")
        return MemoryStorage(clock=clock)

    if backend not in STORAGE_BACKENDS:
        raise StorageConfigurationError(
            f"Invalid STORAGE_BACKEND: {backend}. Must be one of {', '.join(STORAGE_BACKENDS)}.",
            details={"backend": backend},
        )

    if not settings.DATABASE_URL:
        raise StorageConfigurationError(
            f"STORAGE_BACKEND={backend} requires DATABASE_URL",
            details={"backend": backend},
        )

    engine = create_db_engine(settings.DATABASE_URL, settings)
    init_db(engine)

    if backend == "sql":
        logger.info(f"{__name__}:create_storage - Creating ORM session storage ({engine.dialect.name})")
        return SqlStorage(engine, clock=clock)

    logger.info(f"{__name__}:create_storage - Creating Core connection storage ({engine.dialect.name})")
    return SqlCoreStorage(engine, clock=clock)
