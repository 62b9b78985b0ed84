from __future__ import annotations

import logging

from logicform.config import Settings
from logicform.protocols import Storage
from logicform.repo_json import JSONStorage
from logicform.repo_sqlite import SQLiteStorage

logger = logging.getLogger(__name__)


def init_storage(settings: Settings) -> Storage:
    if settings.storage_backend == "json":
        logger.info("Using JSON storage at %s", settings.json_path)
        return JSONStorage(settings.json_path)
    if settings.storage_backend != "sqlite":
        logger.warning("Unknown STORAGE_BACKEND %r, falling back to sqlite", settings.storage_backend)
    logger.info("Using SQLite storage at %s", settings.sqlite_path)
    return SQLiteStorage(settings.sqlite_path)
