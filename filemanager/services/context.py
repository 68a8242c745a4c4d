# filemanager/services/context.py
import logging
from dataclasses import dataclass

from filemanager.core.config import Settings
from filemanager.models.database import make_session_factory
from filemanager.services.activity import ActivityLog, JsonActivityLog, SqlActivityLog
from filemanager.services.metadata import JsonMetadataStore, MetadataStore, SqlMetadataStore
from filemanager.storage.base import Storage
from filemanager.storage.local import LocalStorage

logger = logging.getLogger(__name__)


@dataclass
class FileManagerContext:
    """Everything a request handler needs; one instance per app."""

    settings: Settings
    storage: Storage
    metadata: MetadataStore
    activity: ActivityLog
    active_connections: int = 0


def build_storage(settings: Settings) -> Storage:
    if settings.storage_backend == "s3":
        from filemanager.storage.s3 import S3Storage

        logger.info(f"Using S3 bucket {settings.aws_s3_bucket_name}")
        return S3Storage.from_settings(settings)
    logger.info(f"Using local storage at {settings.upload_dir}")
    return LocalStorage(settings.upload_dir)


def build_context(settings: Settings, storage: Storage = None) -> FileManagerContext:
    if storage is None:
        storage = build_storage(settings)

    if not settings.persist:
        metadata = MetadataStore()
        activity = ActivityLog(settings.history_limit)
    elif settings.metadata_backend == "sqlite":
        SessionLocal = make_session_factory(settings.sqlalchemy_url)
        metadata = SqlMetadataStore(SessionLocal)
        activity = SqlActivityLog(SessionLocal, settings.history_limit)
    else:
        metadata = JsonMetadataStore(settings.metadata_path)
        activity = JsonActivityLog(settings.history_path, settings.history_limit)

    return FileManagerContext(settings=settings, storage=storage, metadata=metadata, activity=activity)
