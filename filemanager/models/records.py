# filemanager/models/records.py
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from filemanager.core.filetypes import Category


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_millis(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class FileRecord(BaseModel):
    """Metadata for one managed file, keyed by its id."""

    id: str
    original_name: str
    uploaded_at: datetime
    size: int = 0
    type: Category = Category.OTHER
    path: str
    downloads: int = 0
    last_accessed: Optional[datetime] = None
    last_modified: datetime = Field(default_factory=utcnow)


class ActionKind(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    PREVIEW = "preview"
    EDIT_VIEW = "edit_view"
    EDIT = "edit"
    DELETE = "delete"
    DELETE_FOLDER = "delete_folder"
    RENAME = "rename"
    COPY = "copy"
    COPY_FOLDER = "copy_folder"
    SHARE = "share"
    CREATE_FOLDER = "create_folder"
    VIEW_FOLDER = "view_folder"


class ActivityRecord(BaseModel):
    action: ActionKind
    filename: str
    file_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    ip: str = "unknown"
    user_agent: str = "unknown"
    current_path: str = "/"


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands datetimes back without tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
