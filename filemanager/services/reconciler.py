"""
Directory reconciliation.

Turns a raw storage listing into display-ready folder and file entries,
creating or refreshing FileRecords for managed files along the way. Records
lost from the metadata store (restart without persistence) are rebuilt here
from the encoded filenames.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

from filemanager.core import codec
from filemanager.core.errors import NotFoundException, StorageException, ValidationException
from filemanager.core.filetypes import (
    FOLDER_ICON,
    Category,
    classify,
    color_for,
    format_bytes,
    icon_for,
    is_editable,
)
from filemanager.models.records import FileRecord, from_millis
from filemanager.services.metadata import MetadataStore
from filemanager.storage.base import Storage, StorageStat, join_path, normalize_path, parent_of

logger = logging.getLogger(__name__)

SORT_KEYS = ("name", "size", "uploaded", "modified", "downloads")


@dataclass
class FolderEntry:
    name: str
    path: str
    icon: str = FOLDER_ICON

    @property
    def url(self) -> str:
        return f"/?path={quote(self.path, safe='')}"


@dataclass
class FileEntry:
    path: str
    name: str
    category: Category
    size: int
    uploaded: datetime
    last_modified: datetime
    managed: bool
    file_id: Optional[str] = None
    downloads: Optional[int] = None
    last_accessed: Optional[datetime] = None
    icon: str = field(init=False)
    color: str = field(init=False)

    def __post_init__(self):
        self.icon = icon_for(self.category)
        self.color = color_for(self.category)

    @property
    def size_display(self) -> str:
        return format_bytes(self.size)

    @property
    def editable(self) -> bool:
        return is_editable(self.category)

    @property
    def preview_url(self) -> str:
        return "/preview/" + quote(self.path)

    @property
    def download_url(self) -> str:
        return "/download/" + quote(self.path)

    @property
    def raw_url(self) -> str:
        return "/raw/" + quote(self.path)

    @property
    def share_url(self) -> str:
        return "/share/" + quote(self.path)

    @property
    def edit_url(self) -> Optional[str]:
        return "/edit/" + quote(self.path) if self.editable else None


@dataclass
class DirectoryListing:
    path: str
    folders: List[FolderEntry]
    files: List[FileEntry]

    @property
    def parent(self) -> Optional[str]:
        return parent_of(self.path) if self.path else None


def natural_key(text: str):
    """``file2`` sorts before ``file10``."""
    parts = re.split(r"([0-9]+)", text.casefold())
    return [int(part) if i % 2 else part for i, part in enumerate(parts)]


def _sort_value(entry: FileEntry, sort: str):
    if sort == "size":
        return entry.size
    if sort == "uploaded":
        return entry.uploaded
    if sort == "modified":
        return entry.last_modified
    if sort == "downloads":
        return entry.downloads if entry.downloads is not None else -1
    return natural_key(entry.name)


def sort_files(files: List[FileEntry], sort: str = "name", descending: bool = False) -> List[FileEntry]:
    ordered = sorted(files, key=lambda f: natural_key(f.name))
    if sort != "name" or descending:
        ordered.sort(key=lambda f: _sort_value(f, sort), reverse=descending)
    return ordered


def reconcile_file(store: MetadataStore, rel_path: str, name: str, st: StorageStat) -> FileEntry:
    """Build the entry for one file, creating/refreshing its record when managed."""
    decoded = codec.decode(name)
    if decoded is None:
        category = classify(name)
        return FileEntry(
            path=rel_path,
            name=name,
            category=category,
            size=st.size,
            uploaded=st.created,
            last_modified=st.modified,
            managed=False,
        )

    record = store.get(decoded.file_id)
    if record is None:
        record = store.upsert(
            decoded.file_id,
            original_name=decoded.original_name,
            uploaded_at=from_millis(decoded.uploaded_ms),
            size=st.size,
            type=classify(decoded.original_name),
            path=rel_path,
            downloads=0,
            last_accessed=None,
            last_modified=st.modified,
        )
        logger.info(f"Reconciled new record {decoded.file_id} for {rel_path}")
    elif (record.size, record.last_modified, record.path, record.original_name) != (
        st.size, st.modified, rel_path, decoded.original_name
    ):
        record = store.upsert(
            decoded.file_id,
            original_name=decoded.original_name,
            size=st.size,
            last_modified=st.modified,
            path=rel_path,
            type=classify(decoded.original_name),
        )

    return entry_for_record(record)


def entry_for_record(record: FileRecord) -> FileEntry:
    return FileEntry(
        path=record.path,
        name=record.original_name,
        category=record.type,
        size=record.size,
        uploaded=record.uploaded_at,
        last_modified=record.last_modified,
        managed=True,
        file_id=record.id,
        downloads=record.downloads,
        last_accessed=record.last_accessed,
    )


def list_directory(
    storage: Storage,
    store: MetadataStore,
    path: str = "",
    sort: str = "name",
    descending: bool = False,
    search: Optional[str] = None,
) -> DirectoryListing:
    """
    List one folder level.

    ``search`` keeps only folders and files whose display name contains it,
    ignoring case. Records are still reconciled for every managed file.

    A missing or unreadable folder fails the whole call. A single entry that
    cannot be stat-ed or decoded is logged and left out.
    """
    path = normalize_path(path)
    try:
        raw_entries = storage.list_dir(path)
    except (FileNotFoundError, NotADirectoryError):
        raise NotFoundException(f'Directory "{path or "/"}" not found.')
    except OSError as e:
        logger.error(f"Directory read error for {path!r}: {e}")
        raise StorageException("Server error: Could not list files.")

    folders: List[FolderEntry] = []
    files: List[FileEntry] = []
    with store.deferred():
        for raw in raw_entries:
            rel_path = join_path(path, raw.name)
            if raw.is_dir:
                folders.append(FolderEntry(name=raw.name, path=rel_path))
                continue
            try:
                st = storage.stat(rel_path)
                files.append(reconcile_file(store, rel_path, raw.name, st))
            except (OSError, ValueError, OverflowError, ValidationException) as e:
                logger.warning(f"Error processing entry {rel_path}: {e}")

    term = (search or "").strip().casefold()
    if term:
        folders = [f for f in folders if term in f.name.casefold()]
        files = [f for f in files if term in f.name.casefold()]

    folders.sort(key=lambda f: natural_key(f.name))
    return DirectoryListing(path=path, folders=folders, files=sort_files(files, sort, descending))
