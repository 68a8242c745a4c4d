"""
Metadata store: FileRecords keyed by file id.

The in-memory map is authoritative while the process runs. Subclasses mirror
it to disk after every mutation:

- JsonMetadataStore rewrites one JSON document in full.
- SqlMetadataStore writes only the changed row through SQLAlchemy.

There is no locking; concurrent writers on the same id race and the last
write wins.
"""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from filemanager.models.file import FileMeta
from filemanager.models.records import FileRecord, ensure_utc

logger = logging.getLogger(__name__)


class MetadataStore:
    """Plain in-memory store; nothing survives a restart."""

    def __init__(self):
        self._records: Dict[str, FileRecord] = {}
        self._defer_depth = 0
        self._dirty: set = set()

    def get(self, file_id: str) -> Optional[FileRecord]:
        return self._records.get(file_id)

    def all(self) -> List[FileRecord]:
        return list(self._records.values())

    def __contains__(self, file_id: str) -> bool:
        return file_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def upsert(self, file_id: str, **fields: Any) -> FileRecord:
        """Merge ``fields`` into the record, creating it when absent."""
        current = self._records.get(file_id)
        data = current.model_dump() if current else {}
        data.update(fields)
        data["id"] = file_id
        record = FileRecord.model_validate(data)
        self._records[file_id] = record
        self._changed(file_id)
        return record

    def remove(self, file_id: str) -> Optional[FileRecord]:
        record = self._records.pop(file_id, None)
        if record is not None:
            self._changed(file_id)
        return record

    @contextmanager
    def deferred(self):
        """Batch the persistence of every mutation made inside the block."""
        self._defer_depth += 1
        try:
            yield self
        finally:
            self._defer_depth -= 1
            if self._defer_depth == 0 and self._dirty:
                dirty, self._dirty = self._dirty, set()
                self._flush(dirty)

    def _changed(self, file_id: str):
        if self._defer_depth:
            self._dirty.add(file_id)
        else:
            self._flush({file_id})

    def _flush(self, file_ids: set):
        pass


class JsonMetadataStore(MetadataStore):
    """Mirrors the whole map to one JSON document on every mutation."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self):
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._records = {
                file_id: FileRecord.model_validate(item) for file_id, item in raw.items()
            }
            logger.info(f"Loaded file metadata from {self.path} ({len(self._records)} records)")
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            logger.error(f"Error loading file metadata from {self.path}, starting empty: {e}")
            self._records = {}

    def _flush(self, file_ids: set):
        payload = {file_id: r.model_dump(mode="json") for file_id, r in self._records.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving file metadata to {self.path}: {e}")


class SqlMetadataStore(MetadataStore):
    """Writes only the changed rows to the ``files`` table."""

    def __init__(self, session_factory):
        super().__init__()
        self.SessionLocal = session_factory
        self._load()

    def _load(self):
        db = self.SessionLocal()
        try:
            for row in db.query(FileMeta).all():
                self._records[row.id] = FileRecord(
                    id=row.id,
                    original_name=row.original_name,
                    uploaded_at=ensure_utc(row.uploaded_at),
                    size=row.size,
                    type=row.type,
                    path=row.path,
                    downloads=row.downloads,
                    last_accessed=ensure_utc(row.last_accessed),
                    last_modified=ensure_utc(row.last_modified),
                )
        finally:
            db.close()

    def _flush(self, file_ids: set):
        db = self.SessionLocal()
        try:
            for file_id in file_ids:
                record = self._records.get(file_id)
                row = db.get(FileMeta, file_id)
                if record is None:
                    if row is not None:
                        db.delete(row)
                    continue
                if row is None:
                    row = FileMeta(id=file_id)
                    db.add(row)
                row.original_name = record.original_name
                row.uploaded_at = record.uploaded_at
                row.size = record.size
                row.type = record.type.value
                row.path = record.path
                row.downloads = record.downloads
                row.last_accessed = record.last_accessed
                row.last_modified = record.last_modified
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error saving file metadata rows {sorted(file_ids)}: {e}")
        finally:
            db.close()
