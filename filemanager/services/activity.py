# filemanager/services/activity.py
import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from filemanager.models.activity import ActivityEntry
from filemanager.models.records import ActionKind, ActivityRecord, ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 1000

_history_adapter = TypeAdapter(List[ActivityRecord])


class ActivityLog:
    """Newest-first list of actions, trimmed from the tail once it exceeds ``limit``."""

    def __init__(self, limit: int = DEFAULT_LIMIT):
        self.limit = limit
        self._entries: List[ActivityRecord] = []

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: ActivityRecord) -> ActivityRecord:
        self._entries.insert(0, entry)
        evicted = len(self._entries) - self.limit
        if evicted > 0:
            del self._entries[self.limit:]
        self._persist(entry, max(evicted, 0))
        return entry

    def list(self, action: Optional[ActionKind] = None, limit: Optional[int] = None) -> List[ActivityRecord]:
        entries = self._entries
        if action is not None:
            entries = [e for e in entries if e.action == action]
        if limit is not None:
            entries = entries[:limit]
        return list(entries)

    def _persist(self, added: ActivityRecord, evicted: int):
        pass


class JsonActivityLog(ActivityLog):
    """Rewrites the whole history document after every record."""

    def __init__(self, path, limit: int = DEFAULT_LIMIT):
        super().__init__(limit)
        self.path = Path(path)
        self._load()

    def _load(self):
        if not self.path.exists():
            return
        try:
            self._entries = _history_adapter.validate_json(self.path.read_bytes())[: self.limit]
            logger.info(f"Loaded activity history from {self.path} ({len(self._entries)} entries)")
        except (OSError, ValidationError) as e:
            logger.error(f"Error loading activity history from {self.path}, starting empty: {e}")
            self._entries = []

    def _persist(self, added: ActivityRecord, evicted: int):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = [e.model_dump(mode="json") for e in self._entries]
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving activity history to {self.path}: {e}")


class SqlActivityLog(ActivityLog):
    """Appends one row per record and deletes the rows that fell off the tail."""

    def __init__(self, session_factory, limit: int = DEFAULT_LIMIT):
        super().__init__(limit)
        self.SessionLocal = session_factory
        self._load()

    def _load(self):
        db = self.SessionLocal()
        try:
            rows = db.query(ActivityEntry).order_by(ActivityEntry.seq.desc()).limit(self.limit).all()
            self._entries = [
                ActivityRecord(
                    action=row.action,
                    filename=row.filename,
                    file_id=row.file_id,
                    timestamp=ensure_utc(row.timestamp),
                    ip=row.ip,
                    user_agent=row.user_agent,
                    current_path=row.current_path,
                )
                for row in rows
            ]
        finally:
            db.close()

    def _persist(self, added: ActivityRecord, evicted: int):
        db = self.SessionLocal()
        try:
            db.add(ActivityEntry(
                action=added.action.value,
                filename=added.filename,
                file_id=added.file_id,
                timestamp=added.timestamp,
                ip=added.ip,
                user_agent=added.user_agent,
                current_path=added.current_path,
            ))
            db.flush()
            # trim by the table size; it can hold more than the in-memory tail
            # when history_limit was lowered since the last run
            excess = db.query(func.count(ActivityEntry.seq)).scalar() - self.limit
            if excess > 0:
                oldest = (
                    db.query(ActivityEntry.seq)
                    .order_by(ActivityEntry.seq.asc())
                    .limit(excess)
                    .all()
                )
                db.query(ActivityEntry).filter(
                    ActivityEntry.seq.in_([seq for (seq,) in oldest])
                ).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error saving activity record: {e}")
        finally:
            db.close()
