"""
File operations behind the HTTP routes.

Every mutation touches storage first and only then the metadata store, so a
failed disk operation never leaves a half-updated record behind. Each call is
logged to the activity log with the caller's ip and user agent.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, List, Optional, Tuple
from urllib.parse import quote

from filemanager.core import codec
from filemanager.core.errors import (
    ConflictException,
    FileTooLargeException,
    FileTypeNotAllowedException,
    InvalidOperationException,
    NotFoundException,
    StorageException,
    ValidationException,
)
from filemanager.core.filetypes import classify, extension_of, format_bytes, is_editable
from filemanager.models.records import ActionKind, ActivityRecord, FileRecord, from_millis, utcnow
from filemanager.services.context import FileManagerContext
from filemanager.services.reconciler import (
    DirectoryListing,
    FileEntry,
    entry_for_record,
    list_directory,
    reconcile_file,
)
from filemanager.storage.base import basename_of, join_path, normalize_path, parent_of

logger = logging.getLogger(__name__)


@dataclass
class IncomingFile:
    filename: str
    stream: BinaryIO
    content_type: Optional[str] = None
    size: Optional[int] = None


@dataclass
class BulkResult:
    deleted: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class OpenedFile:
    """A file resolved for preview, download or editing."""

    entry: FileEntry
    content: Optional[str] = None

    @property
    def path(self) -> str:
        return self.entry.path

    @property
    def name(self) -> str:
        return self.entry.name


class FileService:
    """File operations for one request."""

    def __init__(self, ctx: FileManagerContext, ip: str = "unknown", user_agent: str = "unknown"):
        self.ctx = ctx
        self.settings = ctx.settings
        self.storage = ctx.storage
        self.metadata = ctx.metadata
        self.activity = ctx.activity
        self.ip = ip
        self.user_agent = user_agent

    # ============ helpers ============

    def log(self, action: ActionKind, filename: str, file_id: Optional[str] = None, current_path: str = ""):
        self.activity.record(ActivityRecord(
            action=action,
            filename=filename,
            file_id=file_id,
            ip=self.ip,
            user_agent=self.user_agent,
            current_path=current_path or "/",
        ))

    def _require_file(self, path: str, message: str = "File not found or is a directory.") -> str:
        rel = normalize_path(path)
        if not rel or not self.storage.is_file(rel):
            raise NotFoundException(message)
        return rel

    def _require_dir(self, path: str, message: str = "Folder not found.") -> str:
        rel = normalize_path(path)
        if not self.storage.is_dir(rel):
            raise NotFoundException(message)
        return rel

    def _entry(self, rel: str) -> FileEntry:
        try:
            st = self.storage.stat(rel)
        except FileNotFoundError:
            raise NotFoundException("File not found or is a directory.")
        except OSError as e:
            logger.exception(f"stat failed for {rel}")
            raise StorageException(f"Could not read {basename_of(rel)}: {e}")
        return reconcile_file(self.metadata, rel, basename_of(rel), st)

    def _path_of(self, file_id: str) -> str:
        record = self.metadata.get(file_id)
        if record is None:
            raise NotFoundException(f"No file with id {file_id}.")
        return record.path

    def _unique_name(self, folder: str, name: str) -> str:
        candidate, copy_count = name, 0
        base, ext = posixpath.splitext(name)
        while self.storage.exists(join_path(folder, candidate)):
            copy_count += 1
            candidate = f"{base}_copy{copy_count}{ext}"
        return candidate

    def _forget_under(self, folder: str):
        prefix = folder + "/"
        with self.metadata.deferred():
            for record in self.metadata.all():
                if record.path.startswith(prefix):
                    self.metadata.remove(record.id)

    def _move_under(self, old_folder: str, new_folder: str):
        prefix = old_folder + "/"
        with self.metadata.deferred():
            for record in self.metadata.all():
                if record.path.startswith(prefix):
                    self.metadata.upsert(record.id, path=new_folder + "/" + record.path[len(prefix):])

    # ============ listing ============

    def list_directory(
        self,
        path: str = "",
        sort: Optional[str] = None,
        descending: bool = False,
        search: Optional[str] = None,
    ) -> DirectoryListing:
        listing = list_directory(
            self.storage,
            self.metadata,
            path,
            sort=sort or self.settings.default_sort,
            descending=descending,
            search=search,
        )
        self.log(ActionKind.VIEW_FOLDER, listing.path or "/", current_path=listing.path)
        return listing

    # ============ upload / folders ============

    def _check_upload(self, files: List[IncomingFile]):
        if not files:
            raise ValidationException("No files selected for upload.")
        if len(files) > self.settings.max_files:
            raise ValidationException(f"Too many files: at most {self.settings.max_files} per upload.")
        allowed = {ext.lower() for ext in self.settings.allowed_extensions}
        for incoming in files:
            if extension_of(incoming.filename) not in allowed:
                raise FileTypeNotAllowedException(
                    f"File type not allowed for {incoming.filename}. Allowed types: {', '.join(sorted(allowed))}"
                )
            if incoming.size is not None and incoming.size > self.settings.max_file_size:
                raise FileTooLargeException(
                    f"{incoming.filename} exceeds the {format_bytes(self.settings.max_file_size)} limit."
                )

    def upload(self, files: List[IncomingFile], current_path: str = "") -> List[FileRecord]:
        folder = normalize_path(current_path)
        files = [f for f in files if f.filename]
        self._check_upload(files)

        records = []
        for incoming in files:
            stored_name = codec.encode(codec.now_ms(), codec.new_file_id(), basename_of(incoming.filename))
            rel = join_path(folder, stored_name)
            try:
                size = self.storage.save_stream(rel, incoming.stream, incoming.content_type)
            except OSError as e:
                logger.exception(f"Upload of {incoming.filename} failed")
                raise StorageException(f"Could not store {incoming.filename}: {e}")
            if size > self.settings.max_file_size:
                self.storage.delete_file(rel)
                raise FileTooLargeException(
                    f"{incoming.filename} exceeds the {format_bytes(self.settings.max_file_size)} limit."
                )
            records.append(self.record_upload(codec.decode(stored_name), rel, size))
        return records

    def record_upload(self, decoded: codec.DecodedName, rel_path: str, size: int) -> FileRecord:
        record = self.metadata.upsert(
            decoded.file_id,
            original_name=decoded.original_name,
            uploaded_at=from_millis(decoded.uploaded_ms),
            size=size,
            type=classify(decoded.original_name),
            path=rel_path,
            downloads=0,
            last_accessed=None,
            last_modified=utcnow(),
        )
        logger.info(f"Uploaded {decoded.original_name} as {rel_path}")
        self.log(ActionKind.UPLOAD, decoded.original_name, decoded.file_id, parent_of(rel_path))
        return record

    def create_folder(self, name: str, current_path: str = "") -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationException("Folder name cannot be empty.")
        safe_name = codec.sanitize(name)
        if safe_name in (".", ".."):
            raise ValidationException(
                "Invalid folder name. Please use alphanumeric characters, dots, hyphens, and underscores."
            )
        folder = self._require_dir(current_path)
        rel = join_path(folder, safe_name)
        if self.storage.exists(rel):
            raise ConflictException(f'Folder "{safe_name}" already exists.')
        try:
            self.storage.make_dir(rel)
        except OSError as e:
            logger.exception(f"Error creating folder {rel}")
            raise StorageException(f'Failed to create folder "{safe_name}": {e}')
        self.log(ActionKind.CREATE_FOLDER, safe_name, current_path=folder)
        return rel

    # ============ access ============

    def record_access(self, file_id: Optional[str], kind: ActionKind) -> Optional[FileRecord]:
        """Update access metadata; downloads additionally bump the counter."""
        record = self.metadata.get(file_id) if file_id else None
        if record is None:
            return None
        fields = {"last_accessed": utcnow()}
        if kind == ActionKind.DOWNLOAD:
            fields["downloads"] = record.downloads + 1
        return self.metadata.upsert(file_id, **fields)

    def preview(self, path: str) -> OpenedFile:
        rel = self._require_file(path)
        entry = self._entry(rel)
        self.record_access(entry.file_id, ActionKind.PREVIEW)
        self.log(ActionKind.PREVIEW, entry.name, entry.file_id, parent_of(rel))
        content = None
        if is_editable(entry.category):
            content = self._read_text(rel, entry.name)
        return OpenedFile(entry=entry, content=content)

    def raw(self, path: str) -> OpenedFile:
        rel = self._require_file(path)
        return OpenedFile(entry=self._entry(rel))

    def download(self, path: str) -> OpenedFile:
        rel = self._require_file(path, "File not found or is a directory for download.")
        entry = self._entry(rel)
        record = self.record_access(entry.file_id, ActionKind.DOWNLOAD)
        if record is not None:
            entry = entry_for_record(record)
        self.log(ActionKind.DOWNLOAD, entry.name, entry.file_id, parent_of(rel))
        return OpenedFile(entry=entry)

    def download_by_id(self, file_id: str) -> OpenedFile:
        return self.download(self._path_of(file_id))

    def _read_text(self, rel: str, name: str) -> str:
        try:
            return self.storage.read_text(rel)
        except UnicodeDecodeError:
            raise InvalidOperationException(f"{name} is not valid UTF-8 text.")
        except OSError as e:
            logger.exception(f"Error reading {rel}")
            raise StorageException(f"Error reading file {name}: {e}")

    def _require_editable(self, entry: FileEntry, verb: str):
        if not is_editable(entry.category):
            raise InvalidOperationException(
                f"{verb} is only supported for text and code files. This is a {entry.category.value} file."
            )

    def edit_view(self, path: str) -> OpenedFile:
        rel = self._require_file(path, "File not found or is a directory for editing.")
        entry = self._entry(rel)
        self._require_editable(entry, "Editing")
        content = self._read_text(rel, entry.name)
        self.record_access(entry.file_id, ActionKind.EDIT_VIEW)
        self.log(ActionKind.EDIT_VIEW, entry.name, entry.file_id, parent_of(rel))
        return OpenedFile(entry=entry, content=content)

    def save(self, path: str, content: Optional[str]) -> FileEntry:
        rel = self._require_file(path, "File not found or is a directory for saving.")
        entry = self._entry(rel)
        self._require_editable(entry, "Saving")
        if content is None:
            raise ValidationException("No content provided.")
        try:
            self.storage.write_text(rel, content)
            st = self.storage.stat(rel)
        except OSError as e:
            logger.exception(f"Error saving {rel}")
            raise StorageException(f"Error saving changes to {entry.name}: {e}")
        if entry.file_id:
            now = utcnow()
            record = self.metadata.upsert(entry.file_id, size=st.size, last_modified=now, last_accessed=now)
            entry = entry_for_record(record)
        self.log(ActionKind.EDIT, entry.name, entry.file_id, parent_of(rel))
        return entry

    def share(self, path: str, base_url: str) -> Tuple[str, str]:
        rel = normalize_path(path)
        if not rel or not self.storage.exists(rel):
            raise NotFoundException("Item not found for sharing.")
        decoded = codec.decode(basename_of(rel))
        name = decoded.original_name if decoded else basename_of(rel)
        file_id = decoded.file_id if decoded else None
        self.log(ActionKind.SHARE, name, file_id, parent_of(rel))
        return name, f"{base_url.rstrip('/')}/download/{quote(rel)}"

    # ============ delete ============

    def delete(self, path: str) -> str:
        """Delete a file or a whole folder; returns the containing folder."""
        rel = normalize_path(path)
        if not rel or not self.storage.exists(rel):
            raise NotFoundException("Item not found for deletion.")
        if self.storage.is_dir(rel):
            self.delete_folder(rel)
        else:
            self._delete_file(rel)
        return parent_of(rel)

    def _delete_file(self, rel: str):
        decoded = codec.decode(basename_of(rel))
        name = decoded.original_name if decoded else basename_of(rel)
        try:
            self.storage.delete_file(rel)
        except FileNotFoundError:
            raise NotFoundException("Item not found for deletion.")
        except OSError as e:
            logger.exception(f"Error deleting {rel}")
            raise StorageException(f'Error deleting file "{name}": {e}')
        file_id = None
        if decoded:
            file_id = decoded.file_id
            self.metadata.remove(file_id)
        logger.info(f"Deleted {rel}")
        self.log(ActionKind.DELETE, name, file_id, parent_of(rel))

    def delete_by_id(self, file_id: str):
        rel = self._path_of(file_id)
        if not self.storage.is_file(rel):
            raise NotFoundException(f"File {file_id} is missing from storage.")
        self._delete_file(rel)

    def delete_folder(self, path: str):
        rel = normalize_path(path)
        if not rel:
            raise ValidationException("The root folder cannot be deleted.")
        if not self.storage.is_dir(rel):
            raise NotFoundException("Folder not found.")
        try:
            self.storage.delete_dir(rel)
        except OSError as e:
            logger.exception(f"Error deleting folder {rel}")
            raise StorageException(f'Error deleting folder "{basename_of(rel)}": {e}')
        self._forget_under(rel)
        logger.info(f"Deleted folder {rel}")
        self.log(ActionKind.DELETE_FOLDER, basename_of(rel), current_path=parent_of(rel))

    def _delete_each(self, items: Iterable[str], delete_one) -> BulkResult:
        result = BulkResult()
        for item in items:
            try:
                delete_one(item)
                result.deleted += 1
            except (NotFoundException, StorageException, ValidationException) as e:
                logger.warning(f"Could not delete {item}: {e.message}")
                result.failed += 1
                result.errors.append(f"{item}: {e.message}")
        return result

    def delete_many(self, paths: Iterable[str]) -> BulkResult:
        return self._delete_each(paths, self.delete)

    def delete_many_by_id(self, file_ids: Iterable[str]) -> BulkResult:
        return self._delete_each(file_ids, self.delete_by_id)

    # ============ rename ============

    def rename(self, path: str, new_name: str) -> str:
        """Rename a file or folder in place; returns the new relative path."""
        rel = normalize_path(path)
        if not rel or not self.storage.exists(rel):
            raise NotFoundException("Item not found for renaming.")
        if not (new_name or "").strip():
            raise ValidationException("New name cannot be empty.")
        if self.storage.is_dir(rel):
            return self.rename_folder(rel, new_name)
        return self._rename_file(rel, new_name)

    def _rename_file(self, rel: str, new_name: str) -> str:
        old_filename = basename_of(rel)
        decoded = codec.decode(old_filename)
        old_display = decoded.original_name if decoded else old_filename

        base, ext = posixpath.splitext(basename_of(new_name.strip()))
        if not ext:
            ext = posixpath.splitext(old_display)[1]
        base = codec.sanitize(base)
        if not base:
            raise ValidationException("Invalid new file name.")
        display = base + codec.sanitize(ext)

        if decoded:
            new_filename = codec.encode(decoded.uploaded_ms, decoded.file_id, display)
        else:
            new_filename = display
        new_rel = join_path(parent_of(rel), new_filename)
        if self.storage.exists(new_rel):
            raise ConflictException(f'Cannot rename: A file with the name "{new_name}" already exists.')

        try:
            self.storage.rename(rel, new_rel)
        except OSError as e:
            logger.exception(f"Error renaming {rel}")
            raise StorageException(f'Error renaming file "{old_display}" to "{new_name}": {e}')

        file_id = None
        if decoded:
            file_id = decoded.file_id
            if decoded.file_id in self.metadata:
                self.metadata.upsert(
                    file_id,
                    original_name=display,
                    path=new_rel,
                    type=classify(display),
                    last_modified=utcnow(),
                )
            else:
                self._entry(new_rel)
        logger.info(f"Renamed {rel} -> {new_rel}")
        self.log(ActionKind.RENAME, f"{old_display} -> {display}", file_id, parent_of(rel))
        return new_rel

    def rename_by_id(self, file_id: str, new_name: str) -> str:
        return self.rename(self._path_of(file_id), new_name)

    def rename_folder(self, path: str, new_name: str) -> str:
        rel = normalize_path(path)
        if not rel or not self.storage.is_dir(rel):
            raise NotFoundException("Folder not found.")
        safe_name = codec.sanitize((new_name or "").strip())
        if not safe_name or safe_name in (".", ".."):
            raise ValidationException("Invalid new folder name.")
        new_rel = join_path(parent_of(rel), safe_name)
        if self.storage.exists(new_rel):
            raise ConflictException(f'Cannot rename: A folder with the name "{new_name}" already exists.')
        try:
            self.storage.rename(rel, new_rel)
        except OSError as e:
            logger.exception(f"Error renaming folder {rel}")
            raise StorageException(f'Error renaming folder "{basename_of(rel)}" to "{new_name}": {e}')
        self._move_under(rel, new_rel)
        self.log(ActionKind.RENAME, f"{basename_of(rel)} -> {safe_name}", current_path=parent_of(rel))
        return new_rel

    # ============ copy ============

    def copy(self, path: str, destination: Optional[str] = None) -> str:
        """Copy a file or folder into ``destination`` (default: its own folder)."""
        rel = normalize_path(path)
        if not rel or not self.storage.exists(rel):
            raise NotFoundException("Source item not found for copying.")
        dest = normalize_path(destination) if destination else parent_of(rel)
        if not self.storage.is_dir(dest):
            raise NotFoundException(f'Destination folder "{dest or "/"}" not found.')

        if self.storage.is_dir(rel):
            return self._copy_folder(rel, dest)
        new_rel, _ = self._copy_file(rel, dest)
        return new_rel

    def copy_by_id(self, file_id: str, destination: Optional[str] = None) -> str:
        """Copy a managed file; returns the id of the new record."""
        new_rel = self.copy(self._path_of(file_id), destination)
        return codec.decode(basename_of(new_rel)).file_id

    def _copy_file(self, rel: str, dest: str, log: bool = True) -> Tuple[str, Optional[str]]:
        item_name = basename_of(rel)
        decoded = codec.decode(item_name)
        if decoded:
            new_id = codec.new_file_id()
            new_ms = codec.now_ms()
            new_name = codec.encode(new_ms, new_id, decoded.original_name)
        else:
            new_id = None
            new_name = self._unique_name(dest, item_name)
        new_rel = join_path(dest, new_name)

        try:
            self.storage.copy_file(rel, new_rel)
            size = self.storage.stat(new_rel).size
        except OSError as e:
            logger.exception(f"Error copying {rel}")
            raise StorageException(f'Error copying file "{item_name}": {e}')

        if decoded:
            self.metadata.upsert(
                new_id,
                original_name=decoded.original_name,
                uploaded_at=from_millis(new_ms),
                size=size,
                type=classify(decoded.original_name),
                path=new_rel,
                downloads=0,
                last_accessed=None,
                last_modified=utcnow(),
            )
        if log:
            label = f"{item_name} to {new_name}" + ("" if decoded else " (unmanaged)")
            self.log(ActionKind.COPY, label, new_id, dest)
        return new_rel, new_id

    def _copy_folder(self, rel: str, dest: str) -> str:
        if dest == rel or dest.startswith(rel + "/"):
            raise ValidationException("A folder cannot be copied into itself.")
        new_name = self._unique_name(dest, basename_of(rel))
        new_rel = join_path(dest, new_name)
        try:
            with self.metadata.deferred():
                self._copy_tree(rel, new_rel)
        except OSError as e:
            logger.exception(f"Error copying folder {rel}")
            raise StorageException(f'Error copying folder "{basename_of(rel)}": {e}')
        self.log(ActionKind.COPY_FOLDER, f"{basename_of(rel)} to {new_name}", current_path=dest)
        return new_rel

    def _copy_tree(self, src: str, dst: str):
        self.storage.make_dir(dst)
        for entry in self.storage.list_dir(src):
            child = join_path(src, entry.name)
            if entry.is_dir:
                self._copy_tree(child, join_path(dst, entry.name))
            else:
                # managed files get a fresh identity so ids stay unique
                self._copy_file(child, dst, log=False)

    # ============ reporting ============

    def history(self, action: Optional[ActionKind] = None, limit: Optional[int] = None) -> List[ActivityRecord]:
        return self.activity.list(action, limit or self.settings.history_page_size)

    def admin_summary(self) -> dict:
        records = self.metadata.all()
        breakdown = {}
        for record in records:
            breakdown[record.type] = breakdown.get(record.type, 0) + 1
        popular = sorted(records, key=lambda r: r.downloads, reverse=True)[:5]
        return {
            "total_files": len(records),
            "total_storage_used": format_bytes(sum(r.size for r in records)),
            "active_connections": self.ctx.active_connections,
            "max_file_size": format_bytes(self.settings.max_file_size),
            "max_files_per_upload": self.settings.max_files,
            "allowed_file_types": ", ".join(self.settings.allowed_extensions),
            "type_breakdown": sorted(breakdown.items(), key=lambda item: item[0].value),
            "popular_files": popular,
            "recent_activity": self.activity.list(limit=10),
        }
