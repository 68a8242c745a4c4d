# filemanager/storage/local.py
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional

from filemanager.core.errors import ValidationException
from filemanager.storage.base import Storage, StorageEntry, StorageStat

CHUNK_SIZE = 1024 * 1024


class LocalStorage(Storage):
    """Files under a directory on local disk."""

    def __init__(self, root):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _abs(self, path: str) -> Path:
        target = (self.root / path).resolve() if path else self.root
        if target != self.root and self.root not in target.parents:
            raise ValidationException("Invalid path provided.")
        return target

    def list_dir(self, path: str) -> List[StorageEntry]:
        entries = []
        with os.scandir(self._abs(path)) as it:
            for entry in it:
                entries.append(StorageEntry(name=entry.name, is_dir=entry.is_dir(follow_symlinks=False)))
        return entries

    def stat(self, path: str) -> StorageStat:
        st = self._abs(path).stat()
        # st_birthtime only exists on some platforms
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return StorageStat(
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            created=datetime.fromtimestamp(created, tz=timezone.utc),
        )

    def exists(self, path: str) -> bool:
        return self._abs(path).exists()

    def is_dir(self, path: str) -> bool:
        return self._abs(path).is_dir()

    def is_file(self, path: str) -> bool:
        return self._abs(path).is_file()

    def make_dir(self, path: str) -> None:
        self._abs(path).mkdir(parents=True, exist_ok=False)

    def save_stream(self, path: str, stream: BinaryIO, content_type: Optional[str] = None) -> int:
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as out:
            shutil.copyfileobj(stream, out, CHUNK_SIZE)
        return target.stat().st_size

    def read_text(self, path: str) -> str:
        return self._abs(path).read_text(encoding="utf-8")

    def write_text(self, path: str, content: str) -> None:
        self._abs(path).write_text(content, encoding="utf-8")

    def open_stream(self, path: str) -> Iterator[bytes]:
        with open(self._abs(path), "rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                yield chunk

    def local_path(self, path: str) -> Optional[str]:
        return str(self._abs(path))

    def delete_file(self, path: str) -> None:
        self._abs(path).unlink()

    def delete_dir(self, path: str) -> None:
        target = self._abs(path)
        if target == self.root:
            raise ValidationException("Cannot delete the storage root.")
        shutil.rmtree(target)

    def rename(self, src: str, dst: str) -> None:
        os.rename(self._abs(src), self._abs(dst))

    def copy_file(self, src: str, dst: str) -> None:
        target = self._abs(dst)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self._abs(src), target)
