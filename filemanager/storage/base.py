"""
Storage backend interface.

Paths handed to a backend are always relative to the storage root and use
``/`` as separator; ``""`` is the root itself.
"""

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Iterator, List, Optional

from filemanager.core.errors import ValidationException


@dataclass
class StorageEntry:
    name: str
    is_dir: bool


@dataclass
class StorageStat:
    size: int
    modified: datetime
    created: datetime


def normalize_path(path: Optional[str]) -> str:
    """Collapse ``.``/``..`` segments; reject anything that escapes the root."""
    if not path:
        return ""
    cleaned = path.replace("\\", "/").strip()
    if "\x00" in cleaned or not _within_root(cleaned):
        raise ValidationException("Invalid path provided.")
    return posixpath.normpath("/" + cleaned).strip("/")


def _within_root(path: str) -> bool:
    depth = 0
    for part in path.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            depth -= 1
            if depth < 0:
                return False
        else:
            depth += 1
    return True


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def parent_of(path: str) -> str:
    return posixpath.dirname(path.strip("/"))


def basename_of(path: str) -> str:
    return posixpath.basename(path.strip("/"))


class Storage(ABC):
    """Operations every backend provides; errors surface as OSError."""

    @abstractmethod
    def list_dir(self, path: str) -> List[StorageEntry]:
        """Non-recursive listing. Raises FileNotFoundError for a missing folder."""

    @abstractmethod
    def stat(self, path: str) -> StorageStat: ...

    @abstractmethod
    def exists(self, path: str) -> bool: ...

    @abstractmethod
    def is_dir(self, path: str) -> bool: ...

    @abstractmethod
    def is_file(self, path: str) -> bool: ...

    @abstractmethod
    def make_dir(self, path: str) -> None: ...

    @abstractmethod
    def save_stream(self, path: str, stream: BinaryIO, content_type: Optional[str] = None) -> int:
        """Write ``stream`` to ``path`` and return the number of bytes stored."""

    @abstractmethod
    def read_text(self, path: str) -> str: ...

    @abstractmethod
    def write_text(self, path: str, content: str) -> None: ...

    @abstractmethod
    def open_stream(self, path: str) -> Iterator[bytes]: ...

    def local_path(self, path: str) -> Optional[str]:
        """Filesystem path for ``path`` when the backend has one."""
        return None

    @abstractmethod
    def delete_file(self, path: str) -> None: ...

    @abstractmethod
    def delete_dir(self, path: str) -> None:
        """Remove a folder and everything below it."""

    @abstractmethod
    def rename(self, src: str, dst: str) -> None: ...

    @abstractmethod
    def copy_file(self, src: str, dst: str) -> None: ...
