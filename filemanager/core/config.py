# filemanager/core/config.py
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_EXTENSIONS = [
    "jpeg", "jpg", "png", "gif", "webp", "bmp", "ico",
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    "txt", "csv", "json", "xml", "md", "log",
    "js", "html", "css", "php", "py", "c", "cpp", "java", "sh",
    "zip", "tar", "gz", "rar", "7z",
    "mp3", "wav", "ogg", "flac",
    "mp4", "mov", "avi", "webm", "mkv",
]


class Settings(BaseSettings):
    app_name: str = "Mini File Manager"

    # Storage
    storage_backend: Literal["local", "s3"] = "local"
    upload_dir: str = "uploads"

    # Only read when storage_backend == "s3"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: Optional[str] = None
    aws_s3_bucket_name: Optional[str] = None

    # Metadata / activity persistence
    persist: bool = True
    metadata_backend: Literal["json", "sqlite"] = "json"
    data_dir: str = "."
    metadata_file: str = "file_metadata.json"
    history_file: str = "activity_history.json"
    database_url: Optional[str] = None

    # Upload limits
    max_file_size: int = 500 * 1024 * 1024  # 500MB
    max_files: int = 50
    allowed_extensions: list[str] = DEFAULT_ALLOWED_EXTENSIONS

    # Activity log
    history_limit: int = 1000
    history_page_size: int = 200

    default_sort: Literal["name", "size", "uploaded", "modified", "downloads"] = "name"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FILEMANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def metadata_path(self) -> Path:
        return Path(self.data_dir) / self.metadata_file

    @property
    def history_path(self) -> Path:
        return Path(self.data_dir) / self.history_file

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{Path(self.data_dir).resolve() / 'filemanager.db'}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
