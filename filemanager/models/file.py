# filemanager/models/file.py
from sqlalchemy import Column, DateTime, Integer, String

from filemanager.models.database import Base


class FileMeta(Base):
    __tablename__ = "files"

    id = Column(String(64), primary_key=True, index=True)  # file id from the encoded name
    original_name = Column(String, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    type = Column(String(32), nullable=False)
    path = Column(String, nullable=False)              # relative to the storage root
    downloads = Column(Integer, nullable=False, default=0)
    last_accessed = Column(DateTime(timezone=True), nullable=True)
    last_modified = Column(DateTime(timezone=True), nullable=False)
