# filemanager/models/activity.py
from sqlalchemy import Column, DateTime, Integer, String

from filemanager.models.database import Base


class ActivityEntry(Base):
    __tablename__ = "activity"

    seq = Column(Integer, primary_key=True, autoincrement=True)  # insertion order
    action = Column(String(32), nullable=False, index=True)
    filename = Column(String, nullable=False)
    file_id = Column(String(64), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    ip = Column(String(64), nullable=False, default="unknown")
    user_agent = Column(String, nullable=False, default="unknown")
    current_path = Column(String, nullable=False, default="/")
