"""SQLAlchemy ORM models."""
from sqlalchemy import Column, Integer, String, Text

from .db import Base


class StorageItem(Base):
    """Key-value blob store backing the learning snapshot."""
    __tablename__ = "storage_items"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(Text, nullable=False)
    updated_ts_utc = Column(String, nullable=False)


class CommittedCharacter(Base):
    """A finished character shown in the gallery."""
    __tablename__ = "committed_characters"

    id = Column(Integer, primary_key=True, index=True)
    canvas_id = Column(String, index=True, nullable=True)
    session_id = Column(String, index=True, nullable=False)
    character = Column(String, nullable=False)
    image_data = Column(Text, nullable=True)  # data URL rendered by the client
    ocr_text = Column(String, nullable=True)
    created_ts_utc = Column(String, nullable=False)
