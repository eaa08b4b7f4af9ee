"""
Database models for LitDraft local storage.

SCHEMA OVERVIEW
===============================================================================

TABLE: key_value_entries - Local key-value storage for session state
-------------------------------------------------------------------------------
key               VARCHAR       PRIMARY KEY        "savedResults" | "themes"
value             TEXT          NOT NULL           JSON-encoded payload
updated_at        TIMESTAMP     DEFAULT NOW()      Last write

No schema versioning: payload shape is owned by the code that writes it.
"""
from sqlalchemy import Column, String, Text, DateTime, func
from .database import Base


class KeyValueEntry(Base):
    """One stored value, keyed by a fixed name."""
    __tablename__ = "key_value_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<KeyValueEntry(key={self.key}, bytes={len(self.value or '')})>"
