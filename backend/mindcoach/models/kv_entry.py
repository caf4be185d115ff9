"""Key-value entry model backing the persistent store."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime

from mindcoach.database import Base


class KVEntry(Base):
    __tablename__ = "kv_entries"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
