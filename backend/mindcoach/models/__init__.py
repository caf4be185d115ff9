"""SQLAlchemy ORM models."""

from mindcoach.models.kv_entry import KVEntry

__all__ = [
    "KVEntry",
]
