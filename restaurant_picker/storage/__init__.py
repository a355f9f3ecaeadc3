"""Storage package: record codec and bookmark-backed record store."""

from .codec import (
    initialize,
    validate,
    repair,
    encode,
    decode,
)
from .record_store import RecordStore, StoredRecord

__all__ = [
    "initialize",
    "validate",
    "repair",
    "encode",
    "decode",
    "RecordStore",
    "StoredRecord",
]
