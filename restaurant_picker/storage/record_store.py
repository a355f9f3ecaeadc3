"""Conversation bookmarks used as a tiny key-value store.

Each conversation owns one link bookmark titled with the app name whose URL
embeds the encoded record. There is no compare-and-swap on bookmarks, so the
only protection against lost updates is the ``ts`` check callers perform
before writing (see ``PickerService``). Two editors that both read the record
before either writes can still both pass that check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from restaurant_picker.config import Settings
from restaurant_picker.errors import ExternalCallError, ValidationError
from restaurant_picker.models.records import ConversationRecord
from restaurant_picker.storage import codec

log = logging.getLogger(__name__)


class BookmarkPort(Protocol):
    def list_bookmarks(self, conversation: str) -> List[Dict[str, Any]]: ...

    def add_bookmark(self, conversation: str, title: str, link: str) -> Dict[str, Any]: ...

    def edit_bookmark(self, conversation: str, bookmark_id: str, link: str) -> Dict[str, Any]: ...


@dataclass
class StoredRecord:
    """A decoded record plus the bookmark id needed to write it back."""

    record: ConversationRecord
    handle: str
    created: bool = False


class RecordStore:
    def __init__(
        self,
        bookmarks: BookmarkPort,
        settings: Settings,
        clock: Callable[[], int] = codec.now_ms,
    ) -> None:
        self.bookmarks = bookmarks
        self.settings = settings
        self.clock = clock

    def _find_bookmark(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        prefix = codec.link_prefix(self.settings.app_endpoint, conversation_id)
        for b in self.bookmarks.list_bookmarks(conversation_id):
            link = b.get("link")
            if (
                b.get("title") == self.settings.app_name
                and b.get("type") == "link"
                and isinstance(link, str)
                and link.startswith(prefix)
            ):
                return b
        return None

    def get(self, conversation_id: str) -> Optional[StoredRecord]:
        """Return the stored record, or None when the conversation has none yet.

        Records that fail validation are repaired in memory; the repaired
        version is persisted by the next successful :meth:`update`.
        """
        bookmark = self._find_bookmark(conversation_id)
        if bookmark is None:
            return None

        raw = codec.from_link(bookmark["link"])
        now = self.clock()
        if codec.validate(conversation_id, raw, now=now):
            record = ConversationRecord.from_dict(raw)
        else:
            log.warning("Invalid record for %s: %r", conversation_id, raw)
            try:
                record = codec.repair(conversation_id, raw, now=now)
            except ValidationError:
                log.error("Unrepairable record for %s: %r", conversation_id, raw)
                raise
        return StoredRecord(record=record, handle=bookmark["id"])

    def create(self, conversation_id: str) -> StoredRecord:
        """Persist a fresh record as a new bookmark.

        Callers must :meth:`get` first; calling this twice adds two bookmarks.
        """
        record = codec.initialize(conversation_id, now=self.clock())
        link = codec.to_link(self.settings.app_endpoint, record)
        bookmark = self.bookmarks.add_bookmark(conversation_id, self.settings.app_name, link)
        handle = (bookmark or {}).get("id")
        if not handle:
            raise ExternalCallError("bookmark was added without an id", response=bookmark)
        log.info("Created record bookmark %s for %s", handle, conversation_id)
        return StoredRecord(record=record, handle=handle, created=True)

    def update(self, conversation_id: str, handle: str, record: ConversationRecord) -> bool:
        """Stamp ``record.ts`` and overwrite the bookmark. False means nothing was committed."""
        record.ts = max(self.clock(), record.ts)
        link = codec.to_link(self.settings.app_endpoint, record)
        try:
            self.bookmarks.edit_bookmark(conversation_id, handle, link)
        except ExternalCallError as e:
            log.error("Failed updating record bookmark for %s: %s", conversation_id, e.response)
            return False
        return True
