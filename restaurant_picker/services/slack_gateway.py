"""Thin wrapper over the Slack Web API for bookmarks and messages.

Every failure surfaces as :class:`ExternalCallError` carrying the response
body; nothing here retries.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from restaurant_picker.errors import ExternalCallError

log = logging.getLogger(__name__)


class SlackGateway:
    def __init__(self, client: WebClient) -> None:
        self.client = client

    def _call(self, what: str, method, **kwargs) -> Dict[str, Any]:
        try:
            resp = method(**kwargs)
        except SlackApiError as e:
            body = getattr(e.response, "data", None)
            log.error("Failed %s: %s", what, body)
            raise ExternalCallError(f"Failed {what}", response=body) from e
        data = resp.data if hasattr(resp, "data") else resp
        if not isinstance(data, dict) or data.get("ok") is not True:
            log.error("Failed %s: %s", what, data)
            raise ExternalCallError(f"Failed {what}", response=data)
        return data

    # ---- bookmarks ----

    def list_bookmarks(self, conversation: str) -> List[Dict[str, Any]]:
        data = self._call("retrieving conversation bookmarks", self.client.bookmarks_list, channel_id=conversation)
        bookmarks = data.get("bookmarks")
        if not isinstance(bookmarks, list):
            raise ExternalCallError("Failed parsing conversation bookmarks", response=data)
        return bookmarks

    def add_bookmark(self, conversation: str, title: str, link: str) -> Dict[str, Any]:
        data = self._call(
            "adding bookmark to conversation",
            self.client.bookmarks_add,
            channel_id=conversation, title=title, type="link", link=link,
        )
        return data.get("bookmark") or {}

    def edit_bookmark(self, conversation: str, bookmark_id: str, link: str) -> Dict[str, Any]:
        data = self._call(
            "updating conversation bookmark",
            self.client.bookmarks_edit,
            channel_id=conversation, bookmark_id=bookmark_id, link=link,
        )
        return data.get("bookmark") or {}

    # ---- messages ----

    def post_message(self, channel: str, text: str, blocks: List[Dict], metadata: Optional[Dict] = None) -> str:
        """Post to ``channel`` and return the new message's ``ts``."""
        kwargs: Dict[str, Any] = {"channel": channel, "text": text, "blocks": blocks}
        if metadata is not None:
            kwargs["metadata"] = metadata
        data = self._call("sending message to conversation", self.client.chat_postMessage, **kwargs)
        return data["ts"]

    def update_message(self, channel: str, ts: str, text: str, blocks: List[Dict], metadata: Optional[Dict] = None) -> None:
        kwargs: Dict[str, Any] = {"channel": channel, "ts": ts, "text": text, "blocks": blocks}
        if metadata is not None:
            kwargs["metadata"] = metadata
        self._call("updating message in conversation", self.client.chat_update, **kwargs)

    def fetch_message_by_timestamp(self, channel: str, ts: str) -> Optional[Dict[str, Any]]:
        data = self._call(
            "retrieving conversation message",
            self.client.conversations_history,
            channel=channel, oldest=ts, inclusive=True, limit=1, include_all_metadata=True,
        )
        messages = data.get("messages") or []
        if len(messages) != 1 or messages[0].get("ts") != ts:
            return None
        return messages[0]

    def post_ephemeral(self, channel: str, user: str, text: str, blocks: Optional[List[Dict]] = None) -> None:
        kwargs: Dict[str, Any] = {"channel": channel, "user": user, "text": text}
        if blocks is not None:
            kwargs["blocks"] = blocks
        self._call(f"sending ephemeral (user: {user}) message", self.client.chat_postEphemeral, **kwargs)
