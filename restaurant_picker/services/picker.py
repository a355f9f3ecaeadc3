"""Picker workflows: the record store and pick sessions wired to Slack messages.

Each method handles one inbound request to completion. A failed external
write raises :class:`ExternalCallError` and stops the workflow, so later
steps never run on an assumed success. Nothing is retried here.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from restaurant_picker.blocks.picker import NAME_BLOCK, WEIGHT_BLOCK, help_message, pick_message, welcome_message
from restaurant_picker.config import Settings
from restaurant_picker.errors import (
    ConflictError,
    ExternalCallError,
    InvalidInputError,
    NotFoundError,
    UnknownEventError,
)
from restaurant_picker.models.events import (
    AddRestaurant,
    DrawRequested,
    EditRestaurant,
    EndRequested,
    HelpRequested,
    RemoveRestaurant,
    RevealNextRequested,
    VoteCast,
)
from restaurant_picker.models.records import ConversationRecord, Restaurant, results_order
from restaurant_picker.services.sampler import WeightedSampler
from restaurant_picker.state.pick_session import Choice, PickSession
from restaurant_picker.storage.codec import now_ms
from restaurant_picker.storage.record_store import RecordStore, StoredRecord

log = logging.getLogger(__name__)

NAME_MIN, NAME_MAX = 2, 30
WEIGHT_MIN, WEIGHT_MAX = 0, 99


class MessagePort(Protocol):
    def post_message(self, channel: str, text: str, blocks: List[Dict], metadata: Optional[Dict] = None) -> str: ...

    def update_message(self, channel: str, ts: str, text: str, blocks: List[Dict], metadata: Optional[Dict] = None) -> None: ...

    def fetch_message_by_timestamp(self, channel: str, ts: str) -> Optional[Dict[str, Any]]: ...

    def post_ephemeral(self, channel: str, user: str, text: str, blocks: Optional[List[Dict]] = None) -> None: ...


class VoteStatus(Enum):
    RECORDED = "recorded"
    NEEDS_CONFIRMATION = "needs_confirmation"


def clean_name(raw: Any) -> str:
    if not isinstance(raw, str):
        raise InvalidInputError("Name is invalid!", field=NAME_BLOCK)
    name = raw.strip()
    if not NAME_MIN <= len(name) <= NAME_MAX:
        raise InvalidInputError(f"Name must be {NAME_MIN}-{NAME_MAX} characters long!", field=NAME_BLOCK)
    return name


def clean_weight(raw: Any) -> int:
    try:
        if isinstance(raw, bool):
            raise ValueError(raw)
        weight = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidInputError("Please enter a positive integer!", field=WEIGHT_BLOCK)
    if not WEIGHT_MIN <= weight <= WEIGHT_MAX:
        raise InvalidInputError(f"Weight must be between {WEIGHT_MIN} and {WEIGHT_MAX}!", field=WEIGHT_BLOCK)
    return weight


class PickerService:
    def __init__(
        self,
        store: RecordStore,
        messages: MessagePort,
        settings: Settings,
        sampler: Optional[WeightedSampler] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.messages = messages
        self.settings = settings
        self.sampler = sampler or WeightedSampler()
        self.clock = clock

    # ===== レコード =====

    def ensure_record(self, conversation: str, silent: bool = True) -> StoredRecord:
        """Read the record, creating it on first use.

        A non-silent first creation also posts the welcome message.
        """
        stored = self.store.get(conversation)
        if stored is None:
            stored = self.store.create(conversation)
            if not silent:
                self.post_welcome(conversation)
        return stored

    def _commit(self, conversation: str, stored: StoredRecord) -> None:
        if not self.store.update(conversation, stored.handle, stored.record):
            raise ExternalCallError(f"Failed committing record of {conversation}")

    @staticmethod
    def _check_fresh(record: ConversationRecord, observed_ts: Optional[int]) -> None:
        if observed_ts is not None and record.ts > observed_ts:
            log.warning("Dirty write detected on %s: %s > %s", record.conversation_id, record.ts, observed_ts)
            raise ConflictError("Data has been modified by another user!", field=NAME_BLOCK)

    def list_restaurants(self, conversation: str) -> Tuple[ConversationRecord, List[Restaurant]]:
        """The record and its list in results order."""
        record = self.ensure_record(conversation).record
        return record, results_order(record.list)

    def add_restaurant(self, conversation: str, name: Any, weight: Any) -> Restaurant:
        name = clean_name(name)
        weight = clean_weight(weight)
        stored = self.ensure_record(conversation)
        if stored.record.find_by_name(name) is not None:
            raise InvalidInputError("This restaurant has been added!", field=NAME_BLOCK)

        restaurant = Restaurant(id=str(uuid.uuid4()), name=name, weight=weight)
        stored.record.list.append(restaurant)
        self._commit(conversation, stored)
        log.info("Added restaurant %s to %s", restaurant.id, conversation)
        return restaurant

    def edit_restaurant(
        self, conversation: str, restaurant_id: str, name: Any, weight: Any, observed_ts: Optional[int]
    ) -> Restaurant:
        name = clean_name(name)
        weight = clean_weight(weight)
        stored = self.ensure_record(conversation)
        self._check_fresh(stored.record, observed_ts)

        restaurant = stored.record.find(restaurant_id)
        if restaurant is None:
            raise ConflictError("This restaurant has been removed by another user!", field=NAME_BLOCK)
        same_name = stored.record.find_by_name(name)
        if same_name is not None and same_name.id != restaurant_id:
            raise InvalidInputError("This restaurant has been added!", field=NAME_BLOCK)

        restaurant.name = name
        restaurant.weight = weight
        self._commit(conversation, stored)
        return restaurant

    def remove_restaurant(self, conversation: str, restaurant_id: str, observed_ts: Optional[int] = None) -> bool:
        """Delete a restaurant. False when it was already gone."""
        stored = self.ensure_record(conversation)
        self._check_fresh(stored.record, observed_ts)
        restaurant = stored.record.find(restaurant_id)
        if restaurant is None:
            return False
        stored.record.list.remove(restaurant)
        self._commit(conversation, stored)
        return True

    # ===== 抽選・投票 =====

    def draw(self, conversation: str, number_of_choices: int) -> Optional[Tuple[str, PickSession]]:
        """Post a new pick message. None when there is nothing to pick from yet."""
        if number_of_choices <= 0:
            raise InvalidInputError("Usage is `pick <N>` where <N> is a positive integer.")
        stored = self.ensure_record(conversation, silent=False)
        if not stored.record.list:
            if not stored.created:
                self.post_welcome(conversation)
            return None

        session = PickSession.start(stored.record, number_of_choices, self.sampler, now=self.clock())
        text, blocks = pick_message(session)
        message_ts = self.messages.post_message(conversation, text, blocks, session.to_metadata())

        for choice in session.revealed:
            restaurant = stored.record.find(choice.id)
            if restaurant is not None:
                restaurant.shown_count += 1
        self._commit(conversation, stored)
        return message_ts, session

    def load_session(self, conversation: str, message_ts: str) -> PickSession:
        message = self.messages.fetch_message_by_timestamp(conversation, message_ts)
        if message is None:
            raise NotFoundError(f"pick message {message_ts} not found in {conversation}")
        return PickSession.from_metadata(message.get("metadata"))

    def _save_session(self, conversation: str, message_ts: str, session: PickSession) -> None:
        text, blocks = pick_message(session)
        self.messages.update_message(conversation, message_ts, text, blocks, session.to_metadata())

    def _notify(self, conversation: str, users: List[str], text: str) -> None:
        for user in users:
            try:
                self.messages.post_ephemeral(conversation, user, text)
            except ExternalCallError:
                log.warning("Could not notify %s in %s", user, conversation)

    def cast_vote(
        self,
        conversation: str,
        message_ts: str,
        user_id: str,
        restaurant_id: str,
        allow_overwrite: bool = False,
    ) -> VoteStatus:
        session = self.load_session(conversation, message_ts)
        if not session.vote(user_id, restaurant_id, allow_overwrite=allow_overwrite, now=self.clock()):
            return VoteStatus.NEEDS_CONFIRMATION
        self._save_session(conversation, message_ts, session)

        name = next(c.name for c in session.choices if c.id == restaurant_id)
        self._notify(conversation, [user_id], f"You have voted for *{name}*!")
        return VoteStatus.RECORDED

    def reveal_next(self, conversation: str, message_ts: str) -> Optional[Choice]:
        """Reveal one more choice. None when there is nothing left to add."""
        session = self.load_session(conversation, message_ts)
        choice = session.reveal_next(now=self.clock())
        if choice is None:
            return None
        self._save_session(conversation, message_ts, session)

        stored = self.store.get(conversation)
        if stored is not None:
            restaurant = stored.record.find(choice.id)
            if restaurant is not None:
                restaurant.shown_count += 1
                self._commit(conversation, stored)

        self._notify(
            conversation,
            session.voters(),
            f"A new choice *{choice.name}* has been added to the vote. You may want to change your vote!",
        )
        return choice

    def end_vote(self, conversation: str, message_ts: str, ended_by: Optional[str]) -> PickSession:
        """End the vote and credit the winners. Ending twice changes nothing."""
        session = self.load_session(conversation, message_ts)
        if not session.end(ended_by, now=self.clock()):
            log.info("Vote %s in %s already ended", message_ts, conversation)
            return session
        self._save_session(conversation, message_ts, session)

        stored = self.store.get(conversation)
        if stored is not None:
            for restaurant in stored.record.list:
                if restaurant.id in session.winners:
                    restaurant.win_count += 1
            self._commit(conversation, stored)

        self._notify(conversation, session.voters(), "The vote has ended. Check out the results!")
        return session

    # ===== ヘルプ =====

    def post_welcome(self, conversation: str) -> None:
        text, blocks = welcome_message(self.settings.command)
        self.messages.post_message(conversation, text, blocks)

    def post_help(self, conversation: str, user_id: Optional[str] = None) -> None:
        text, blocks = help_message(self.settings.command)
        if user_id is not None:
            self.messages.post_ephemeral(conversation, user_id, text, blocks)
        else:
            self.messages.post_message(conversation, text, blocks)

    # ===== ディスパッチ =====

    def dispatch(self, event: Any) -> Any:
        """Route an inbound event. Unknown kinds are rejected, never ignored."""
        if isinstance(event, HelpRequested):
            return self.post_help(event.conversation, event.user_id)
        if isinstance(event, DrawRequested):
            return self.draw(event.conversation, event.number_of_choices)
        if isinstance(event, VoteCast):
            return self.cast_vote(
                event.conversation, event.message_ts, event.user_id, event.restaurant_id, event.allow_overwrite
            )
        if isinstance(event, RevealNextRequested):
            return self.reveal_next(event.conversation, event.message_ts)
        if isinstance(event, EndRequested):
            return self.end_vote(event.conversation, event.message_ts, event.ended_by)
        if isinstance(event, AddRestaurant):
            return self.add_restaurant(event.conversation, event.name, event.weight)
        if isinstance(event, EditRestaurant):
            return self.edit_restaurant(
                event.conversation, event.restaurant_id, event.name, event.weight, event.observed_ts
            )
        if isinstance(event, RemoveRestaurant):
            return self.remove_restaurant(event.conversation, event.restaurant_id, event.observed_ts)
        log.error("Received unknown event: %r", event)
        raise UnknownEventError(f"unknown event: {event!r}")
