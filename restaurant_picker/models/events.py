"""Inbound events the picker reacts to, one dataclass per kind."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from restaurant_picker.errors import InvalidInputError


@dataclass(frozen=True)
class HelpRequested:
    conversation: str
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ListRequested:
    conversation: str
    trigger_id: str


@dataclass(frozen=True)
class NewRestaurantRequested:
    conversation: str
    trigger_id: str


@dataclass(frozen=True)
class DrawRequested:
    conversation: str
    number_of_choices: int


@dataclass(frozen=True)
class VoteCast:
    conversation: str
    message_ts: str
    user_id: str
    restaurant_id: str
    allow_overwrite: bool = False


@dataclass(frozen=True)
class RevealNextRequested:
    conversation: str
    message_ts: str
    user_id: Optional[str] = None


@dataclass(frozen=True)
class EndRequested:
    conversation: str
    message_ts: str
    ended_by: Optional[str]


@dataclass(frozen=True)
class AddRestaurant:
    conversation: str
    name: Any
    weight: Any


@dataclass(frozen=True)
class EditRestaurant:
    conversation: str
    restaurant_id: str
    name: Any
    weight: Any
    observed_ts: int


@dataclass(frozen=True)
class RemoveRestaurant:
    conversation: str
    restaurant_id: str
    observed_ts: Optional[int] = None


@dataclass(frozen=True)
class UnknownEvent:
    kind: str
    payload: Dict[str, Any]


PickerEvent = Union[
    HelpRequested,
    ListRequested,
    NewRestaurantRequested,
    DrawRequested,
    VoteCast,
    RevealNextRequested,
    EndRequested,
    AddRestaurant,
    EditRestaurant,
    RemoveRestaurant,
    UnknownEvent,
]


def parse_command(text: str, channel_id: str, user_id: str, trigger_id: str) -> PickerEvent:
    """Turn ``/restaurant_picker`` text into an event.

    ``pick`` needs a positive integer argument; unrecognised words become
    :class:`UnknownEvent` so the dispatcher can reject them.
    """
    parts = (text or "").strip().split(None, 1)
    action = parts[0].lower() if parts else "help"
    args = parts[1].strip() if len(parts) > 1 else ""

    if action == "help":
        return HelpRequested(conversation=channel_id, user_id=user_id)
    if action == "list":
        return ListRequested(conversation=channel_id, trigger_id=trigger_id)
    if action == "new":
        return NewRestaurantRequested(conversation=channel_id, trigger_id=trigger_id)
    if action == "pick":
        try:
            n = int(args.split()[0]) if args else 0
        except ValueError:
            n = 0
        if n <= 0:
            raise InvalidInputError("Usage is `pick <N>` where <N> is a positive integer.")
        return DrawRequested(conversation=channel_id, number_of_choices=n)
    return UnknownEvent(kind=action, payload={"text": text, "channel_id": channel_id, "user_id": user_id})
