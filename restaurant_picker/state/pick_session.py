"""State of one draw-and-vote round.

A session is carried verbatim in the metadata of the Slack message that shows
it, so every action reloads it from that message, mutates it, and writes the
whole thing back. Observable states are *voting* and *ended*; once ended the
session never changes again.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from restaurant_picker.errors import InvalidInputError, NotFoundError, SessionClosedError, ValidationError
from restaurant_picker.models.records import ConversationRecord, Restaurant
from restaurant_picker.services.sampler import WeightedSampler
from restaurant_picker.services.tally import Tally, tally
from restaurant_picker.storage.codec import now_ms

EVENT_TYPE = "restaurant_picker-pick"


@dataclass
class Vote:
    user_id: str
    ts: int


@dataclass
class Choice:
    id: str
    name: str
    weight: Any = 1
    shown_count: int = 0
    win_count: int = 0
    votes: List[Vote] = field(default_factory=list)

    @classmethod
    def from_restaurant(cls, r: Restaurant) -> "Choice":
        return cls(id=r.id, name=r.name, weight=r.weight, shown_count=r.shown_count, win_count=r.win_count)

    def has_vote_from(self, user_id: str) -> bool:
        return any(v.user_id == user_id for v in self.votes)


@dataclass
class PickSession:
    conversation: str
    choices: List[Choice]
    number_of_choices: int
    winners: List[str] = field(default_factory=list)
    is_ended: bool = False
    ended_by: Optional[str] = None
    ts: int = 0

    # ---- lifecycle ----

    @classmethod
    def start(
        cls,
        record: ConversationRecord,
        n: int,
        sampler: Optional[WeightedSampler] = None,
        now: Optional[int] = None,
    ) -> "PickSession":
        """Draw the whole list in weighted order and reveal the first ``n``.

        The revealed choices get their ``shown_count`` bumped here; bumping
        the record's copy is left to the caller.
        """
        if n <= 0:
            raise InvalidInputError("number of choices must be a positive integer")
        sampler = sampler or WeightedSampler()
        drawn = sampler.draw(record.list, len(record.list))
        session = cls(
            conversation=record.conversation_id,
            choices=[Choice.from_restaurant(r) for r in drawn],
            number_of_choices=min(n, len(drawn)),
            ts=now if now is not None else now_ms(),
        )
        for c in session.revealed:
            c.shown_count += 1
        session._retally()
        return session

    @property
    def revealed(self) -> List[Choice]:
        return self.choices[: self.number_of_choices]

    def _retally(self) -> Tally:
        result = tally(self.revealed)
        self.winners = result.winners
        return result

    def tally(self) -> Tally:
        return tally(self.revealed)

    def _ensure_open(self) -> None:
        if self.is_ended:
            raise SessionClosedError("this vote has already ended")

    def has_voted(self, user_id: str) -> bool:
        return any(c.has_vote_from(user_id) for c in self.revealed)

    def voters(self) -> List[str]:
        """Users holding a vote, in first-seen order."""
        seen: Dict[str, None] = {}
        for c in self.choices:
            for v in c.votes:
                seen.setdefault(v.user_id, None)
        return list(seen)

    def vote(self, user_id: str, restaurant_id: str, allow_overwrite: bool = False, now: Optional[int] = None) -> bool:
        """Record ``user_id``'s vote for ``restaurant_id``.

        Returns False, leaving the session untouched, when the user already
        voted and ``allow_overwrite`` is not set; the caller should ask for
        confirmation. Any earlier vote by the user is replaced.
        """
        self._ensure_open()
        target = next((c for c in self.revealed if c.id == restaurant_id), None)
        if target is None:
            raise NotFoundError(f"restaurant {restaurant_id} is not among the shown choices")
        if not allow_overwrite and self.has_voted(user_id):
            return False

        ts = now if now is not None else now_ms()
        for c in self.choices:
            c.votes = [v for v in c.votes if v.user_id != user_id]
        target.votes.append(Vote(user_id=user_id, ts=ts))
        self.ts = ts
        self._retally()
        return True

    def reveal_next(self, now: Optional[int] = None) -> Optional[Choice]:
        """Show one more drawn choice. None when every drawn choice is already shown."""
        self._ensure_open()
        if self.number_of_choices >= len(self.choices):
            return None
        choice = self.choices[self.number_of_choices]
        self.number_of_choices += 1
        choice.shown_count += 1
        self.ts = now if now is not None else now_ms()
        self._retally()
        return choice

    def end(self, ended_by: Optional[str], now: Optional[int] = None) -> bool:
        """Close the vote. Returns False if it was already closed (nothing changes)."""
        if self.is_ended:
            return False
        self.is_ended = True
        self.ended_by = ended_by
        self.ts = now if now is not None else now_ms()
        self._retally()
        return True

    # ---- message metadata ----

    def to_metadata(self) -> Dict[str, Any]:
        return {"event_type": EVENT_TYPE, "event_payload": asdict(self)}

    @classmethod
    def from_metadata(cls, metadata: Optional[Dict[str, Any]]) -> "PickSession":
        if not isinstance(metadata, dict) or metadata.get("event_type") != EVENT_TYPE:
            raise ValidationError("message carries no pick session", payload=metadata)
        p = metadata.get("event_payload") or {}
        try:
            choices = [
                Choice(
                    id=c["id"],
                    name=c["name"],
                    weight=c.get("weight", 1),
                    shown_count=c.get("shown_count") or 0,
                    win_count=c.get("win_count") or 0,
                    votes=[Vote(user_id=v["user_id"], ts=v.get("ts") or 0) for v in c.get("votes") or []],
                )
                for c in p["choices"]
            ]
            return cls(
                conversation=p["conversation"],
                choices=choices,
                number_of_choices=int(p["number_of_choices"]),
                winners=list(p.get("winners") or []),
                is_ended=bool(p.get("is_ended")),
                ended_by=p.get("ended_by"),
                ts=p.get("ts") or 0,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"malformed pick session: {e}", payload=metadata) from e
