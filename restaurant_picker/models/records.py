"""Dataclasses for the per-conversation restaurant record."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass
class Restaurant:
    """One entry of a conversation's restaurant list."""

    id: str
    name: str
    weight: int = 1
    shown_count: int = 0
    win_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Restaurant":
        return cls(
            id=raw["id"],
            name=raw["name"],
            weight=raw.get("weight", 1),
            shown_count=_count(raw.get("shown_count")),
            win_count=_count(raw.get("win_count")),
        )


@dataclass
class ConversationRecord:
    """Durable state of one conversation, stored inside its bookmark link."""

    conversation_id: str
    ts: int
    list: List[Restaurant] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "ts": self.ts,
            "list": [r.to_dict() for r in self.list],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConversationRecord":
        return cls(
            conversation_id=raw["conversation_id"],
            ts=raw["ts"],
            list=[Restaurant.from_dict(r) for r in raw.get("list") or []],
        )

    def find(self, restaurant_id: str) -> Optional[Restaurant]:
        return next((r for r in self.list if r.id == restaurant_id), None)

    def find_by_name(self, name: str) -> Optional[Restaurant]:
        return next((r for r in self.list if r.name == name), None)


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


def results_order(restaurants: List[Restaurant]) -> List[Restaurant]:
    """Sort for the results view: most wins, then least shown, then heaviest."""
    return sorted(restaurants, key=lambda r: (-r.win_count, r.shown_count, -_weight_key(r.weight)))


def win_rate(restaurant: Restaurant) -> int:
    """Win percentage rounded to an integer, 0 when never shown."""
    if restaurant.shown_count <= 0:
        return 0
    return round(restaurant.win_count / restaurant.shown_count * 100)


def _weight_key(weight: Any) -> int:
    if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not math.isfinite(weight):
        return 0
    return int(weight)
