"""Vote counting for a pick session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence


@dataclass(frozen=True)
class Tally:
    total_votes: int
    max_votes: int
    winners: List[str] = field(default_factory=list)


def tally(choices: Sequence) -> Tally:
    """Count votes over the revealed ``choices``.

    Every choice with the top count wins, so a tie yields several winners and
    a vote with no ballots at all makes every revealed choice a winner.
    """
    counts = [len(c.votes) for c in choices]
    max_votes = max(counts, default=0)
    return Tally(
        total_votes=sum(counts),
        max_votes=max_votes,
        winners=[c.id for c, n in zip(choices, counts) if n == max_votes],
    )
