"""Weighted sampling without replacement."""

from __future__ import annotations

import bisect
import math
import random
from itertools import accumulate
from typing import Any, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def effective_weight(weight: Any) -> int:
    """Weight used for drawing. Non-numeric, non-finite or negative weights count as 1."""
    if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not math.isfinite(weight) or weight < 0:
        return 1
    return int(weight)


class WeightedSampler:
    """Draw ``n`` distinct items, each pick weighted by the item's ``weight``.

    A cumulative weight array is kept over the pool. Each pick chooses a
    point in ``[0, total)``, finds its bucket by binary search, and then
    removes the picked weight from every cumulative entry at or after it.
    Weight 0 items are only reached once every remaining weight is 0, at
    which point the draw continues uniformly.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def draw(self, items: Sequence[T], n: int) -> List[T]:
        m = len(items)
        k = min(max(n, 0), m)
        if k == 0:
            return []

        weights = [effective_weight(getattr(i, "weight", None)) for i in items]
        cumulative = list(accumulate(weights))
        taken = [False] * m
        out: List[T] = []

        for _ in range(k):
            total = cumulative[-1]
            if total > 0:
                idx = bisect.bisect_right(cumulative, self.rng.randrange(total))
            else:
                idx = self.rng.choice([i for i in range(m) if not taken[i]])

            taken[idx] = True
            out.append(items[idx])
            w = weights[idx]
            if w:
                weights[idx] = 0
                for j in range(idx, m):
                    cumulative[j] -= w
        return out
