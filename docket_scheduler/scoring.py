"""
Heuristic Scoring for alternative slots.

When a booking request conflicts, the caller gets a ranked list of other
slots. Every slot offered is already conflict-free; this module only
decides which ones are the most useful to offer first (0.0 - 100.0).
"""

from datetime import timedelta
from typing import List, Sequence

from docket_models import TimeInterval


class SlotScorer:
    """
    Ranks free slots against the interval the caller originally asked for.
    """

    def __init__(self, search_horizon: timedelta = timedelta(days=7)):
        self.search_horizon = search_horizon

    def calculate_score(
        self,
        slot: TimeInterval,
        requested: TimeInterval,
        busy: Sequence[TimeInterval]
    ) -> float:
        """
        Master scoring function. Returns 0-100.
        """
        score = 30.0  # Base score

        # 1. Proximity to the requested start (+0 to +50)
        score += self._score_proximity(slot, requested)

        # 2. Same calendar day as requested (+10)
        if slot.start.date() == requested.start.date():
            score += 10.0

        # 3. Breathing room around the slot (-10 to +10)
        score += self._score_buffer_zones(slot, busy)

        return max(0.0, min(100.0, score))

    def rank(
        self,
        slots: Sequence[TimeInterval],
        requested: TimeInterval,
        busy: Sequence[TimeInterval]
    ) -> List[TimeInterval]:
        """Best first; ties go to the earlier slot."""
        scored = [(self.calculate_score(s, requested, busy), s) for s in slots]
        scored.sort(key=lambda x: (-x[0], x[1].start))
        return [s for _, s in scored]

    def _score_proximity(self, slot: TimeInterval, requested: TimeInterval) -> float:
        """Linear decay: 50 points at the requested start, 0 at the edge of the search horizon."""
        distance = abs(slot.start - requested.start)
        horizon = self.search_horizon.total_seconds()
        if horizon <= 0:
            return 0.0
        closeness = max(0.0, 1.0 - distance.total_seconds() / horizon)
        return closeness * 50.0

    def _score_buffer_zones(self, slot: TimeInterval, busy: Sequence[TimeInterval]) -> float:
        """
        Scores the gap to the nearest busy neighbour.

        - 0-14 mins gap:   Penalty (a hearing that runs late cascades).
        - 15-45 mins gap:  Reward (time to travel between courtrooms).
        - 46-90 mins gap:  Small reward.
        - 90+ mins gap:    Neutral.
        """
        same_day = [b for b in busy if b.start.date() == slot.start.date() or b.end.date() == slot.start.date()]
        if not same_day:
            return 10.0  # Nothing else that day

        gaps = []
        for b in same_day:
            if b.end <= slot.start:
                gaps.append((slot.start - b.end).total_seconds() / 60)
            elif slot.end <= b.start:
                gaps.append((b.start - slot.end).total_seconds() / 60)

        if not gaps:
            return 0.0
        gap = min(gaps)

        if gap < 15:
            # Linear penalty: 0 min = -10 pts, 14 min = ~0 pts
            return -10.0 + (gap / 1.5)
        elif gap <= 45:
            return 10.0
        elif gap <= 90:
            return 5.0
        else:
            return 0.0
