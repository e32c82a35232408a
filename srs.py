from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timedelta
from numbers import Integral
from typing import Iterable, List, Optional, Sequence, Union

from errors import ValidationError
from models import (MAX_BOX, MIN_BOX, BoxIntervals, Card, Outcome, ReviewOutcome,
                    new_id)

ONE_DAY = timedelta(days=1)

IntervalsLike = Union[BoxIntervals, Sequence[int]]


def validate_intervals(intervals: IntervalsLike) -> BoxIntervals:
    """Check a policy is five positive integers, strictly increasing by box.

    Returns the policy as ``BoxIntervals``; raises ``ValidationError`` naming
    the first constraint that fails.
    """
    if not isinstance(intervals, BoxIntervals):
        intervals = BoxIntervals.from_sequence(intervals)
    values = intervals.as_tuple()
    for box, days in enumerate(values, start=MIN_BOX):
        if isinstance(days, bool) or not isinstance(days, Integral):
            raise ValidationError(
                f"Box {box} interval must be a whole number of days, got {days!r}",
                constraint="integer", box=box)
        if days <= 0:
            raise ValidationError(
                f"Box {box} interval must be positive, got {days}",
                constraint="positive", box=box)
    for box in range(MIN_BOX + 1, MAX_BOX + 1):
        if values[box - 1] <= values[box - 2]:
            raise ValidationError(
                f"Box {box} interval ({values[box - 1]}) must be longer than "
                f"box {box - 1} ({values[box - 2]})",
                constraint="increasing", box=box)
    return intervals


def interval_days_for(intervals: BoxIntervals, box_level: int) -> int:
    if not MIN_BOX <= box_level <= MAX_BOX:
        raise ValueError(f"box level must be in {MIN_BOX}..{MAX_BOX}, got {box_level}")
    return intervals.as_tuple()[box_level - 1]


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Elapsed whole days, truncated toward zero."""
    elapsed = later - earlier
    if elapsed >= timedelta(0):
        return elapsed // ONE_DAY
    return -((-elapsed) // ONE_DAY)


def is_due(card: Card, intervals: BoxIntervals, now: datetime) -> bool:
    if card.last_reviewed is None:
        return True
    # corrupt level: show the card rather than hide it forever
    if not MIN_BOX <= card.box_level <= MAX_BOX:
        return True
    days_since = whole_days_between(card.last_reviewed, now)
    return days_since >= interval_days_for(intervals, card.box_level)


def due_queue(cards: Iterable[Card], intervals: BoxIntervals, now: datetime) -> List[Card]:
    """Due cards in creation order; ties keep their input order."""
    due = [card for card in cards if is_due(card, intervals, now)]
    return sorted(due, key=lambda card: card.created_at)


def next_due_at(card: Card, intervals: BoxIntervals) -> Optional[datetime]:
    """When the card becomes due, or None if it is due regardless of time."""
    if card.last_reviewed is None or not MIN_BOX <= card.box_level <= MAX_BOX:
        return None
    return card.last_reviewed + timedelta(days=interval_days_for(intervals, card.box_level))


def apply_outcome(card: Card, outcome: Outcome, now: datetime) -> Card:
    """Return the card's next state; the input card is left untouched."""
    box = max(MIN_BOX, min(MAX_BOX, card.box_level))
    if Outcome(outcome) is Outcome.CORRECT:
        new_box = min(box + 1, MAX_BOX)
    else:
        new_box = MIN_BOX
    return replace(card, box_level=new_box, last_reviewed=now)


def make_review_outcome(before: Card, after: Card, outcome: Outcome,
                        now: datetime) -> ReviewOutcome:
    return ReviewOutcome(
        id=new_id(),
        card_id=before.id,
        collection_id=before.collection_id,
        outcome=Outcome(outcome),
        reviewed_at=now,
        from_box=before.box_level,
        to_box=after.box_level,
    )
