"""
Per-box and per-collection statistics.

Correct/incorrect totals come from the review log whenever one is supplied.
Inferring them from the current box level is kept only as a fallback for
callers without history: a card promoted and then demoted loses its
promotion under that scheme.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import db
from models import MAX_BOX, MIN_BOX, BoxIntervals, Card, Outcome, ReviewOutcome
from srs import is_due

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stats:
    total: int = 0
    box_counts: Tuple[int, int, int, int, int] = (0, 0, 0, 0, 0)
    due: int = 0
    correct: int = 0
    incorrect: int = 0
    promoted: int = 0
    demoted: int = 0
    from_history: bool = False


@dataclass(frozen=True)
class BoxStats:
    box_level: int
    total: int
    correct: int
    incorrect: int
    not_answered: int


def _box_index(box_level: int) -> int:
    return max(MIN_BOX, min(MAX_BOX, box_level)) - MIN_BOX


def aggregate(cards: Sequence[Card], intervals: BoxIntervals, now: datetime,
              history: Optional[Iterable[ReviewOutcome]] = None) -> Stats:
    """Summarise a collection's cards.

    Args:
        cards: Every card of the collection.
        intervals: The collection's interval policy.
        now: Instant used for due-ness.
        history: Review log for these cards. ``None`` selects the
            box-level approximation for ``correct``/``incorrect``.
    """
    box_counts = [0] * MAX_BOX
    due = 0
    for card in cards:
        box_counts[_box_index(card.box_level)] += 1
        if is_due(card, intervals, now):
            due += 1

    if history is None:
        logger.debug("No review history given, approximating outcomes from box levels")
        correct = sum(1 for c in cards if c.box_level > 1)
        incorrect = sum(1 for c in cards if c.box_level == 1 and c.last_reviewed is not None)
        return Stats(total=len(cards), box_counts=tuple(box_counts), due=due,
                     correct=correct, incorrect=incorrect)

    card_ids = {c.id for c in cards}
    correct = incorrect = promoted = demoted = 0
    for entry in history:
        if entry.card_id not in card_ids:
            continue
        if Outcome(entry.outcome) is Outcome.CORRECT:
            correct += 1
        else:
            incorrect += 1
        if entry.from_box is not None and entry.to_box is not None:
            if entry.to_box > entry.from_box:
                promoted += 1
            elif entry.to_box < entry.from_box:
                demoted += 1
    return Stats(total=len(cards), box_counts=tuple(box_counts), due=due,
                 correct=correct, incorrect=incorrect, promoted=promoted,
                 demoted=demoted, from_history=True)


def latest_outcomes(history: Iterable[ReviewOutcome]) -> Dict[str, Outcome]:
    """Most recent outcome per card; equal timestamps resolve to the later entry."""
    latest: Dict[str, ReviewOutcome] = {}
    for entry in history:
        seen = latest.get(entry.card_id)
        if seen is None or entry.reviewed_at >= seen.reviewed_at:
            latest[entry.card_id] = entry
    return {card_id: Outcome(entry.outcome) for card_id, entry in latest.items()}


def box_breakdown(cards: Sequence[Card], history: Iterable[ReviewOutcome]) -> List[BoxStats]:
    """For each box, how the cards now in it fared on their last review."""
    last = latest_outcomes(history)
    rows = []
    for box in range(MIN_BOX, MAX_BOX + 1):
        in_box = [c for c in cards if _box_index(c.box_level) == box - MIN_BOX]
        correct = sum(1 for c in in_box if last.get(c.id) is Outcome.CORRECT)
        incorrect = sum(1 for c in in_box if last.get(c.id) is Outcome.INCORRECT)
        rows.append(BoxStats(box_level=box, total=len(in_box), correct=correct,
                             incorrect=incorrect,
                             not_answered=len(in_box) - correct - incorrect))
    return rows


def collection_stats(collection_id: str, now: datetime) -> Stats:
    collection = db.get_collection(collection_id)
    cards = db.list_cards_for_collection(collection_id)
    history = db.list_outcomes_for_collection(collection_id)
    return aggregate(cards, collection.box_intervals, now, history)


def all_collection_stats(now: datetime) -> Dict[str, Stats]:
    return {c.id: collection_stats(c.id, now) for c in db.list_collections()}
