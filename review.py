from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

import db
from errors import NotFoundError, ReviewFinished
from grading import Grade, grade_answer
from models import Card, Collection, Outcome, utc_now
from srs import apply_outcome, due_queue, make_review_outcome

logger = logging.getLogger(__name__)


@dataclass
class SessionTally:
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    promoted: int = 0
    demoted: int = 0

    @property
    def answered(self) -> int:
        return self.correct + self.incorrect


class ReviewSession:
    """Walks the due cards of one collection, persisting every answer.

    Answers already given stand if the session is abandoned; the card on
    display at that point is left as it was.
    """

    def __init__(self, collection_id: str, now: Optional[datetime] = None):
        self.collection: Collection = db.get_collection(collection_id)
        cards = db.list_cards_for_collection(collection_id)
        self.queue: List[Card] = due_queue(cards, self.collection.box_intervals,
                                           now or utc_now())
        self.position = 0
        self.abandoned = False
        self.tally = SessionTally(total=len(self.queue))
        logger.info("Review of %s started with %d due cards",
                    self.collection.name, len(self.queue))

    @property
    def finished(self) -> bool:
        return self.abandoned or self.position >= len(self.queue)

    @property
    def current(self) -> Optional[Card]:
        return None if self.finished else self.queue[self.position]

    @property
    def remaining(self) -> int:
        return 0 if self.finished else len(self.queue) - self.position

    def _load_current(self) -> Card:
        """Stored state of the card on display; a deleted card is skipped."""
        if self.finished:
            raise ReviewFinished("No card to answer, the review is over")
        card_id = self.queue[self.position].id
        try:
            return db.get_card(card_id)
        except NotFoundError:
            logger.warning("Card %s was deleted during review, skipping it", card_id)
            self.position += 1
            self.tally.total -= 1
            raise

    def answer(self, outcome: Outcome, now: Optional[datetime] = None) -> Card:
        outcome = Outcome(outcome)
        now = now or utc_now()
        # the stored card may have been edited since the queue was built
        before = self._load_current()
        after = apply_outcome(before, outcome, now)
        db.record_review(after, make_review_outcome(before, after, outcome, now))

        if outcome is Outcome.CORRECT:
            self.tally.correct += 1
        else:
            self.tally.incorrect += 1
        if after.box_level > before.box_level:
            self.tally.promoted += 1
        elif after.box_level < before.box_level:
            self.tally.demoted += 1
        self.position += 1
        return after

    def answer_text(self, text: str, now: Optional[datetime] = None) -> Tuple[Card, Grade]:
        grade = grade_answer(text, self._load_current())
        return self.answer(grade.outcome, now=now), grade

    def abandon(self) -> None:
        if not self.finished:
            logger.info("Review of %s abandoned after %d of %d cards",
                        self.collection.name, self.tally.answered, self.tally.total)
        self.abandoned = True
