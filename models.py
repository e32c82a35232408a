from __future__ import annotations
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence, Tuple

from errors import ValidationError

MIN_BOX = 1
MAX_BOX = 5


def utc_now() -> datetime:
    """Current UTC instant, truncated to the millisecond the store keeps."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def new_id() -> str:
    return uuid.uuid4().hex


class Outcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"

    @classmethod
    def from_success(cls, success: bool) -> "Outcome":
        return cls.CORRECT if success else cls.INCORRECT


@dataclass(frozen=True)
class BoxIntervals:
    """Days a card must wait in each box before it is due again."""
    box1_days: int
    box2_days: int
    box3_days: int
    box4_days: int
    box5_days: int

    def as_tuple(self) -> Tuple[int, int, int, int, int]:
        return (self.box1_days, self.box2_days, self.box3_days,
                self.box4_days, self.box5_days)

    @classmethod
    def from_sequence(cls, values: Sequence[int]) -> "BoxIntervals":
        values = list(values)
        if len(values) != MAX_BOX:
            raise ValidationError(
                f"Expected {MAX_BOX} box intervals, got {len(values)}", constraint="count")
        return cls(*values)


DEFAULT_BOX_INTERVALS = BoxIntervals(box1_days=1, box2_days=3, box3_days=7,
                                     box4_days=14, box5_days=30)


@dataclass(frozen=True)
class Card:
    id: str
    front: str
    back: str
    box_level: int
    last_reviewed: Optional[datetime]
    created_at: datetime
    collection_id: str

    @property
    def is_new(self) -> bool:
        return self.last_reviewed is None


@dataclass(frozen=True)
class Collection:
    id: str
    name: str
    created_at: datetime
    box_intervals: BoxIntervals = DEFAULT_BOX_INTERVALS


@dataclass(frozen=True)
class ReviewOutcome:
    """One logged review answer, kept for statistics."""
    id: str
    card_id: str
    collection_id: str
    outcome: Outcome
    reviewed_at: datetime
    from_box: Optional[int] = None
    to_box: Optional[int] = None
