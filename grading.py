from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from rapidfuzz import fuzz

import config
from models import Card, Outcome


@dataclass(frozen=True)
class Grade:
    outcome: Outcome
    score: float
    expected: List[str]


def expected_answers(back: str) -> List[str]:
    """Back text plus any ';'-separated alternatives, normalised."""
    answers = [a.strip().lower() for a in back.split(";")]
    return list(dict.fromkeys(a for a in answers if a))


def score_answer(answer: str, expected: List[str]) -> float:
    answer = (answer or "").strip().lower()
    return max((fuzz.ratio(answer, exp) for exp in expected), default=0.0)


def grade_answer(answer: str, card: Card, threshold: Optional[float] = None) -> Grade:
    if threshold is None:
        threshold = config.ANSWER_MATCH_THRESHOLD
    expected = expected_answers(card.back)
    score = score_answer(answer, expected)
    return Grade(outcome=Outcome.from_success(score >= threshold), score=score,
                 expected=expected)
