import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import db
from models import Card

T0 = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path, monkeypatch):
    """Fresh sqlite database for one test."""
    monkeypatch.setattr(db, "DB_PATH", tmp_path / "leitner-test.db")
    db.init_db()
    return db


def make_card(box_level=1, last_reviewed=None, card_id="c1", created_at=T0,
              collection_id="deck", front="hola", back="hello"):
    return Card(id=card_id, front=front, back=back, box_level=box_level,
                last_reviewed=last_reviewed, created_at=created_at,
                collection_id=collection_id)
