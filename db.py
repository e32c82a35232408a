from __future__ import annotations
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

import config
from errors import NotFoundError, StorageError
from models import BoxIntervals, Card, Collection, Outcome, ReviewOutcome
from srs import validate_intervals

logger = logging.getLogger(__name__)

DB_PATH = config.DB_PATH
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)

SCHEMA = r"""
PRAGMA journal_mode=WAL;
CREATE TABLE IF NOT EXISTS collections (
  id         TEXT PRIMARY KEY,
  name       TEXT NOT NULL,
  created_at INTEGER NOT NULL,
  box1_days  INTEGER NOT NULL,
  box2_days  INTEGER NOT NULL,
  box3_days  INTEGER NOT NULL,
  box4_days  INTEGER NOT NULL,
  box5_days  INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS cards (
  id            TEXT PRIMARY KEY,
  front         TEXT NOT NULL,
  back          TEXT NOT NULL,
  box_level     INTEGER NOT NULL DEFAULT 1,
  last_reviewed INTEGER,
  created_at    INTEGER NOT NULL,
  collection_id TEXT NOT NULL REFERENCES collections(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS review_log (
  id            TEXT PRIMARY KEY,
  card_id       TEXT NOT NULL,
  collection_id TEXT NOT NULL,
  outcome       TEXT NOT NULL,
  reviewed_at   INTEGER NOT NULL,
  from_box      INTEGER,
  to_box        INTEGER
);
CREATE INDEX IF NOT EXISTS idx_cards_collection ON cards (collection_id);
CREATE INDEX IF NOT EXISTS idx_review_log_card ON review_log (card_id);
CREATE INDEX IF NOT EXISTS idx_review_log_collection ON review_log (collection_id);
"""


def to_millis(ts: Optional[datetime]) -> Optional[int]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (ts - EPOCH) // ONE_MS


def from_millis(ms: Optional[int]) -> Optional[datetime]:
    if ms is None:
        return None
    return EPOCH + ms * ONE_MS


def connect() -> sqlite3.Connection:
    con = sqlite3.connect(DB_PATH)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys=ON")
    return con


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Connection that commits on success and maps sqlite failures to StorageError."""
    try:
        con = connect()
    except sqlite3.Error as e:
        logger.error("Failed to open database %s: %s", DB_PATH, e)
        raise StorageError(f"Failed to open database: {e}") from e
    try:
        with con:
            yield con
    except sqlite3.Error as e:
        logger.error("Database operation failed: %s", e)
        raise StorageError(str(e)) from e
    finally:
        con.close()


def init_db() -> None:
    with transaction() as con:
        con.executescript(SCHEMA)
    logger.debug("Initialised database at %s", DB_PATH)


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"],
        name=row["name"],
        created_at=from_millis(row["created_at"]),
        box_intervals=BoxIntervals(row["box1_days"], row["box2_days"], row["box3_days"],
                                   row["box4_days"], row["box5_days"]),
    )


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        front=row["front"],
        back=row["back"],
        box_level=int(row["box_level"]),
        last_reviewed=from_millis(row["last_reviewed"]),
        created_at=from_millis(row["created_at"]),
        collection_id=row["collection_id"],
    )


def _row_to_outcome(row: sqlite3.Row) -> ReviewOutcome:
    return ReviewOutcome(
        id=row["id"],
        card_id=row["card_id"],
        collection_id=row["collection_id"],
        outcome=Outcome(row["outcome"]),
        reviewed_at=from_millis(row["reviewed_at"]),
        from_box=row["from_box"],
        to_box=row["to_box"],
    )


# --- Collections ---
def save_collection(collection: Collection) -> None:
    intervals = validate_intervals(collection.box_intervals)
    with transaction() as con:
        con.execute(
            """
            INSERT INTO collections
                (id, name, created_at, box1_days, box2_days, box3_days, box4_days, box5_days)
            VALUES (?,?,?,?,?,?,?,?)
            ON CONFLICT(id) DO UPDATE SET
                name=excluded.name, box1_days=excluded.box1_days,
                box2_days=excluded.box2_days, box3_days=excluded.box3_days,
                box4_days=excluded.box4_days, box5_days=excluded.box5_days
            """,
            (collection.id, collection.name, to_millis(collection.created_at),
             *intervals.as_tuple())
        )


def get_collection(collection_id: str) -> Collection:
    with transaction() as con:
        row = con.execute("SELECT * FROM collections WHERE id=?", (collection_id,)).fetchone()
    if row is None:
        raise NotFoundError("collection", collection_id)
    return _row_to_collection(row)


def list_collections() -> List[Collection]:
    with transaction() as con:
        rows = con.execute("SELECT * FROM collections ORDER BY created_at, rowid").fetchall()
    return [_row_to_collection(r) for r in rows]


def delete_collection(collection_id: str) -> None:
    """Delete a collection together with its cards and review history."""
    with transaction() as con:
        cur = con.execute("DELETE FROM collections WHERE id=?", (collection_id,))
        if cur.rowcount == 0:
            raise NotFoundError("collection", collection_id)
        con.execute("DELETE FROM cards WHERE collection_id=?", (collection_id,))
        con.execute("DELETE FROM review_log WHERE collection_id=?", (collection_id,))


# --- Cards ---
def save_card(card: Card) -> None:
    with transaction() as con:
        owner = con.execute("SELECT 1 FROM collections WHERE id=?",
                            (card.collection_id,)).fetchone()
        if owner is None:
            raise NotFoundError("collection", card.collection_id)
        con.execute(
            """
            INSERT INTO cards
                (id, front, back, box_level, last_reviewed, created_at, collection_id)
            VALUES (?,?,?,?,?,?,?)
            ON CONFLICT(id) DO UPDATE SET
                front=excluded.front, back=excluded.back, box_level=excluded.box_level,
                last_reviewed=excluded.last_reviewed, collection_id=excluded.collection_id
            """,
            (card.id, card.front, card.back, card.box_level, to_millis(card.last_reviewed),
             to_millis(card.created_at), card.collection_id)
        )


def get_card(card_id: str) -> Card:
    with transaction() as con:
        row = con.execute("SELECT * FROM cards WHERE id=?", (card_id,)).fetchone()
    if row is None:
        raise NotFoundError("card", card_id)
    return _row_to_card(row)


def list_cards_for_collection(collection_id: str) -> List[Card]:
    with transaction() as con:
        rows = con.execute(
            "SELECT * FROM cards WHERE collection_id=? ORDER BY created_at, rowid",
            (collection_id,)
        ).fetchall()
    return [_row_to_card(r) for r in rows]


def list_cards() -> List[Card]:
    with transaction() as con:
        rows = con.execute("SELECT * FROM cards ORDER BY created_at, rowid").fetchall()
    return [_row_to_card(r) for r in rows]


def delete_card(card_id: str) -> None:
    with transaction() as con:
        cur = con.execute("DELETE FROM cards WHERE id=?", (card_id,))
        if cur.rowcount == 0:
            raise NotFoundError("card", card_id)
        con.execute("DELETE FROM review_log WHERE card_id=?", (card_id,))


# --- Review history ---
def log_outcome(outcome: ReviewOutcome) -> None:
    with transaction() as con:
        con.execute(
            """
            INSERT INTO review_log
                (id, card_id, collection_id, outcome, reviewed_at, from_box, to_box)
            VALUES (?,?,?,?,?,?,?)
            """,
            (outcome.id, outcome.card_id, outcome.collection_id, outcome.outcome.value,
             to_millis(outcome.reviewed_at), outcome.from_box, outcome.to_box)
        )


def list_outcomes_for_collection(collection_id: str) -> List[ReviewOutcome]:
    with transaction() as con:
        rows = con.execute(
            "SELECT * FROM review_log WHERE collection_id=? ORDER BY reviewed_at, rowid",
            (collection_id,)
        ).fetchall()
    return [_row_to_outcome(r) for r in rows]


def list_outcomes_for_card(card_id: str) -> List[ReviewOutcome]:
    with transaction() as con:
        rows = con.execute(
            "SELECT * FROM review_log WHERE card_id=? ORDER BY reviewed_at, rowid",
            (card_id,)
        ).fetchall()
    return [_row_to_outcome(r) for r in rows]


def record_review(card: Card, outcome: ReviewOutcome) -> None:
    """Save a reviewed card and its log entry together, or neither."""
    with transaction() as con:
        cur = con.execute(
            "UPDATE cards SET box_level=?, last_reviewed=? WHERE id=?",
            (card.box_level, to_millis(card.last_reviewed), card.id)
        )
        if cur.rowcount == 0:
            raise NotFoundError("card", card.id)
        con.execute(
            """
            INSERT INTO review_log
                (id, card_id, collection_id, outcome, reviewed_at, from_box, to_box)
            VALUES (?,?,?,?,?,?,?)
            """,
            (outcome.id, outcome.card_id, outcome.collection_id, outcome.outcome.value,
             to_millis(outcome.reviewed_at), outcome.from_box, outcome.to_box)
        )
