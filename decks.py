"""
Collection and card management: the add, edit, configure and delete flows.

Cards only change box level or review time through ``review``; the edit
flow here touches front and back text only.
"""
from __future__ import annotations
import csv
import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional, TextIO

import db
from errors import ValidationError
from models import (DEFAULT_BOX_INTERVALS, MIN_BOX, Card, Collection, new_id,
                    utc_now)
from srs import IntervalsLike, validate_intervals

logger = logging.getLogger(__name__)


def _require_text(value: str, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} must not be empty", constraint="empty")
    return value


# --- Collections ---
def create_collection(name: str, intervals: Optional[IntervalsLike] = None,
                      now: Optional[datetime] = None) -> Collection:
    collection = Collection(
        id=new_id(),
        name=_require_text(name, "Collection name"),
        created_at=now or utc_now(),
        box_intervals=validate_intervals(intervals) if intervals is not None
        else DEFAULT_BOX_INTERVALS,
    )
    db.save_collection(collection)
    logger.info("Created collection %s (%s)", collection.name, collection.id)
    return collection


def rename_collection(collection_id: str, name: str) -> Collection:
    collection = replace(db.get_collection(collection_id),
                         name=_require_text(name, "Collection name"))
    db.save_collection(collection)
    return collection


def set_box_intervals(collection_id: str, intervals: IntervalsLike) -> Collection:
    """Replace a collection's interval policy; an invalid policy is never saved."""
    checked = validate_intervals(intervals)
    collection = replace(db.get_collection(collection_id), box_intervals=checked)
    db.save_collection(collection)
    logger.info("Updated box intervals of %s to %s", collection_id, checked.as_tuple())
    return collection


def reset_box_intervals(collection_id: str) -> Collection:
    return set_box_intervals(collection_id, DEFAULT_BOX_INTERVALS)


def delete_collection(collection_id: str) -> None:
    db.delete_collection(collection_id)
    logger.info("Deleted collection %s", collection_id)


# --- Cards ---
def add_card(collection_id: str, front: str, back: str,
             now: Optional[datetime] = None) -> Card:
    card = Card(
        id=new_id(),
        front=_require_text(front, "Front"),
        back=_require_text(back, "Back"),
        box_level=MIN_BOX,
        last_reviewed=None,
        created_at=now or utc_now(),
        collection_id=collection_id,
    )
    db.save_card(card)
    return card


def edit_card(card_id: str, front: str, back: str) -> Card:
    card = replace(db.get_card(card_id),
                   front=_require_text(front, "Front"),
                   back=_require_text(back, "Back"))
    db.save_card(card)
    return card


def delete_card(card_id: str) -> None:
    db.delete_card(card_id)


def import_csv(collection_id: str, stream: TextIO, now: Optional[datetime] = None) -> int:
    """Add a card per CSV row with ``front`` and ``back`` columns."""
    db.get_collection(collection_id)
    now = now or utc_now()
    reader = csv.DictReader(stream)
    count = 0
    for row in reader:
        front = (row.get("front") or "").strip()
        back = (row.get("back") or "").strip()
        if not front or not back:
            logger.warning("Skipping CSV line %d without front/back text", reader.line_num)
            continue
        add_card(collection_id, front, back, now=now)
        count += 1
    logger.info("Imported %d cards into %s", count, collection_id)
    return count
