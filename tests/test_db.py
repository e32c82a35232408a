from datetime import datetime, timedelta, timezone

import pytest

from conftest import T0, make_card
from errors import NotFoundError, StorageError, ValidationError
from models import BoxIntervals, Collection, Outcome, ReviewOutcome


def make_collection(collection_id="deck", intervals=BoxIntervals(1, 3, 7, 14, 30)):
    return Collection(id=collection_id, name="Spanish", created_at=T0, box_intervals=intervals)


class TestTimestamps:

    def test_millis_round_trip(self, store):
        ts = datetime(2024, 5, 6, 7, 8, 9, 123000, tzinfo=timezone.utc)
        assert store.from_millis(store.to_millis(ts)) == ts

    def test_none_is_preserved(self, store):
        assert store.to_millis(None) is None
        assert store.from_millis(None) is None

    def test_naive_timestamps_are_utc(self, store):
        assert store.to_millis(datetime(1970, 1, 1, 0, 0, 1)) == 1000


class TestCollections:

    def test_save_and_get(self, store):
        store.save_collection(make_collection(intervals=BoxIntervals(2, 4, 8, 16, 32)))
        loaded = store.get_collection("deck")
        assert loaded.name == "Spanish"
        assert loaded.created_at == T0
        assert loaded.box_intervals == BoxIntervals(2, 4, 8, 16, 32)

    def test_invalid_policy_is_not_persisted(self, store):
        with pytest.raises(ValidationError):
            store.save_collection(make_collection(intervals=BoxIntervals(1, 1, 7, 14, 30)))
        assert store.list_collections() == []

    def test_get_missing(self, store):
        with pytest.raises(NotFoundError) as exc:
            store.get_collection("nope")
        assert exc.value.kind == "collection"

    def test_resave_keeps_cards(self, store):
        store.save_collection(make_collection())
        store.save_card(make_card())
        store.save_collection(make_collection(intervals=BoxIntervals(2, 4, 8, 16, 32)))
        assert [c.id for c in store.list_cards_for_collection("deck")] == ["c1"]

    def test_delete_cascades(self, store):
        store.save_collection(make_collection())
        store.save_collection(make_collection("other"))
        store.save_card(make_card(card_id="a"))
        store.save_card(make_card(card_id="b", collection_id="other"))
        store.log_outcome(ReviewOutcome(id="r1", card_id="a", collection_id="deck",
                                        outcome=Outcome.CORRECT, reviewed_at=T0))
        store.delete_collection("deck")
        assert [c.id for c in store.list_collections()] == ["other"]
        assert [c.id for c in store.list_cards()] == ["b"]
        assert store.list_outcomes_for_card("a") == []

    def test_delete_missing(self, store):
        with pytest.raises(NotFoundError):
            store.delete_collection("nope")


class TestCards:

    def test_round_trip_keeps_null_last_reviewed(self, store):
        store.save_collection(make_collection())
        store.save_card(make_card())
        loaded = store.get_card("c1")
        assert loaded == make_card()
        assert loaded.last_reviewed is None

    def test_round_trip_keeps_review_time(self, store):
        reviewed = T0 + timedelta(days=2, milliseconds=345)
        store.save_collection(make_collection())
        store.save_card(make_card(box_level=3, last_reviewed=reviewed))
        loaded = store.get_card("c1")
        assert (loaded.box_level, loaded.last_reviewed) == (3, reviewed)

    def test_card_needs_existing_collection(self, store):
        with pytest.raises(NotFoundError) as exc:
            store.save_card(make_card(collection_id="ghost"))
        assert exc.value.kind == "collection"

    def test_list_in_creation_order(self, store):
        store.save_collection(make_collection())
        store.save_card(make_card(card_id="late", created_at=T0 + timedelta(seconds=5)))
        store.save_card(make_card(card_id="early"))
        assert [c.id for c in store.list_cards_for_collection("deck")] == ["early", "late"]

    def test_update_keeps_insertion_order_for_ties(self, store):
        store.save_collection(make_collection())
        store.save_card(make_card(card_id="first"))
        store.save_card(make_card(card_id="second"))
        store.save_card(make_card(card_id="first", box_level=2, last_reviewed=T0))
        assert [c.id for c in store.list_cards_for_collection("deck")] == ["first", "second"]

    def test_delete(self, store):
        store.save_collection(make_collection())
        store.save_card(make_card())
        store.delete_card("c1")
        with pytest.raises(NotFoundError):
            store.get_card("c1")
        with pytest.raises(NotFoundError):
            store.delete_card("c1")


class TestReviewLog:

    def test_outcomes_round_trip(self, store):
        entry = ReviewOutcome(id="r1", card_id="c1", collection_id="deck",
                              outcome=Outcome.INCORRECT, reviewed_at=T0, from_box=4, to_box=1)
        store.log_outcome(entry)
        assert store.list_outcomes_for_collection("deck") == [entry]
        assert store.list_outcomes_for_card("c1") == [entry]

    def test_record_review_saves_card_and_entry(self, store):
        store.save_collection(make_collection())
        store.save_card(make_card())
        later = T0 + timedelta(days=1)
        entry = ReviewOutcome(id="r1", card_id="c1", collection_id="deck",
                              outcome=Outcome.CORRECT, reviewed_at=later, from_box=1, to_box=2)
        store.record_review(make_card(box_level=2, last_reviewed=later), entry)
        assert store.get_card("c1").box_level == 2
        assert store.list_outcomes_for_card("c1") == [entry]

    def test_record_review_is_all_or_nothing(self, store):
        store.save_collection(make_collection())
        store.save_card(make_card())
        taken = ReviewOutcome(id="r1", card_id="other", collection_id="deck",
                              outcome=Outcome.CORRECT, reviewed_at=T0, from_box=1, to_box=2)
        store.log_outcome(taken)
        with pytest.raises(StorageError):
            store.record_review(make_card(box_level=2, last_reviewed=T0), taken)
        assert store.get_card("c1").box_level == 1
        assert store.get_card("c1").last_reviewed is None
        assert store.list_outcomes_for_card("c1") == []

    def test_record_review_missing_card(self, store):
        entry = ReviewOutcome(id="r1", card_id="c1", collection_id="deck",
                              outcome=Outcome.CORRECT, reviewed_at=T0, from_box=1, to_box=2)
        with pytest.raises(NotFoundError):
            store.record_review(make_card(box_level=2), entry)
        assert store.list_outcomes_for_card("c1") == []


class TestStorageErrors:

    def test_unopenable_database(self, store, tmp_path, monkeypatch):
        monkeypatch.setattr(store, "DB_PATH", tmp_path / "missing-dir" / "x.db")
        with pytest.raises(StorageError):
            store.list_collections()

    def test_missing_tables(self, store, tmp_path, monkeypatch):
        monkeypatch.setattr(store, "DB_PATH", tmp_path / "empty.db")
        with pytest.raises(StorageError):
            store.list_cards()
