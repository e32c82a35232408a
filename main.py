from __future__ import annotations
import logging
from typing import Callable, Dict, Optional, Tuple

import config
import db
import decks
import stats
from errors import LeitnerError, NotFoundError, ValidationError
from models import MAX_BOX, MIN_BOX, Card, Collection, Outcome, utc_now
from review import ReviewSession
from srs import next_due_at

logger = logging.getLogger(__name__)

HELP = """Commands:
  list                                   collections with due counts
  new <name>                             create a collection
  rename <collection> <new name>         rename a collection
  drop <collection>                      delete a collection and its cards
  add <collection> <front> | <back>      add a card
  edit <card> <front> | <back>           change a card's text
  rm <card>                              delete a card
  import <collection> <file.csv>         add cards from a CSV (front,back)
  cards <collection>                     list cards with their ids and boxes
  box <collection> <n>                   cards in one box and how they last went
  stats <collection>                     box counts and answer totals
  intervals <collection> [d1..d5|reset]  show or change review intervals
  review <collection>                    start reviewing due cards
  quit
While reviewing, text is checked as your answer. Commands then need a
leading slash, e.g. /ok or /miss to self-grade, /stop to end the review.
<card> is a card id or any unique start of one, as shown by cards."""


class Console:
    """Line-oriented front end; ``handle`` returns the text to show."""

    def __init__(self) -> None:
        self.review: Optional[ReviewSession] = None
        self.commands: Dict[str, Callable[[str], str]] = {
            "help": self.help_cmd,
            "list": self.list_cmd,
            "new": self.new_cmd,
            "rename": self.rename_cmd,
            "drop": self.drop_cmd,
            "add": self.add_cmd,
            "edit": self.edit_cmd,
            "rm": self.rm_cmd,
            "import": self.import_cmd,
            "cards": self.cards_cmd,
            "box": self.box_cmd,
            "stats": self.stats_cmd,
            "intervals": self.intervals_cmd,
            "review": self.review_cmd,
            "ok": self.ok_cmd,
            "miss": self.miss_cmd,
            "stop": self.stop_cmd,
        }

    def handle(self, line: str) -> str:
        line = line.strip()
        if not line:
            return ""
        try:
            # mid-review, only slash-prefixed lines are commands
            if self.review is not None and not line.startswith("/"):
                return self.on_answer(line)
            name, _, rest = line.lstrip("/").partition(" ")
            handler = self.commands.get(name.lower())
            if handler is None:
                return f"Unknown command {name!r}. Type help."
            return handler(rest.strip())
        except LeitnerError as e:
            logger.debug("Command %r failed: %s", line, e)
            return f"Error: {e}"

    # --- helpers ---
    def find_collection(self, key: str) -> Collection:
        for c in db.list_collections():
            if c.id == key or c.name.lower() == key.lower():
                return c
        return db.get_collection(key)

    def split_collection(self, rest: str) -> Tuple[Collection, str]:
        """Collection named at the start of ``rest`` and the text after it.

        Names may contain spaces, so the longest matching name wins.
        """
        lowered = rest.lower()
        best: Optional[Collection] = None
        best_key = ""
        for c in db.list_collections():
            for key in (c.id, c.name):
                k = key.lower()
                if lowered == k or lowered.startswith(k + " "):
                    if len(k) > len(best_key):
                        best, best_key = c, k
        if best is None:
            return db.get_collection(rest.partition(" ")[0]), rest.partition(" ")[2].strip()
        return best, rest[len(best_key):].strip()

    def find_card(self, key: str) -> Card:
        if not key:
            raise NotFoundError("card", key)
        matches = [c for c in db.list_cards() if c.id.startswith(key)]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise ValidationError(f"Card id {key!r} is ambiguous, type more of it",
                                  constraint="ambiguous")
        raise NotFoundError("card", key)

    def prompt(self) -> str:
        card = self.review.current if self.review else None
        if card is None:
            tally = self.review.tally
            self.review = None
            return (f"Review complete: {tally.correct} correct, {tally.incorrect} incorrect, "
                    f"{tally.promoted} promoted, {tally.demoted} demoted.")
        return f"[box {card.box_level}, {self.review.remaining} left] {card.front}"

    # --- commands ---
    def help_cmd(self, rest: str) -> str:
        return HELP

    def list_cmd(self, rest: str) -> str:
        collections = db.list_collections()
        if not collections:
            return "No collections yet. Create one with: new <name>"
        all_stats = stats.all_collection_stats(utc_now())
        return "\n".join(
            f"{c.name}: {all_stats[c.id].total} cards, {all_stats[c.id].due} due"
            for c in collections)

    def new_cmd(self, rest: str) -> str:
        collection = decks.create_collection(rest)
        return f"Created {collection.name}."

    def rename_cmd(self, rest: str) -> str:
        collection, name = self.split_collection(rest)
        if not name:
            return "Usage: rename <collection> <new name>"
        collection = decks.rename_collection(collection.id, name)
        return f"Renamed to {collection.name}."

    def drop_cmd(self, rest: str) -> str:
        collection = self.find_collection(rest)
        decks.delete_collection(collection.id)
        if self.review is not None and self.review.collection.id == collection.id:
            self.review.abandon()
            self.review = None
        return f"Deleted {collection.name} and its cards."

    def add_cmd(self, rest: str) -> str:
        collection, text = self.split_collection(rest)
        front, sep, back = text.partition("|")
        if not sep:
            return "Usage: add <collection> <front> | <back>"
        card = decks.add_card(collection.id, front, back)
        return f"Added card {card.id[:8]} to box {card.box_level}."

    def edit_cmd(self, rest: str) -> str:
        key, _, text = rest.partition(" ")
        front, sep, back = text.partition("|")
        if not sep:
            return "Usage: edit <card> <front> | <back>"
        card = decks.edit_card(self.find_card(key).id, front, back)
        return f"Updated: {card.front} -> {card.back}"

    def rm_cmd(self, rest: str) -> str:
        card = self.find_card(rest)
        decks.delete_card(card.id)
        return f"Deleted card {card.front}."

    def import_cmd(self, rest: str) -> str:
        collection, path = self.split_collection(rest)
        if not path:
            return "Usage: import <collection> <file.csv>"
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                count = decks.import_csv(collection.id, f)
        except OSError as e:
            return f"Cannot read {path}: {e.strerror}"
        return f"Imported {count} cards into {collection.name}."

    def cards_cmd(self, rest: str) -> str:
        collection = self.find_collection(rest)
        cards = db.list_cards_for_collection(collection.id)
        if not cards:
            return "No cards."
        lines = []
        for card in cards:
            due_at = next_due_at(card, collection.box_intervals)
            when = "now" if due_at is None else due_at.strftime("%Y-%m-%d %H:%M")
            lines.append(f"{card.id[:8]}  box {card.box_level}  {card.front} -> {card.back}"
                         f"  (due {when})")
        return "\n".join(lines)

    def box_cmd(self, rest: str) -> str:
        collection, level = self.split_collection(rest)
        if not level.isdigit() or not MIN_BOX <= int(level) <= MAX_BOX:
            return f"Usage: box <collection> <{MIN_BOX}-{MAX_BOX}>"
        cards = db.list_cards_for_collection(collection.id)
        history = db.list_outcomes_for_collection(collection.id)
        row = stats.box_breakdown(cards, history)[int(level) - MIN_BOX]
        last = stats.latest_outcomes(history)
        lines = [f"Box {row.box_level} of {collection.name}: {row.total} cards, "
                 f"{row.correct} correct, {row.incorrect} incorrect, "
                 f"{row.not_answered} not answered"]
        for card in cards:
            if max(MIN_BOX, min(MAX_BOX, card.box_level)) == row.box_level:
                outcome = last.get(card.id)
                lines.append(f"{card.id[:8]}  {card.front} -> {card.back}  "
                             f"({outcome.value if outcome else 'not answered'})")
        return "\n".join(lines)

    def stats_cmd(self, rest: str) -> str:
        collection = self.find_collection(rest)
        s = stats.collection_stats(collection.id, utc_now())
        boxes = "  ".join(f"{i}:{n}" for i, n in enumerate(s.box_counts, start=1))
        return (f"{collection.name}: {s.total} cards, {s.due} due\n"
                f"Boxes {boxes}\n"
                f"Answers: {s.correct} correct, {s.incorrect} incorrect")

    def intervals_cmd(self, rest: str) -> str:
        if not rest:
            return "Usage: intervals <collection> [d1 d2 d3 d4 d5 | reset]"
        collection, tail = self.split_collection(rest)
        args = tail.split()
        if len(args) == 1 and args[0].lower() == "reset":
            collection = decks.reset_box_intervals(collection.id)
        elif args:
            try:
                days = [int(a) for a in args]
            except ValueError:
                raise ValidationError("Intervals must be whole numbers of days",
                                      constraint="integer") from None
            collection = decks.set_box_intervals(collection.id, days)
        return "Intervals (days): " + " ".join(str(d) for d in collection.box_intervals.as_tuple())

    def review_cmd(self, rest: str) -> str:
        collection = self.find_collection(rest)
        if self.review is not None:
            self.review.abandon()
        self.review = ReviewSession(collection.id)
        if self.review.current is None:
            self.review = None
            return "Nothing due now."
        return self.prompt()

    def ok_cmd(self, rest: str) -> str:
        return self.self_grade(Outcome.CORRECT)

    def miss_cmd(self, rest: str) -> str:
        return self.self_grade(Outcome.INCORRECT)

    def self_grade(self, outcome: Outcome) -> str:
        if self.review is None:
            return "No review running."
        try:
            card = self.review.answer(outcome)
        except NotFoundError:
            return "That card was deleted, skipping it.\n" + self.prompt()
        return f"Moved to box {card.box_level}.\n" + self.prompt()

    def on_answer(self, text: str) -> str:
        try:
            card, grade = self.review.answer_text(text)
        except NotFoundError:
            return "That card was deleted, skipping it.\n" + self.prompt()
        if grade.outcome is Outcome.CORRECT:
            head = f"Correct ({grade.score:.0f}%). Next box -> {card.box_level}"
        else:
            head = (f"Not quite ({grade.score:.0f}%). Answer: {', '.join(grade.expected)}. "
                    f"Box reset -> {card.box_level}")
        return head + "\n" + self.prompt()

    def stop_cmd(self, rest: str) -> str:
        if self.review is None:
            return "No review running."
        self.review.abandon()
        tally = self.review.tally
        self.review = None
        return f"Review stopped after {tally.answered} of {tally.total} cards."


def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    db.init_db()
    console = Console()
    print("Leitner boxes. Type help for commands.")
    while True:
        try:
            line = input("> ")
        except EOFError:
            break
        if line.strip().lower() in ("quit", "exit"):
            break
        reply = console.handle(line)
        if reply:
            print(reply)


if __name__ == "__main__":
    main()
