# src/study/models.py
"""
Immutable state values for a study visit.

Every engine call returns a new StudyRound / StudySession; nothing here is
mutated in place, so two states can be compared with ==.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


class Outcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    SKIP = "skip"

    @property
    def is_miss(self) -> bool:
        return self is not Outcome.CORRECT

    @property
    def counts_as_studied(self) -> bool:
        """Skipping a card is not studying it."""
        return self is not Outcome.SKIP


class RoundType(str, Enum):
    INITIAL = "initial"   # first pass over the set, or a full restart
    REVIEW = "review"     # cards missed in the round just before
    MISSED = "missed"     # every card still missed anywhere in the session


class Card(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    answer: str


class StudyRound(BaseModel):
    model_config = ConfigDict(frozen=True)

    round_number: int
    round_type: RoundType
    cards: Tuple[Card, ...]

    current_index: int = 0
    # Card ids in the order their outcome was recorded
    studied_cards: Tuple[str, ...] = ()
    correct_answers: Tuple[str, ...] = ()
    incorrect_answers: Tuple[str, ...] = ()
    skipped_cards: Tuple[str, ...] = ()
    missed_cards: Tuple[Card, ...] = ()

    start_time: datetime
    end_time: Optional[datetime] = None

    @property
    def total_cards(self) -> int:
        return len(self.cards)

    @property
    def is_complete(self) -> bool:
        return self.current_index >= len(self.cards)

    @property
    def current_card(self) -> Optional[Card]:
        if self.is_complete:
            return None
        return self.cards[self.current_index]

    @property
    def remaining_cards(self) -> Tuple[Card, ...]:
        return self.cards[self.current_index:]

    @property
    def has_pending_outcome(self) -> bool:
        """True between recording an outcome and stepping past the card."""
        card = self.current_card
        return card is not None and card.id in self.studied_cards

    def outcome_of(self, card_id: str) -> Optional[Outcome]:
        if card_id in self.correct_answers:
            return Outcome.CORRECT
        if card_id in self.incorrect_answers:
            return Outcome.INCORRECT
        if card_id in self.skipped_cards:
            return Outcome.SKIP
        return None

    @property
    def accuracy(self) -> int:
        """Correct answers as a whole percentage of the round's cards."""
        if not self.cards:
            return 0
        return round(len(self.correct_answers) / len(self.cards) * 100)

    @property
    def duration_seconds(self) -> int:
        if self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds())


class StudySession(BaseModel):
    model_config = ConfigDict(frozen=True)

    set_id: str
    set_name: str
    original_set_size: int

    rounds: Tuple[StudyRound, ...]
    current_round_index: int = 0

    total_cards_studied: int = 0
    total_correct_answers: int = 0
    total_incorrect_answers: int = 0
    total_skipped_cards: int = 0
    all_missed_cards: Tuple[Card, ...] = ()

    start_time: datetime

    @property
    def current_round(self) -> StudyRound:
        return self.rounds[self.current_round_index]

    def was_missed_before(self, card_id: str, before_round_index: int) -> bool:
        """
        Whether the card was still in the missed pile when round `before_round_index` began,
        i.e. its latest outcome in any earlier round was incorrect or skip.
        Only rounds with an index strictly below `before_round_index` are inspected.
        """
        for previous in reversed(self.rounds[:max(before_round_index, 0)]):
            outcome = previous.outcome_of(card_id)
            if outcome is not None:
                return outcome.is_miss
        return False
