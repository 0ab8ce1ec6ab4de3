# src/study/rounds.py
import random
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence, Tuple

from src.core.log_manager import logger
from src.study.models import Card, Outcome, RoundType, StudyRound

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _without(ids: Tuple[str, ...], card_id: str) -> Tuple[str, ...]:
    return tuple(i for i in ids if i != card_id)


class RoundEngine:
    """
    Transitions for a single pass through an ordered list of cards.
    Every method returns a new StudyRound; the input is never modified.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utc_now

    def create(self, cards: Iterable[Card], round_number: int, round_type: RoundType) -> StudyRound:
        return StudyRound(
            round_number=round_number,
            round_type=round_type,
            cards=tuple(cards),
            start_time=self.clock(),
        )

    def record_outcome(self, rnd: StudyRound, outcome: Outcome) -> StudyRound:
        """
        Records the outcome for the card at current_index without moving past it.
        Repeated calls for the same position are ignored (double-fired UI events).
        """
        card = rnd.current_card
        if card is None:
            logger.warning(f"Round {rnd.round_number}: outcome '{outcome.value}' ignored, round is complete.")
            return rnd
        if card.id in rnd.studied_cards:
            logger.warning(f"Round {rnd.round_number}: card {card.id} already has an outcome; ignoring '{outcome.value}'.")
            return rnd

        update = {"studied_cards": rnd.studied_cards + (card.id,)}

        if outcome is Outcome.CORRECT:
            update["correct_answers"] = rnd.correct_answers + (card.id,)
            update["missed_cards"] = tuple(c for c in rnd.missed_cards if c.id != card.id)
        else:
            if outcome is Outcome.INCORRECT:
                update["incorrect_answers"] = rnd.incorrect_answers + (card.id,)
            else:
                update["skipped_cards"] = rnd.skipped_cards + (card.id,)
            if not any(c.id == card.id for c in rnd.missed_cards):
                update["missed_cards"] = rnd.missed_cards + (card,)

        if len(update["studied_cards"]) == len(rnd.cards):
            update["end_time"] = self.clock()

        return rnd.model_copy(update=update)

    def advance_index(self, rnd: StudyRound) -> StudyRound:
        """Moves past the current card once it has a recorded outcome."""
        if not rnd.has_pending_outcome:
            return rnd
        return rnd.model_copy(update={"current_index": rnd.current_index + 1})

    def undo_last(self, rnd: StudyRound) -> Tuple[StudyRound, Optional[Outcome]]:
        """
        Erases the outcome of the card just before current_index and steps back onto it.
        Returns the new round and the outcome that was erased (None if nothing changed).
        """
        if rnd.current_index <= 0:
            return rnd, None

        card = rnd.cards[rnd.current_index - 1]
        outcome = rnd.outcome_of(card.id)

        new_round = rnd.model_copy(update={
            "current_index": rnd.current_index - 1,
            "studied_cards": _without(rnd.studied_cards, card.id),
            "correct_answers": _without(rnd.correct_answers, card.id),
            "incorrect_answers": _without(rnd.incorrect_answers, card.id),
            "skipped_cards": _without(rnd.skipped_cards, card.id),
            "missed_cards": tuple(c for c in rnd.missed_cards if c.id != card.id),
            "end_time": None,
        })
        return new_round, outcome

    # --- REORDERING ---

    def reorder_remaining(self, rnd: StudyRound, new_suffix: Sequence[Card]) -> StudyRound:
        """
        Replaces the not-yet-studied suffix of the round with `new_suffix`.
        The studied prefix and every progress counter stay untouched.
        """
        remaining = rnd.remaining_cards
        if len(remaining) <= 1:
            return rnd
        if rnd.has_pending_outcome:
            logger.warning(f"Round {rnd.round_number}: reorder ignored while an answer is being applied.")
            return rnd

        if Counter(c.id for c in new_suffix) != Counter(c.id for c in remaining):
            raise ValueError("New order must be a permutation of the remaining cards.")

        return rnd.model_copy(update={"cards": rnd.cards[:rnd.current_index] + tuple(new_suffix)})

    def shuffle_remaining(self, rnd: StudyRound, rng: Optional[random.Random] = None) -> StudyRound:
        suffix = list(rnd.remaining_cards)
        # random.shuffle is an in-place Fisher-Yates
        (rng or random).shuffle(suffix)
        return self.reorder_remaining(rnd, suffix)

    def reset_remaining(self, rnd: StudyRound, reference_cards: Sequence[Card]) -> StudyRound:
        """
        Puts the remaining cards back into the order they have in `reference_cards`
        (normally the set as loaded). Cards unknown to the reference keep their relative order at the end.
        """
        position = {card.id: i for i, card in enumerate(reference_cards)}
        remaining = list(rnd.remaining_cards)
        ordered = sorted(
            remaining,
            key=lambda c: (c.id not in position, position.get(c.id, 0)),
        )
        return self.reorder_remaining(rnd, ordered)
