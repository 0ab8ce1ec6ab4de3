# src/study/sessions.py
import random
from typing import Iterable, Optional, Sequence, Tuple

from src.core.log_manager import logger
from src.study.models import Card, Outcome, RoundType, StudyRound, StudySession
from src.study.rounds import Clock, RoundEngine, utc_now


class EmptySetError(ValueError):
    """Raised when a study session is requested for a set without cards."""
    pass


def _apply_outcome(missed: Tuple[Card, ...], card: Card, outcome: Outcome) -> Tuple[Card, ...]:
    """One step of the session-wide missed pile: correct removes, a miss appends if absent."""
    if outcome is Outcome.CORRECT:
        return tuple(c for c in missed if c.id != card.id)
    if any(c.id == card.id for c in missed):
        return missed
    return missed + (card,)


def missed_cards_through(rounds: Iterable[StudyRound], start: Tuple[Card, ...] = ()) -> Tuple[Card, ...]:
    """
    Rebuilds the session-wide missed pile by replaying every recorded outcome
    of `rounds`, in the order it was recorded, on top of `start`.
    """
    missed = start
    for rnd in rounds:
        by_id = {card.id: card for card in rnd.cards}
        for card_id in rnd.studied_cards:
            outcome = rnd.outcome_of(card_id)
            if outcome is not None:
                missed = _apply_outcome(missed, by_id[card_id], outcome)
    return missed


class SessionEngine:
    """
    Owns the rounds of one study visit and the aggregates across them.

    Answering is split in two so the caller can show feedback in between:
    `record` (round-local and session-wide bookkeeping, applied together) and
    `step_forward` (move to the next card). `advance` does both at once.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utc_now
        self.rounds = RoundEngine(self.clock)

    # --- LIFECYCLE ---

    def create_session(self, set_id: str, set_name: str, cards: Sequence[Card]) -> StudySession:
        if not cards:
            raise EmptySetError(f"Set '{set_name}' has no cards to study.")

        first_round = self.rounds.create(cards, round_number=1, round_type=RoundType.INITIAL)
        logger.info(f"Study session created for set {set_id} with {len(cards)} cards.")
        return StudySession(
            set_id=set_id,
            set_name=set_name,
            original_set_size=len(cards),
            rounds=(first_round,),
            current_round_index=0,
            start_time=self.clock(),
        )

    def restart(self, session: StudySession, original_cards: Sequence[Card]) -> StudySession:
        """Throws away every round and aggregate. Only ever triggered by the user."""
        logger.info(f"Restarting study session for set {session.set_id}.")
        return self.create_session(session.set_id, session.set_name, original_cards)

    def start_round(self, session: StudySession, cards: Sequence[Card], round_type: RoundType) -> StudySession:
        if not cards:
            logger.info(f"No cards for a '{round_type.value}' round; nothing to do.")
            return session

        round_number = max(r.round_number for r in session.rounds) + 1
        new_round = self.rounds.create(cards, round_number=round_number, round_type=round_type)
        rounds = session.rounds + (new_round,)
        logger.info(f"Started round {round_number} ({round_type.value}) with {len(cards)} cards.")
        return session.model_copy(update={
            "rounds": rounds,
            "current_round_index": len(rounds) - 1,
        })

    def start_review_round(self, session: StudySession) -> StudySession:
        return self.start_round(session, session.current_round.missed_cards, RoundType.REVIEW)

    def start_missed_round(self, session: StudySession) -> StudySession:
        return self.start_round(session, session.all_missed_cards, RoundType.MISSED)

    # --- ANSWERING ---

    def record(self, session: StudySession, outcome: Outcome) -> StudySession:
        rnd = session.current_round
        card = rnd.current_card
        updated_round = self.rounds.record_outcome(rnd, outcome)
        if card is None or updated_round is rnd:
            return session

        update = {
            "rounds": self._replace_current(session, updated_round),
            "all_missed_cards": _apply_outcome(session.all_missed_cards, card, outcome),
        }
        if outcome is Outcome.CORRECT:
            update["total_correct_answers"] = session.total_correct_answers + 1
        elif outcome is Outcome.INCORRECT:
            update["total_incorrect_answers"] = session.total_incorrect_answers + 1
        else:
            update["total_skipped_cards"] = session.total_skipped_cards + 1
        if outcome.counts_as_studied:
            update["total_cards_studied"] = session.total_cards_studied + 1

        return session.model_copy(update=update)

    def step_forward(self, session: StudySession) -> StudySession:
        rnd = session.current_round
        moved = self.rounds.advance_index(rnd)
        if moved is rnd:
            return session
        if moved.is_complete:
            logger.info(f"Round {moved.round_number} complete: {len(moved.correct_answers)}/{moved.total_cards} correct.")
        return session.model_copy(update={"rounds": self._replace_current(session, moved)})

    def advance(self, session: StudySession, outcome: Outcome) -> StudySession:
        recorded = self.record(session, outcome)
        if recorded is session:
            return session
        return self.step_forward(recorded)

    # --- UNDO ---

    def undo(self, session: StudySession) -> StudySession:
        """
        Steps back onto the previous card and erases its outcome, reversing
        the session totals and the card's place in the session-wide missed pile.
        """
        rnd = session.current_round
        if rnd.current_index <= 0:
            return session
        if rnd.has_pending_outcome:
            logger.warning(f"Undo ignored in round {rnd.round_number}: an answer is still being applied.")
            return session

        card = rnd.cards[rnd.current_index - 1]
        updated_round, outcome = self.rounds.undo_last(rnd)
        rounds = self._replace_current(session, updated_round)

        update = {"rounds": rounds}
        if outcome is Outcome.CORRECT:
            update["total_correct_answers"] = max(0, session.total_correct_answers - 1)
        elif outcome is Outcome.INCORRECT:
            update["total_incorrect_answers"] = max(0, session.total_incorrect_answers - 1)
        elif outcome is Outcome.SKIP:
            update["total_skipped_cards"] = max(0, session.total_skipped_cards - 1)
        if outcome is not None and outcome.counts_as_studied:
            update["total_cards_studied"] = max(0, session.total_cards_studied - 1)

        if outcome is not None:
            round_index = session.current_round_index
            # The card falls back to its standing from earlier rounds. Replaying the
            # pile keeps every other card where it was before the undone answer.
            carried = missed_cards_through(rounds[:round_index])
            update["all_missed_cards"] = missed_cards_through([updated_round], start=carried)

        logger.info(f"Undo in round {rnd.round_number}: card {card.id} ({outcome.value if outcome else 'no outcome'}).")
        return session.model_copy(update=update)

    # --- REORDERING ---

    def shuffle_remaining(self, session: StudySession, rng: Optional[random.Random] = None) -> StudySession:
        rnd = session.current_round
        shuffled = self.rounds.shuffle_remaining(rnd, rng)
        if shuffled is rnd:
            return session
        return session.model_copy(update={"rounds": self._replace_current(session, shuffled)})

    def reset_remaining(self, session: StudySession, reference_cards: Sequence[Card]) -> StudySession:
        rnd = session.current_round
        reset = self.rounds.reset_remaining(rnd, reference_cards)
        if reset is rnd:
            return session
        return session.model_copy(update={"rounds": self._replace_current(session, reset)})

    # --- HELPERS ---

    @staticmethod
    def _replace_current(session: StudySession, rnd: StudyRound) -> Tuple[StudyRound, ...]:
        rounds = list(session.rounds)
        rounds[session.current_round_index] = rnd
        return tuple(rounds)
