# src/services/study_service.py
from datetime import datetime
from typing import List, Optional
import random

from pydantic import BaseModel

from src.config import FEEDBACK_DELAY_SECONDS
from src.core.log_manager import logger
from src.schemas import StudySetDTO
from src.services.set_service import get_set
from src.study.models import Card, Outcome, StudyRound, StudySession
from src.study.rounds import Clock
from src.study.sessions import SessionEngine

# --- VIEW ---

class StudyView(BaseModel):
    """
    What the study page renders after every action.
    `applied` is False when the action was ignored (e.g. 'previous' on the first card).
    """
    applied: bool
    session: StudySession
    round: StudyRound
    current_card: Optional[Card]
    show_answer: bool
    feedback: Optional[Outcome]
    is_transitioning: bool
    shuffled: bool
    can_go_back: bool
    is_round_complete: bool
    progress: float


# --- CONTROLLER ---

class StudyController:
    """
    The UI action surface of one study visit (one browser tab).

    Answering is two-phase: `answer`/`skip` record the outcome and open a
    transition window (feedback is shown); `finish_transition` moves to the
    next card. While the window is open every other card action is ignored.
    """

    def __init__(
        self,
        study_set: StudySetDTO,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        feedback_delay: float = FEEDBACK_DELAY_SECONDS,
    ):
        self.study_set = study_set
        self.original_cards: List[Card] = [
            Card(id=c.id, question=c.question, answer=c.answer) for c in study_set.cards
        ]
        self.engine = SessionEngine(clock)
        self.rng = rng or random.Random()
        self.feedback_delay = feedback_delay

        self.session: StudySession = self.engine.create_session(
            study_set.id, study_set.name, self.original_cards
        )
        self.show_answer_visible = False
        self.feedback: Optional[Outcome] = None
        self.is_transitioning = False
        self.shuffled = False

    # --- READ ---

    @property
    def current_round(self) -> StudyRound:
        return self.session.current_round

    @property
    def review_count(self) -> int:
        """How many cards a review round would replay: this round's incorrect and skipped cards."""
        return len(self.current_round.missed_cards)

    def view(self, applied: bool = True) -> StudyView:
        rnd = self.current_round
        progress = 0.0
        if rnd.total_cards > 0:
            progress = min(rnd.current_index / rnd.total_cards, 1.0)
        return StudyView(
            applied=applied,
            session=self.session,
            round=rnd,
            current_card=rnd.current_card,
            show_answer=self.show_answer_visible,
            feedback=self.feedback,
            is_transitioning=self.is_transitioning,
            shuffled=self.shuffled,
            can_go_back=rnd.current_index > 0 and not self.is_transitioning,
            is_round_complete=rnd.is_complete,
            progress=progress,
        )

    def summary(self) -> "SessionSummary":
        return summarize_session(self.session, self.engine.clock())

    # --- CARD ACTIONS ---

    def show_answer(self) -> StudyView:
        if self.show_answer_visible or self.is_transitioning or self.current_round.is_complete:
            return self.view(applied=False)
        self.show_answer_visible = True
        return self.view()

    def answer(self, correct: bool) -> StudyView:
        return self._begin_transition(Outcome.CORRECT if correct else Outcome.INCORRECT)

    def skip(self) -> StudyView:
        return self._begin_transition(Outcome.SKIP)

    def finish_transition(self) -> StudyView:
        """Called by the page once the feedback pause is over."""
        if not self.is_transitioning:
            return self.view(applied=False)
        self.session = self.engine.step_forward(self.session)
        self._reset_card_state()
        return self.view()

    def previous(self) -> StudyView:
        if self.is_transitioning:
            logger.warning("Previous ignored while an answer is being applied.")
            return self.view(applied=False)
        undone = self.engine.undo(self.session)
        if undone is self.session:
            return self.view(applied=False)
        self.session = undone
        self._reset_card_state()
        return self.view()

    # --- ORDERING ---

    def shuffle_remaining(self) -> StudyView:
        if self.is_transitioning:
            return self.view(applied=False)
        shuffled = self.engine.shuffle_remaining(self.session, self.rng)
        if shuffled is self.session:
            return self.view(applied=False)
        self.session = shuffled
        self.shuffled = True
        return self.view()

    def reset_remaining_to_original(self) -> StudyView:
        if self.is_transitioning:
            return self.view(applied=False)
        self.session = self.engine.reset_remaining(self.session, self.original_cards)
        self.shuffled = False
        return self.view()

    # --- ROUNDS ---

    def start_review_round(self) -> StudyView:
        return self._switch_session(self.engine.start_review_round(self.session))

    def start_missed_cards_round(self) -> StudyView:
        return self._switch_session(self.engine.start_missed_round(self.session))

    def restart_session(self) -> StudyView:
        return self._switch_session(self.engine.restart(self.session, self.original_cards))

    # --- INTERNALS ---

    def _begin_transition(self, outcome: Outcome) -> StudyView:
        if self.is_transitioning:
            logger.warning(f"'{outcome.value}' ignored: previous answer still transitioning.")
            return self.view(applied=False)
        recorded = self.engine.record(self.session, outcome)
        if recorded is self.session:
            return self.view(applied=False)
        self.session = recorded
        self.feedback = outcome
        self.is_transitioning = True
        return self.view()

    def _switch_session(self, session: StudySession) -> StudyView:
        if self.is_transitioning or session is self.session:
            return self.view(applied=False)
        self.session = session
        self._reset_card_state()
        self.shuffled = False
        return self.view()

    def _reset_card_state(self):
        self.show_answer_visible = False
        self.feedback = None
        self.is_transitioning = False


# --- ENTRY POINT ---

def start_study(set_id: str, user_id: int, **controller_kwargs) -> StudyController:
    """
    Loads the set once and opens a fresh study visit on it.
    Raises SetNotFoundError / EmptySetError; no partial session is ever created.
    """
    study_set = get_set(set_id, user_id)
    controller = StudyController(study_set, **controller_kwargs)
    logger.info(f"User {user_id} started studying set {set_id} ({len(study_set.cards)} cards).")
    return controller


def format_duration(seconds: int) -> str:
    """`m:ss`, or `h:mm:ss` past the hour."""
    seconds = max(int(seconds), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


# --- STATISTICS ---

class RoundSummary(BaseModel):
    round_number: int
    round_type: str
    total_cards: int
    correct: int
    incorrect: int
    skipped: int
    accuracy: int
    duration: str


class SessionSummary(BaseModel):
    set_name: str
    rounds_played: int
    total_cards_studied: int
    total_correct_answers: int
    total_incorrect_answers: int
    total_skipped_cards: int
    missed_cards: int
    duration: str
    current_round: RoundSummary


def summarize_round(rnd: StudyRound) -> RoundSummary:
    return RoundSummary(
        round_number=rnd.round_number,
        round_type=rnd.round_type.value,
        total_cards=rnd.total_cards,
        correct=len(rnd.correct_answers),
        incorrect=len(rnd.incorrect_answers),
        skipped=len(rnd.skipped_cards),
        accuracy=rnd.accuracy,
        duration=format_duration(rnd.duration_seconds),
    )


def summarize_session(session: StudySession, now: datetime) -> SessionSummary:
    """Numbers for the completion screen. The session runs from its start until `now`."""
    return SessionSummary(
        set_name=session.set_name,
        rounds_played=len(session.rounds),
        total_cards_studied=session.total_cards_studied,
        total_correct_answers=session.total_correct_answers,
        total_incorrect_answers=session.total_incorrect_answers,
        total_skipped_cards=session.total_skipped_cards,
        missed_cards=len(session.all_missed_cards),
        duration=format_duration((now - session.start_time).total_seconds()),
        current_round=summarize_round(session.current_round),
    )
