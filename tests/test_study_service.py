"""
Tests for src/services/study_service.py: the action surface the study page drives.
"""
import random

import pytest

from src.schemas import CardDTO, CardInputDTO, SetCreateDTO, StudySetDTO
from src.services.set_service import SetNotFoundError, create_set
from src.services.study_service import (
    StudyController,
    format_duration,
    start_study,
    summarize_round,
)
from src.study.models import Outcome, RoundType
from src.study.sessions import EmptySetError


def study_set(*ids):
    return StudySetDTO(
        id="set-1",
        name="Biology",
        cards=[CardDTO(id=i, question=f"Q{i}", answer=f"A{i}") for i in ids],
    )


@pytest.fixture()
def controller(clock):
    return StudyController(study_set("A", "B", "C", "D"), clock=clock, rng=random.Random(3))


def answer_and_continue(controller, correct=True):
    controller.show_answer()
    controller.answer(correct)
    return controller.finish_transition()


# ── Card actions ──────────────────────────────────────────────

class TestCardActions:
    def test_initial_view(self, controller):
        view = controller.view()
        assert view.current_card.id == "A"
        assert not view.show_answer
        assert view.feedback is None
        assert not view.can_go_back
        assert view.progress == 0.0

    def test_show_answer_once(self, controller):
        assert controller.show_answer().applied
        assert controller.show_answer().applied is False

    def test_answer_opens_transition(self, controller):
        controller.show_answer()
        view = controller.answer(False)

        assert view.applied
        assert view.is_transitioning
        assert view.feedback is Outcome.INCORRECT
        assert view.current_card.id == "A"
        assert view.session.total_incorrect_answers == 1

    def test_finish_transition_moves_on(self, controller):
        controller.answer(True)
        view = controller.finish_transition()

        assert view.current_card.id == "B"
        assert not view.is_transitioning
        assert not view.show_answer
        assert view.feedback is None
        assert view.progress == 0.25

    def test_finish_transition_without_answer_ignored(self, controller):
        assert controller.finish_transition().applied is False

    def test_skip_counts_separately(self, controller):
        controller.skip()
        view = controller.finish_transition()
        assert view.session.total_skipped_cards == 1
        assert view.session.total_cards_studied == 0
        assert [c.id for c in view.session.all_missed_cards] == ["A"]


class TestTransitionBlocking:
    def test_second_answer_ignored(self, controller):
        controller.answer(True)
        view = controller.answer(False)
        assert view.applied is False
        assert view.session.total_correct_answers == 1
        assert view.session.total_incorrect_answers == 0

    @pytest.mark.parametrize("action", [
        "skip", "previous", "show_answer", "shuffle_remaining", "reset_remaining_to_original",
        "start_review_round", "start_missed_cards_round", "restart_session",
    ])
    def test_actions_blocked_while_transitioning(self, controller, action):
        controller.answer(False)
        before = controller.session

        view = getattr(controller, action)()

        assert view.applied is False
        assert controller.session is before
        assert controller.is_transitioning

    def test_cannot_go_back_while_transitioning(self, controller):
        answer_and_continue(controller)
        controller.answer(True)
        assert controller.view().can_go_back is False


# ── Undo ──────────────────────────────────────────────────────

class TestPrevious:
    def test_previous_restores_state(self, controller):
        before = controller.session
        answer_and_continue(controller, correct=False)

        view = controller.previous()

        assert view.applied
        assert controller.session == before
        assert view.current_card.id == "A"
        assert not view.show_answer

    def test_previous_on_first_card_ignored(self, controller):
        assert controller.previous().applied is False


# ── Ordering ──────────────────────────────────────────────────

class TestOrdering:
    def test_shuffle_marks_view(self, controller):
        answer_and_continue(controller)
        view = controller.shuffle_remaining()

        assert view.applied
        assert view.shuffled
        assert view.round.cards[0].id == "A"
        assert sorted(c.id for c in view.round.remaining_cards) == ["B", "C", "D"]

    def test_reset_restores_set_order(self, controller):
        answer_and_continue(controller)
        controller.shuffle_remaining()

        view = controller.reset_remaining_to_original()

        assert not view.shuffled
        assert [c.id for c in view.round.cards] == ["A", "B", "C", "D"]

    def test_shuffle_with_one_card_left_ignored(self, controller):
        for _ in range(3):
            answer_and_continue(controller)
        assert controller.shuffle_remaining().applied is False


# ── Rounds ────────────────────────────────────────────────────

class TestRounds:
    def play_round(self, controller, *results):
        for correct in results:
            answer_and_continue(controller, correct)
        return controller.view()

    def test_round_complete_view(self, controller):
        view = self.play_round(controller, True, False, True, False)
        assert view.is_round_complete
        assert view.current_card is None
        assert view.progress == 1.0

    def test_review_round(self, controller):
        self.play_round(controller, True, False, True, False)

        view = controller.start_review_round()

        assert view.applied
        assert view.round.round_type is RoundType.REVIEW
        assert [c.id for c in view.round.cards] == ["B", "D"]

    def test_missed_round_then_restart(self, controller):
        self.play_round(controller, True, False, True, False)
        controller.start_missed_cards_round()
        self.play_round(controller, True)

        view = controller.restart_session()

        assert len(view.session.rounds) == 1
        assert view.session.total_correct_answers == 0
        assert [c.id for c in view.round.cards] == ["A", "B", "C", "D"]

    def test_review_with_nothing_missed_ignored(self, controller):
        self.play_round(controller, True, True, True, True)
        assert controller.review_count == 0
        assert controller.start_review_round().applied is False

    def test_review_count_matches_review_round(self, controller):
        self.play_round(controller, True, False, True)
        controller.skip()
        controller.finish_transition()
        assert controller.review_count == 2

        view = controller.start_review_round()

        assert [c.id for c in view.round.cards] == ["B", "D"]
        assert controller.review_count == 0

    def test_previous_from_results_reopens_last_card(self, controller):
        view = self.play_round(controller, True, True, True, False)
        assert view.is_round_complete
        assert view.can_go_back

        view = controller.previous()

        assert view.applied
        assert not view.is_round_complete
        assert view.current_card.id == "D"
        assert view.session.total_incorrect_answers == 0
        assert controller.review_count == 0


# ── Statistics ────────────────────────────────────────────────

class TestSummary:
    def test_summary_after_round(self, controller, clock):
        controller.answer(True)
        controller.finish_transition()
        controller.answer(False)
        controller.finish_transition()
        controller.skip()
        controller.finish_transition()
        clock.tick(75)
        controller.answer(True)
        controller.finish_transition()

        summary = controller.summary()

        assert summary.current_round.accuracy == 50
        assert summary.current_round.correct == 2
        assert summary.current_round.incorrect == 1
        assert summary.current_round.skipped == 1
        assert summary.current_round.duration == "1:15"
        assert summary.duration == "1:15"
        assert summary.missed_cards == 2

    def test_summarize_round_in_progress(self, controller):
        summary = summarize_round(controller.current_round)
        assert summary.duration == "0:00"
        assert summary.round_type == "initial"


class TestFormatDuration:
    @pytest.mark.parametrize("seconds, expected", [
        (0, "0:00"),
        (9, "0:09"),
        (75, "1:15"),
        (3600, "1:00:00"),
        (3725, "1:02:05"),
        (-5, "0:00"),
    ])
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


# ── Entry point ───────────────────────────────────────────────

class TestStartStudy:
    def test_loads_set_in_order(self, user_id):
        saved = create_set(user_id, SetCreateDTO(name="Chem", cards=[
            CardInputDTO(question="q1", answer="a1"),
            CardInputDTO(question="q2", answer="a2"),
        ]))

        controller = start_study(saved.id, user_id)

        assert controller.session.set_name == "Chem"
        assert [c.question for c in controller.current_round.cards] == ["q1", "q2"]

    def test_unknown_set(self, user_id):
        with pytest.raises(SetNotFoundError):
            start_study("missing", user_id)

    def test_foreign_set(self, user_id, other_user_id):
        saved = create_set(user_id, SetCreateDTO(name="Chem", cards=[CardInputDTO(question="q", answer="a")]))
        with pytest.raises(SetNotFoundError):
            start_study(saved.id, other_user_id)

    def test_empty_set(self, clock):
        with pytest.raises(EmptySetError):
            StudyController(study_set(), clock=clock)
