from nicegui import ui, app, events

from src.pages.common import setup_page, create_navbar
from src.core.log_manager import logger
from src.services.set_service import SetNotFoundError
from src.services.study_service import StudyController, StudyView, start_study
from src.study.models import Outcome, RoundType
from src.study.sessions import EmptySetError

ROUND_TITLES = {
    RoundType.INITIAL: "First pass",
    RoundType.REVIEW: "Review",
    RoundType.MISSED: "Missed cards",
}

FEEDBACK_STYLES = {
    Outcome.CORRECT: ("Correct!", 'check_circle', 'text-green-400'),
    Outcome.INCORRECT: ("Incorrect", 'cancel', 'text-red-400'),
    Outcome.SKIP: ("Skipped", 'redo', 'text-gray-400'),
}

SHORTCUTS = [
    ("Space", "Show answer"),
    ("→", "Skip (before the answer is shown)"),
    ("←", "Previous card"),
    ("Y / N", "Correct / Incorrect"),
    ("S", "Shuffle remaining cards"),
    ("R", "Restart session"),
    ("H", "Toggle this help"),
]

@ui.page('/app/study')
def study_page(set_id: str = None):
    # 1. Security & Setup
    if not setup_page(restricted=True):
        return

    if not set_id:
        logger.warning("Study page accessed without set_id parameter.")
        ui.navigate.to('/app')
        return

    create_navbar()

    # 2. Load the set and open the session
    user_id = app.storage.user.get('id')
    try:
        controller: StudyController = start_study(set_id, user_id)
    except SetNotFoundError:
        logger.warning(f"Unauthorized access attempt to Set {set_id} by User {user_id}")
        ui.notify("Set not found.", type='negative')
        ui.navigate.to('/app')
        return
    except EmptySetError:
        ui.notify("This set has no cards to study yet.", type='warning')
        ui.navigate.to(f'/app/sets/{set_id}')
        return

    # --- ACTIONS ---

    def apply(view: StudyView) -> StudyView:
        if view.applied:
            study_view.refresh()
        return view

    def finish_transition():
        apply(controller.finish_transition())

    def submit(outcome: Outcome):
        if outcome is Outcome.SKIP:
            view = apply(controller.skip())
        else:
            view = apply(controller.answer(outcome is Outcome.CORRECT))
        if view.applied:
            # Feedback stays visible for the pause, then the next card appears.
            # The timer lives outside the refreshable area so a refresh cannot delete it.
            with page_root:
                ui.timer(controller.feedback_delay, finish_transition, once=True)

    def show_answer():
        apply(controller.show_answer())

    def previous():
        apply(controller.previous())

    def shuffle():
        if apply(controller.shuffle_remaining()).applied:
            ui.notify("Remaining cards shuffled", type='info', position='bottom')

    def reset_order():
        apply(controller.reset_remaining_to_original())

    def review_missed():
        apply(controller.start_review_round())

    def study_missed():
        apply(controller.start_missed_cards_round())

    def restart():
        apply(controller.restart_session())

    def toggle_help():
        if help_dialog.value:
            help_dialog.close()
        else:
            help_dialog.open()

    # --- KEYBOARD ---
    def handle_key(e: events.KeyEventArguments):
        if not e.action.keydown or e.action.repeat:
            return
        view = controller.view()
        key = e.key.name.lower() if len(e.key.name) == 1 else e.key.name

        if key == 'h':
            toggle_help()
        elif key == 'r':
            restart()
        elif key == 'ArrowLeft':
            previous()
        elif view.is_round_complete:
            return
        elif key == ' ':
            show_answer()
        elif key == 'ArrowRight' and not view.show_answer:
            submit(Outcome.SKIP)
        elif key == 'y' and view.show_answer:
            submit(Outcome.CORRECT)
        elif key == 'n' and view.show_answer:
            submit(Outcome.INCORRECT)
        elif key == 's':
            shuffle()

    ui.keyboard(on_key=handle_key)

    with ui.dialog() as help_dialog, ui.card().classes('bg-gray-900 border border-white/10 w-96'):
        ui.label("Keyboard shortcuts").classes('text-xl font-bold text-white mb-2')
        for key, description in SHORTCUTS:
            with ui.row().classes('w-full justify-between'):
                ui.label(key).classes('font-mono text-indigo-300')
                ui.label(description).classes('text-gray-300')

    # --- RENDERING ---

    def render_card(view: StudyView):
        rnd = view.round
        card = view.current_card

        # HUD
        with ui.row().classes('w-full justify-between items-center mb-4 px-4 sm:px-0'):
            with ui.column().classes('w-1/2'):
                ui.label(f"{min(rnd.current_index + 1, rnd.total_cards)} / {rnd.total_cards}").classes('text-xs text-gray-400 font-mono')
                ui.linear_progress(value=view.progress, show_value=False)\
                    .props('size="10px" color="indigo-400" track-color="grey-8" rounded')
            with ui.row().classes('items-center gap-1'):
                if view.shuffled:
                    ui.label("SHUFFLED").classes('px-2 py-0.5 bg-yellow-500/20 rounded text-[10px] text-yellow-300 mr-2')
                    ui.button(icon='restart_alt', on_click=reset_order).props('flat round dense color=grey')\
                        .tooltip("Back to original order")
                ui.button(icon='shuffle', on_click=shuffle).props('flat round dense color=grey').tooltip("Shuffle remaining (S)")
                ui.button(icon='help_outline', on_click=toggle_help).props('flat round dense color=grey').tooltip("Shortcuts (H)")

        # Card
        with ui.card().classes('w-full min-h-[400px] bg-gray-900 border border-white/20 flex flex-col items-center justify-center p-8 relative overflow-hidden'):
            if controller.session.was_missed_before(card.id, controller.session.current_round_index):
                ui.label("missed before").classes('absolute top-0 left-0 m-4 px-2 py-0.5 bg-red-500/20 rounded text-[10px] text-red-300')
            ui.markdown(card.question).classes('text-xl text-center text-white mt-8')
            if view.show_answer or view.feedback:
                ui.separator().classes('w-1/2 my-6 opacity-30')
                ui.markdown(card.answer).classes('text-lg text-center text-gray-300 fade-in')
            if view.feedback:
                text, icon, color = FEEDBACK_STYLES[view.feedback]
                with ui.row().classes(f'items-center gap-2 mt-6 {color}'):
                    ui.icon(icon, size='md')
                    ui.label(text).classes('text-xl font-bold')

        # Controls
        with ui.row().classes('w-full items-center justify-center gap-4 mt-6 h-20'):
            back_btn = ui.button(icon='arrow_back', on_click=previous).props('round flat color=grey size=lg')
            if not view.can_go_back:
                back_btn.disable()

            if view.is_transitioning:
                ui.spinner('dots', size='lg', color='indigo')
            elif not view.show_answer:
                ui.button("SHOW ANSWER (Space)", on_click=show_answer)\
                    .props('size=lg color=indigo-600')\
                    .classes('w-full max-w-sm font-bold tracking-widest shadow-lg')
                ui.button(icon='redo', on_click=lambda: submit(Outcome.SKIP)) \
                    .props('round flat color=grey size=lg').tooltip("Skip (→)")
            else:
                ui.button(icon='close', on_click=lambda: submit(Outcome.INCORRECT)) \
                    .props('round color=red-900 size=lg').classes('border border-red-500 hover:scale-110 transition-transform').tooltip("Incorrect (N)")
                ui.button(icon='check', on_click=lambda: submit(Outcome.CORRECT)) \
                    .props('round color=green-900 size=lg').classes('border border-green-500 hover:scale-110 transition-transform').tooltip("Correct (Y)")

    def render_results(view: StudyView):
        summary = controller.summary()
        rnd = summary.current_round
        missed = summary.missed_cards
        to_review = controller.review_count

        with ui.column().classes('w-full items-center text-center gap-6 py-10'):
            ui.icon('emoji_events', size='6rem').classes('text-yellow-400 animate-bounce')
            ui.label("Round complete!").classes('text-4xl font-black text-white')
            ui.label(f"{rnd.accuracy}% accuracy").classes('text-2xl text-indigo-300 font-bold')

            with ui.grid(columns=3).classes('w-full max-w-lg gap-4'):
                for value, label, color in [
                    (rnd.correct, "Correct", 'text-green-400'),
                    (rnd.incorrect, "Incorrect", 'text-red-400'),
                    (rnd.skipped, "Skipped", 'text-gray-400'),
                ]:
                    with ui.column().classes('items-center p-3 bg-black/20 rounded-lg border border-white/10 gap-0'):
                        ui.label(str(value)).classes(f'text-2xl font-bold {color}')
                        ui.label(label).classes('text-[10px] text-gray-500 uppercase')

            with ui.row().classes('gap-8 text-sm text-gray-400'):
                ui.label(f"Round time {rnd.duration}")
                ui.label(f"Session time {summary.duration}")
                ui.label(f"Rounds played {summary.rounds_played}")

            with ui.row().classes('gap-4 mt-4'):
                if missed > 0:
                    ui.button(f"Study missed cards ({missed})", icon='replay', on_click=study_missed)\
                        .classes('bg-red-700 text-white font-bold')
                if to_review > 0:
                    ui.button(f"Review missed in this round ({to_review})", icon='style', on_click=review_missed)\
                        .classes('bg-indigo-600 text-white font-bold')
                ui.button("Restart", icon='restart_alt', on_click=restart).props('flat color=white')

            with ui.row().classes('gap-4'):
                back_btn = ui.button("Back to last card (←)", icon='arrow_back', on_click=previous).props('flat color=grey')
                if not view.can_go_back:
                    back_btn.disable()
                ui.button("Back to my sets", on_click=lambda: ui.navigate.to('/app')).props('flat color=grey')

    @ui.refreshable
    def study_view():
        view = controller.view()
        rnd = view.round
        ui.label(f"Round {rnd.round_number} - {ROUND_TITLES[rnd.round_type]}")\
            .classes('text-gray-400 text-sm font-bold tracking-widest uppercase mb-2')
        if view.is_round_complete:
            render_results(view)
        else:
            render_card(view)

    # --- LAYOUT ---
    with ui.column().classes('w-screen min-h-screen gradient-bg text-white items-center p-4') as page_root:
        ui.label(controller.study_set.name).classes('text-3xl font-extrabold text-indigo-300 mb-4 text-center')
        with ui.column().classes('w-full sm:max-w-4xl bg-black/30 border-y sm:border border-white/10 sm:rounded-xl shadow-2xl p-4 sm:p-6 items-center relative'):
            ui.button(icon='close', on_click=lambda: ui.navigate.to('/app')) \
                .props('flat round color=grey').classes('absolute top-4 right-4 z-50')
            study_view()
