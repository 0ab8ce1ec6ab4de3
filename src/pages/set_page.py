from functools import partial
from nicegui import ui, app, run
from src.core.log_manager import logger
from src.pages.common import setup_page, create_navbar
from src.schemas import CardInputDTO, CardUpdateDTO, ImprovableCardDTO, RegenerateCardRequestDTO
from src.services.ai_service import AIServiceError, FlashcardAI
from src.services.set_service import get_set, add_card, update_card, delete_card, SetNotFoundError

@ui.page('/app/sets/{set_id}')
def set_page(set_id: str):
    if not setup_page(restricted=True):
        return
    create_navbar()

    user_id = app.storage.user.get('id')
    ai = FlashcardAI()

    try:
        study_set = get_set(set_id, user_id)
    except SetNotFoundError:
        logger.warning(f"Unauthorized access attempt to Set {set_id} by User {user_id}")
        ui.notify("Set not found.", type='negative')
        ui.navigate.to('/app')
        return

    with ui.column().classes('w-screen min-h-screen gradient-bg text-white items-center p-6'):
        with ui.row().classes('w-full max-w-4xl justify-between items-end mb-4'):
            with ui.column().classes('gap-1'):
                ui.label("Edit set").classes('text-gray-400 text-sm font-bold tracking-widest uppercase')
                ui.label(study_set.name).classes('text-3xl font-extrabold text-indigo-300')
            ui.button("Study", icon='play_arrow', on_click=lambda: ui.navigate.to(f'/app/study?set_id={set_id}'))\
                .props('color=green-7 no-caps')
        cards_container = ui.column().classes('w-full max-w-4xl gap-4')

        # New card form
        with ui.card().classes('w-full max-w-4xl bg-black/30 border border-indigo-600/50 mt-6'):
            ui.label("Add a card").classes('font-bold text-gray-300')
            new_question = ui.textarea("Question").props('outlined dark autogrow').classes('w-full')
            new_answer = ui.textarea("Answer").props('outlined dark autogrow').classes('w-full')
            ui.button("Add card", icon='add', on_click=lambda: handle_add()).classes('bg-indigo-600 text-white')

    async def handle_add():
        try:
            card_dto = CardInputDTO(question=new_question.value or "", answer=new_answer.value or "")
        except ValueError:
            ui.notify("Question and answer must not be empty.", type='warning')
            return
        await run.io_bound(add_card, set_id, user_id, card_dto)
        new_question.value, new_answer.value = "", ""
        ui.notify("Card added", type='positive')
        await refresh_cards()

    async def handle_save(card_id, question_input, answer_input):
        try:
            await run.io_bound(update_card, set_id, card_id, user_id,
                               CardUpdateDTO(question=question_input.value, answer=answer_input.value))
            ui.notify("Card saved", type='positive')
        except ValueError as e:
            ui.notify(str(e), type='warning')
        except SetNotFoundError:
            ui.notify("Card not found.", type='negative')

    async def handle_delete(card_id):
        try:
            await run.io_bound(delete_card, set_id, card_id, user_id)
        except SetNotFoundError:
            ui.notify("Card not found.", type='negative')
        await refresh_cards()

    async def handle_regenerate(card_id, question_input, answer_input, instruction_input):
        instruction = (instruction_input.value or "").strip()
        if not instruction:
            ui.notify("Describe how the card should change.", type='warning')
            return
        request = RegenerateCardRequestDTO(
            original_card=ImprovableCardDTO(id=card_id, question=question_input.value, answer=answer_input.value),
            instruction=instruction,
        )
        notification = ui.notification("Rewriting card...", type='ongoing', spinner=True, timeout=None)
        try:
            improved = await run.io_bound(ai.regenerate_card, request)
        except AIServiceError as e:
            ui.notify(f"AI error: {e}", type='negative')
            return
        finally:
            notification.dismiss()
        # Shown for review; the user still has to press save
        question_input.value = improved.question
        answer_input.value = improved.answer
        instruction_input.value = ""

    async def refresh_cards():
        current = await run.io_bound(get_set, set_id, user_id)
        cards_container.clear()
        with cards_container:
            if not current.cards:
                ui.label("This set has no cards yet.").classes('text-gray-500 italic')
            for i, card in enumerate(current.cards, 1):
                with ui.card().classes('w-full bg-black/40 border border-white/10'):
                    with ui.row().classes('w-full justify-between items-center'):
                        ui.label(f"#{i}").classes('text-gray-500 text-xs')
                        ui.button(icon='delete', on_click=partial(handle_delete, card.id))\
                            .props('flat round dense color=red')
                    question_input = ui.textarea("Question", value=card.question).props('outlined dark autogrow').classes('w-full')
                    answer_input = ui.textarea("Answer", value=card.answer).props('outlined dark autogrow').classes('w-full')
                    with ui.row().classes('w-full items-center gap-2'):
                        instruction_input = ui.input("AI instruction, e.g. 'add an example'").props('dense outlined dark').classes('flex-grow')
                        ui.button(icon='auto_awesome', on_click=partial(handle_regenerate, card.id, question_input, answer_input, instruction_input))\
                            .props('flat round color=indigo-300')
                        ui.button("Save", icon='save', on_click=partial(handle_save, card.id, question_input, answer_input))\
                            .props('dense no-caps color=indigo')

    ui.timer(0, refresh_cards, once=True)
