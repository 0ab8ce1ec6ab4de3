from functools import partial
from typing import List
from nicegui import ui, app, events, run
from src.core.log_manager import logger
from src.pages.common import setup_page, create_navbar
from src.schemas import (
    CardInputDTO,
    ContentAnalysis,
    GenerateRequestDTO,
    GeneratedCardDTO,
    ImprovableCardDTO,
    ImproveSetRequestDTO,
    SetCreateDTO,
)
from src.services.ai_service import AIServiceError, FlashcardAI, IMPROVEMENT_DESCRIPTIONS, apply_improvements
from src.services.import_service import ExtractionError, extract_text
from src.services.set_service import create_set

IMPROVEMENT_LABELS = {
    "make_harder": "Make harder",
    "make_easier": "Make easier",
    "add_examples": "Add examples",
    "add_context": "Add context",
    "diversify_questions": "Diversify questions",
    "improve_clarity": "Improve clarity",
    "add_more_cards": "Add more cards",
    "fix_grammar": "Fix grammar",
}

class CreatePageState:
    def __init__(self):
        self.source_text: str = ""
        self.analysis: ContentAnalysis = None
        self.cards: List[GeneratedCardDTO] = []

@ui.page('/app/create')
def create_page():
    if not setup_page(restricted=True):
        return
    create_navbar()

    user_id = app.storage.user.get('id')
    state = CreatePageState()
    ai = FlashcardAI()

    # --- STEP 1: SOURCE ---
    async def handle_upload(e: events.UploadEventArguments):
        data = await e.file.read()
        try:
            text = await run.io_bound(extract_text, data, e.file.name, e.file.content_type)
        except ExtractionError as err:
            ui.notify(str(err), type='warning')
            return
        text_input.value = text
        ui.notify(f"Extracted {len(text)} characters from {e.file.name}", type='positive')

    async def analyze_and_continue():
        text = (text_input.value or "").strip()
        if len(text) < 10:
            ui.notify("Please provide at least 10 characters of text.", type='warning')
            return
        state.source_text = text

        notification = ui.notification("Analyzing content...", type='ongoing', spinner=True, timeout=None)
        try:
            state.analysis = await run.io_bound(ai.analyze_content, text)
        except AIServiceError as err:
            # Generation still works without an analysis
            logger.warning(f"Analysis failed, continuing without it: {err}")
            state.analysis = None
        finally:
            notification.dismiss()

        render_analysis()
        stepper.next()

    def render_analysis():
        analysis_container.clear()
        with analysis_container:
            if not state.analysis:
                ui.label("No analysis available. Cards will be generated with default settings.").classes('text-gray-400 italic')
                return
            a = state.analysis
            with ui.row().classes('items-center gap-2'):
                ui.label(a.content_type.upper()).classes('px-2 py-1 bg-indigo-500/20 rounded text-xs text-indigo-200 font-bold')
                ui.label(f"{round(a.confidence * 100)}% confidence").classes('text-xs text-gray-500')
            ui.label(a.summary).classes('text-gray-300')
            if a.key_topics:
                with ui.row().classes('gap-2 wrap'):
                    for topic in a.key_topics:
                        ui.label(topic).classes('px-2 py-1 bg-white/10 rounded text-xs text-indigo-200')
            if a.content_guidance.expected_range:
                ui.label(f"Suggested: {a.content_guidance.expected_range}").classes('text-sm text-gray-400')

    # --- STEP 2: GENERATE ---
    async def generate():
        try:
            request = GenerateRequestDTO(
                text=state.source_text,
                analysis=state.analysis,
                card_count=int(count_input.value) if count_input.value else None,
                custom_instructions=instructions_input.value or None,
            )
        except ValueError as err:
            ui.notify(str(err), type='warning')
            return

        notification = ui.notification("Generating flashcards...", type='ongoing', spinner=True, timeout=None)
        try:
            state.cards = await run.io_bound(ai.generate_cards, request)
        except AIServiceError as err:
            ui.notify(f"Generation failed: {err}", type='negative')
            return
        finally:
            notification.dismiss()

        render_cards()
        ui.notify(f"Generated {len(state.cards)} cards", type='positive')
        stepper.next()

    # --- STEP 3: REVIEW ---
    def update_card_field(index: int, field: str, e):
        state.cards[index] = state.cards[index].model_copy(update={field: e.value})

    def remove_card(index: int):
        del state.cards[index]
        render_cards()

    async def improve_all():
        improvement = improvement_select.value
        if not improvement or not state.cards:
            return
        originals = [
            ImprovableCardDTO(id=str(i), question=c.question, answer=c.answer)
            for i, c in enumerate(state.cards)
        ]
        request = ImproveSetRequestDTO(
            cards=originals,
            improvement=improvement,
            context=state.source_text,
            content_type=state.analysis.content_type if state.analysis else None,
        )
        notification = ui.notification(f"{IMPROVEMENT_LABELS.get(improvement, improvement)}...", type='ongoing', spinner=True, timeout=None)
        try:
            improved = await run.io_bound(ai.improve_set, request)
        except AIServiceError as err:
            ui.notify(f"Improvement failed: {err}", type='negative')
            return
        finally:
            notification.dismiss()

        state.cards = [c.model_copy(update={"id": None}) for c in apply_improvements(originals, improved)]
        render_cards()
        ui.notify("Set improved", type='positive')

    def render_cards():
        cards_container.clear()
        with cards_container:
            ui.label(f"{len(state.cards)} cards").classes('text-sm text-gray-400')
            for i, card in enumerate(state.cards):
                with ui.card().classes('w-full bg-black/30 border border-white/10 p-3'):
                    with ui.row().classes('w-full justify-between items-center'):
                        with ui.row().classes('items-center gap-2'):
                            ui.label(f"#{i + 1}").classes('text-gray-500 text-xs')
                            if card.is_new:
                                ui.label("NEW").classes('px-2 bg-green-500/20 rounded text-[10px] text-green-300')
                        ui.button(icon='close', on_click=partial(remove_card, i)).props('flat round dense color=grey')
                    ui.textarea("Question", value=card.question, on_change=partial(update_card_field, i, 'question'))\
                        .props('outlined dark autogrow dense').classes('w-full')
                    ui.textarea("Answer", value=card.answer, on_change=partial(update_card_field, i, 'answer'))\
                        .props('outlined dark autogrow dense').classes('w-full')

    # --- STEP 4: SAVE ---
    async def save():
        try:
            set_dto = SetCreateDTO(
                name=name_input.value or "",
                cards=[CardInputDTO(question=c.question, answer=c.answer) for c in state.cards],
            )
        except ValueError as err:
            ui.notify(str(err), type='warning')
            return
        saved = await run.io_bound(create_set, user_id, set_dto)
        ui.notify(f"Saved '{saved.name}'", type='positive')
        ui.navigate.to(f'/app/sets/{saved.id}')

    # --- LAYOUT ---
    with ui.column().classes('w-screen min-h-screen gradient-bg text-white p-8 overflow-y-auto'):
        with ui.column().classes('w-full items-center text-center max-w-3xl mx-auto mb-10'):
            ui.label("Create a set").classes('text-5xl font-extrabold text-white mt-12')
            ui.label("Paste notes or upload a document and let AI draft the cards.").classes('text-xl text-gray-400 mt-2')

        with ui.card().classes('w-full max-w-3xl bg-black/30 p-6 rounded-xl shadow-2xl border border-indigo-600/50 mx-auto'):
            with ui.stepper().props("vertical done-color='green'").classes('w-full transparent') as stepper:

                with ui.step("create_source", "Source material"):
                    text_input = ui.textarea("Paste your text here").props('outlined dark autogrow').classes('w-full')
                    ui.upload(on_upload=handle_upload, auto_upload=True, multiple=False)\
                        .props('accept=".pdf,.txt,.md" flat bordered').classes('w-full mt-4 bg-black/40 rounded-md')
                    with ui.stepper_navigation():
                        ui.button("Analyze", icon='insights', on_click=analyze_and_continue).classes('bg-indigo-600 text-white')

                with ui.step("create_generate", "Generate"):
                    analysis_container = ui.column().classes('w-full gap-2 mb-4')
                    count_input = ui.number("Number of cards (empty = automatic)", min=1, max=50, format='%d')\
                        .props('outlined dark').classes('w-full')
                    instructions_input = ui.input("Additional instructions (optional)").props('outlined dark').classes('w-full')
                    with ui.stepper_navigation():
                        ui.button("Back", on_click=stepper.previous).props('flat color=white')
                        ui.button("Generate", icon='auto_awesome', on_click=generate).classes('bg-indigo-600 text-white')

                with ui.step("create_review", "Review & improve"):
                    with ui.row().classes('w-full items-center gap-2'):
                        improvement_select = ui.select(IMPROVEMENT_LABELS, label="Improve the whole set")\
                            .props('outlined dark dense').classes('flex-grow')
                        ui.button("Apply", icon='auto_fix_high', on_click=improve_all).props('no-caps color=indigo')
                    improvement_hint = ui.label("").classes('text-xs text-gray-500')
                    improvement_select.on_value_change(lambda e: improvement_hint.set_text(IMPROVEMENT_DESCRIPTIONS.get(e.value, "")))
                    cards_container = ui.column().classes('w-full gap-2 mt-2')
                    with ui.stepper_navigation():
                        ui.button("Back", on_click=stepper.previous).props('flat color=white')
                        ui.button("Continue", on_click=stepper.next).classes('bg-indigo-600 text-white')

                with ui.step("create_save", "Save"):
                    name_input = ui.input("Set name").props('outlined dark').classes('w-full')
                    with ui.stepper_navigation():
                        ui.button("Back", on_click=stepper.previous).props('flat color=white')
                        ui.button("Save set", icon='save', on_click=save).classes('bg-green-600 text-white')
