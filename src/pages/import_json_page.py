from nicegui import ui, app, events, run
from src.core.log_manager import logger
from src.pages.common import setup_page, create_navbar
from src.services.import_service import parse_and_preview_set, save_import

SAMPLE_FORMAT = '''```json
{
  "name": "Cell Biology",
  "cards": [
    {"question": "What is the powerhouse of the cell?", "answer": "The mitochondrion"},
    {"question": "What does the ribosome do?", "answer": "It synthesizes proteins"}
  ]
}
```'''

@ui.page('/app/import-json')
def import_json_page():
    if not setup_page(restricted=True):
        return
    create_navbar()
    ui.add_head_html('''
        <style>
            .q-markdown pre {
                white-space: pre-wrap !important;
                word-break: break-word !important;
                background: rgba(0, 0, 0, 0.3);
                padding: 1rem;
                border-radius: 0.5rem;
            }
        </style>
    ''')

    # The parsed DTO waits here between the preview and the save
    current_import_data = {"dto": None}

    async def handle_parsing(e: events.UploadEventArguments, stepper_element):
        """Upload -> Preview"""
        try:
            content = await e.file.text()
            result = parse_and_preview_set(content)
        except ValueError as err:
            ui.notify(str(err), type='warning')
            return
        except Exception as err:
            logger.error(f"Parse Error: {err}")
            ui.notify("Error parsing file", type='negative')
            return

        dto = result['dto']
        stats = result['stats']
        current_import_data['dto'] = dto

        review_container.clear()
        with review_container:
            with ui.card().classes('w-full bg-black/20 border border-white/10 p-4 mt-2'):
                with ui.row().classes('w-full justify-between items-center'):
                    ui.label(dto.name).classes('text-xl font-bold')
                    with ui.row().classes('items-center bg-indigo-500/20 px-3 py-1 rounded-full border border-indigo-500/50'):
                        ui.icon('style', size='xs').classes('mr-2')
                        ui.label(f"{stats['card_count']} Cards").classes('font-bold')

            with ui.grid(columns=2).classes('w-full gap-4 mt-4'):
                with ui.column().classes('p-3 bg-black/20 rounded-lg border border-white/10'):
                    ui.label("Duplicate questions").classes('text-xs text-gray-400 uppercase font-bold tracking-wider mb-2')
                    ui.label(str(stats['duplicate_questions'])).classes('text-lg text-indigo-200')
                with ui.column().classes('p-3 bg-black/20 rounded-lg border border-white/10'):
                    ui.label("Average answer length").classes('text-xs text-gray-400 uppercase font-bold tracking-wider mb-2')
                    ui.label(f"{stats['avg_answer_length']} chars").classes('text-lg text-indigo-200')

            with ui.expansion(f"View all {stats['card_count']} Cards", icon="visibility").classes('w-full mt-4 bg-black/20 rounded-lg border border-white/10'):
                with ui.scroll_area().classes('h-64 w-full p-2'):
                    with ui.column().classes('gap-2 w-full'):
                        for i, card in enumerate(dto.cards, 1):
                            with ui.row().classes('w-full items-start p-2 bg-black/30 rounded border border-white/5 no-wrap'):
                                ui.label(f"#{i}").classes('text-gray-500 text-xs mt-1 mr-2 w-6')
                                question_preview = (card.question[:75] + '...') if len(card.question) > 75 else card.question
                                ui.markdown(question_preview).classes('text-sm text-gray-200')

        ui.notify(f"'{dto.name}' is ready to import ({len(dto.cards)} cards)", type='positive')
        stepper_element.next()

    async def finalize_import(stepper_element):
        """Preview -> Saved"""
        if not current_import_data['dto']:
            return

        user_id = app.storage.user.get('id')
        try:
            saved = await run.io_bound(save_import, user_id, current_import_data['dto'])
        except Exception as e:
            logger.error(f"Import save failed: {e}")
            ui.notify(f"Database Error: {e}", type='negative')
            return
        current_import_data['dto'] = None
        ui.notify(f"Success! Imported '{saved.name}'", type='positive')
        stepper_element.next()

    with ui.column().classes('w-screen min-h-screen gradient-bg text-white p-8 overflow-y-auto overflow-x-auto'):

        with ui.column().classes('w-full items-center text-center max-w-3xl mx-auto mb-10'):
            ui.label("Import a set").classes('text-5xl font-extrabold text-white mt-12')
            ui.label("Bring cards you already have as a JSON file.").classes('text-xl text-gray-400 mt-2')

        ui.separator().classes('w-1/2 mx-auto bg-white/70 mb-10')

        with ui.card().classes('max-w-3xl bg-black/30 p-6 rounded-xl shadow-2xl border border-indigo-600/50 hover:border-indigo-500 transition-all duration-300 mx-auto'):
            with ui.stepper().props("vertical done-color='green'").classes('w-full max-w-3xl mx-auto transparent') as stepper:

                with ui.step("import_json_format", "File format"):
                    ui.markdown("The file must contain one set with a name and a list of cards:").classes('text-lg text-gray-300')
                    ui.markdown(SAMPLE_FORMAT).classes('w-full')
                    ui.markdown("Basic formatting tags (`<b>`, `<i>`, `<code>`, lists) are kept; everything else is stripped.")\
                        .classes('text-sm text-gray-400')
                    with ui.stepper_navigation():
                        ui.button("Next", on_click=stepper.next, icon="arrow_downward").classes('border border-green-500 transparent')

                with ui.step("import_json_upload", "Upload"):
                    ui.upload(
                        on_upload=lambda e: handle_parsing(e, stepper),
                        max_file_size=1_000_000,
                        multiple=False,
                        auto_upload=True
                    ).props('accept=".json" color="indigo-10" flat bordered').classes('w-full mt-4 bg-black/40 rounded-md')
                    with ui.stepper_navigation():
                        ui.button("Back", on_click=stepper.previous, icon="arrow_upward").classes('border border-yellow-500 transparent')

                with ui.step("import_json_review", "Review"):
                    review_container = ui.column().classes('w-full')
                    with ui.row().classes('mt-6 w-full justify-between'):
                        ui.button("Upload another file", icon="arrow_upward", on_click=stepper.previous).classes('border border-red-500 text-red-400 transparent')
                        ui.button("Confirm import", icon="check_circle", on_click=lambda: finalize_import(stepper)).classes('bg-green-600 text-white hover:bg-green-500')

                with ui.step("import_json_done", "Done").props("active-color='green'"):
                    ui.label("Your set was imported.").classes('text-lg text-green-400 mb-4')
                    with ui.row():
                        ui.button("Go to my sets", icon="library_books", on_click=lambda: ui.navigate.to('/app')).classes('border border-indigo-500 transparent')
                        ui.button("Import another", icon="refresh", on_click=lambda: stepper.set_value("import_json_upload")).classes('ml-4 border border-white transparent')
