from functools import partial
from nicegui import ui, app, run
from src.core.log_manager import logger
from src.pages.common import setup_page, create_navbar
from src.services.set_service import list_sets, rename_set, delete_set, SetNotFoundError

@ui.page('/app')
def sets_page():
    if not setup_page(restricted=True):
        return
    create_navbar()

    user_id = app.storage.user.get('id')

    # State for the set currently targeted by a dialog
    dialog_state = {"id": None, "name": ""}

    with ui.column().classes('w-screen min-h-screen gradient-bg overflow-auto pb-10 pt-6'):
        content_wrapper = ui.column().classes('w-full max-w-6xl mx-auto p-6 gap-8')

    # --- Delete Dialog ---
    async def execute_deletion():
        set_id, name = dialog_state["id"], dialog_state["name"]
        if not set_id:
            return
        delete_dialog.close()
        try:
            await run.io_bound(delete_set, set_id, user_id)
            ui.notify(f"Deleted '{name}'", type='positive')
        except SetNotFoundError:
            ui.notify("That set no longer exists.", type='warning')
        except Exception as e:
            logger.error(f"Deletion error: {e}")
            ui.notify("An unexpected error occurred.", type='negative')
        refresh_ui()

    with ui.dialog() as delete_dialog, ui.card().classes('bg-gray-900 border border-white/10'):
        delete_title_label = ui.label().classes('text-xl font-bold text-white')
        ui.label("All cards in this set will be deleted. This cannot be undone.").classes('text-gray-400')
        with ui.row().classes('w-full justify-end gap-4 mt-6'):
            ui.button("Cancel", on_click=delete_dialog.close).props('flat color=white')
            ui.button("Delete", color='red', on_click=execute_deletion).props('raised')

    def open_delete_dialog(set_id, name):
        dialog_state["id"], dialog_state["name"] = set_id, name
        delete_title_label.set_text(f"Delete '{name}'?")
        delete_dialog.open()

    # --- Rename Dialog ---
    async def execute_rename():
        set_id = dialog_state["id"]
        try:
            await run.io_bound(rename_set, set_id, user_id, rename_input.value)
        except ValueError as e:
            ui.notify(str(e), type='warning')
            return
        except SetNotFoundError:
            ui.notify("That set no longer exists.", type='warning')
        rename_dialog.close()
        refresh_ui()

    with ui.dialog() as rename_dialog, ui.card().classes('bg-gray-900 border border-white/10 w-96'):
        ui.label("Rename set").classes('text-xl font-bold text-white')
        rename_input = ui.input("Name").props('outlined dark').classes('w-full')
        with ui.row().classes('w-full justify-end gap-4 mt-6'):
            ui.button("Cancel", on_click=rename_dialog.close).props('flat color=white')
            ui.button("Save", on_click=execute_rename).props('raised color=indigo')

    def open_rename_dialog(set_id, name):
        dialog_state["id"], dialog_state["name"] = set_id, name
        rename_input.value = name
        rename_dialog.open()

    # --- Rendering ---
    def refresh_ui():
        sets = list_sets(user_id)

        content_wrapper.clear()
        with content_wrapper:
            with ui.row().classes('w-full justify-between items-end mb-2'):
                with ui.column().classes('gap-1'):
                    ui.label("My Sets").classes('text-4xl font-bold text-white')
                    ui.label("Study, edit or improve your flashcard sets.").classes('text-gray-400')
                ui.button("New set", icon='auto_awesome', on_click=lambda: ui.navigate.to('/app/create'))\
                    .classes('bg-indigo-600 text-white')

            if not sets:
                with ui.column().classes('w-full items-center justify-center py-12 opacity-50'):
                    ui.icon('style', size='4rem').classes('text-gray-600')
                    ui.label("You have no sets yet.").classes('text-xl text-gray-500 mt-4')
                    ui.button("Create your first set", on_click=lambda: ui.navigate.to('/app/create')) \
                        .classes('mt-4 border border-indigo-500 text-indigo-300 transparent')
                return

            with ui.grid(columns='1', rows='1').classes('w-full sm:grid-cols-2 lg:grid-cols-3 gap-6'):
                for summary in sets:
                    render_set_card(summary)

    def render_set_card(summary):
        with ui.card().classes('bg-black/40 border border-white/10 hover:border-indigo-400 transition-all duration-300 flex flex-col justify-between h-48 overflow-hidden relative'):
            with ui.row().classes('w-full justify-between items-start no-wrap'):
                ui.label(summary.name).classes('text-xl font-bold text-gray-100 leading-tight line-clamp-2')
                with ui.button(icon='more_vert').props('flat round dense').classes('text-gray-500 hover:text-white z-10'):
                    with ui.menu().classes('bg-gray-900 border border-white/10'):
                        ui.menu_item('Edit cards', on_click=partial(ui.navigate.to, f'/app/sets/{summary.id}'))
                        ui.menu_item('Rename', on_click=partial(open_rename_dialog, summary.id, summary.name))
                        ui.menu_item('Delete', on_click=partial(open_delete_dialog, summary.id, summary.name))\
                            .classes('text-red-400 hover:bg-red-900/30')

            ui.label(f"Updated {summary.updated_at}").classes('text-xs text-gray-500')

            with ui.row().classes('w-[calc(100%+2rem)] -ml-4 -mb-4 pt-3 pb-3 px-4 border-t border-white/10 bg-black/20 justify-between items-center'):
                ui.label(f"{summary.card_count} cards").classes('text-xs text-gray-500')
                study_btn = ui.button("Study", icon="play_arrow", on_click=partial(ui.navigate.to, f'/app/study?set_id={summary.id}')) \
                    .props("dense color=green-7 text-color=white no-caps") \
                    .classes('shadow-lg shadow-green-900/50 px-4 font-semibold')
                if summary.card_count == 0:
                    study_btn.disable()

    refresh_ui()
