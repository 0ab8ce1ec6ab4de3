from nicegui import app, ui

APP_TITLE = "F-Lash Cards"

GLOBAL_CSS = """
.gradient-bg { background: linear-gradient(135deg, #0f0c29 0%, #302b63 50%, #24243e 100%); }
.fade-in { animation: fadeIn 0.3s ease-in; }
@keyframes fadeIn { from { opacity: 0; } to { opacity: 1; } }
"""

def setup_page(restricted: bool = True, remove_url_params: bool = False) -> bool:
    ui.dark_mode() # Enable dark mode globally
    ui.add_head_html("<style>html, #c3 { padding: 0 !important;}</style>") # Remove default padding from html and #c3
    ui.add_css(GLOBAL_CSS)
    if restricted:
        # If the page is restricted, check for user session
        if not app.storage.user.get('id'):
            ui.notify("Please sign in first.", type='negative')
            ui.navigate.to('/')
            return False

    if remove_url_params:
        ui.run_javascript("window.history.replaceState(null, '', window.location.pathname);")

    return True

def logout():
    app.storage.user.clear()
    ui.navigate.to('/')

def create_navbar():
    with ui.header().classes('w-full bg-black text-white justify-between items-center px-6 py-2 shadow-md'):

        with ui.row().classes('items-center gap-4'):
            with ui.button(icon='menu').props('flat round color=white'):
                with ui.menu().props('auto-close'):
                    ui.menu_item("My Sets", on_click=lambda: ui.navigate.to('/app'))
                    ui.menu_item("Create with AI", on_click=lambda: ui.navigate.to('/app/create'))
                    ui.menu_item("Import JSON", on_click=lambda: ui.navigate.to('/app/import-json'))

            ui.label(APP_TITLE).classes('text-xl font-bold tracking-tight')

        with ui.row().classes('items-center gap-4'):
            ui.label(app.storage.user.get('name', '')).classes('text-sm text-gray-400')
            with ui.avatar(size='32px').classes('bg-gray-700 cursor-pointer'):
                ui.icon('person')
                with ui.menu().props('auto-close'):
                    ui.menu_item('Logout', on_click=logout)
