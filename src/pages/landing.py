from nicegui import ui, app, run
from src.pages.common import setup_page, APP_TITLE
from src.services.user_service import get_or_create_user, AuthError
from src.core.log_manager import logger

@ui.page('/')
def landing_page():
    if not setup_page(restricted=False):
        return

    if app.storage.user.get('id'):
        ui.navigate.to('/app')
        return

    async def handle_login():
        email = email_input.value
        name = name_input.value

        try:
            db_user = await run.io_bound(get_or_create_user, email, name)
        except AuthError as e:
            logger.warning(f"Sign-in blocked: {e}")
            ui.notify(str(e), type='negative')
            return
        except ValueError as e:
            ui.notify(str(e), type='warning')
            return

        app.storage.user['id'] = db_user.id
        app.storage.user['email'] = db_user.email
        app.storage.user['name'] = db_user.name

        logger.info(f"Login Complete. User ID: {db_user.id}")
        ui.notify(f"Welcome, {db_user.name}!", type='positive')
        ui.navigate.to('/app')

    # Root Container (gradient, fullscreen, card centered)
    with ui.column().classes('w-screen h-screen gradient-bg overflow-hidden justify-center items-center'):
        with ui.card().classes("justify-left transparent shadow-none max-w-4xl w-full p-10"):
            with ui.column().classes('max-w-xxl gap-6'):
                ui.label(APP_TITLE).classes('app-title text-5xl font-extrabold text-white')
                ui.label("Turn your notes into flashcards and study them in rounds.").classes('app-subtitle text-xl text-gray-300')
                ui.label("Paste text or upload a PDF, let AI draft the cards, then drill until every card sticks.")\
                    .classes('text-white/75 italic max-w-lg text-lg')

                # Sign-In Form
                with ui.column().classes('backdrop-blur-md bg-black/30 p-6 mt-4 w-full rounded-xl gap-3'):
                    email_input = ui.input("Email").props('outlined dark').classes('w-full')
                    name_input = ui.input("Display name (optional)").props('outlined dark').classes('w-full')
                    email_input.on('keydown.enter', handle_login)
                    ui.button("Sign in", icon='login', on_click=handle_login).classes('bg-indigo-600 text-white font-bold w-full')
                    ui.label("Profiles are local to this instance. Your sets are only visible to you.")\
                        .classes('text-white/60 text-s max-w-md border-t border-white/20 pt-2 mt-2')
