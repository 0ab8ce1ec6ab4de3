# main.py
from nicegui import ui, app
from src.config import SECRET_KEY
from src.database import init_db
from src.core.log_manager import logger
from src.api.routes import router

# --- PAGE REGISTRATION (each module registers its @ui.page routes on import) ---
import src.pages.landing
import src.pages.sets_page
import src.pages.set_page
import src.pages.create_page
import src.pages.import_json_page
import src.pages.study_page

from src.pages.common import APP_TITLE

# --- REST API ---
app.include_router(router)

app.on_startup(init_db)

# --- STARTUP ---
if __name__ in {"__main__", "__mp_main__"}:
    logger.info("Starting F-Lash Cards on port 8080")
    ui.run(title=APP_TITLE, reload=True, port=8080, storage_secret=SECRET_KEY)
