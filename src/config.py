import secrets
from typing import List
import dotenv
import os
dotenv.load_dotenv("secrets.env")

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    SECRET_KEY = secrets.token_hex(32)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///db/flashcards.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# --- AI ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_MAX_RETRIES = int(os.getenv("OPENAI_MAX_RETRIES", "2"))

# --- Study ---
# Pause between recording an answer and moving to the next card (seconds)
FEEDBACK_DELAY_SECONDS = float(os.getenv("FEEDBACK_DELAY_SECONDS", "1.0"))

# --- Uploads ---
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

_allowed_users_str = os.getenv("ALLOWED_USERS", "")
ALLOWED_USERS: List[str] = [
    email.strip() for email in _allowed_users_str.split(",") if email.strip()
]
