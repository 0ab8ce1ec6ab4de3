# src/database.py
import os
from sqlmodel import SQLModel, create_engine
from src.config import DATABASE_URL
from src.core.log_manager import logger

# check_same_thread=False is needed for SQLite with NiceGUI/FastAPI concurrency
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=False, connect_args=_connect_args)

def init_db():
    """
    Creates the tables for users, sets and cards.
    Registered as a NiceGUI startup hook in main.py.
    """
    from src.models import User, FlashcardSet, Flashcard # Import to register models
    if DATABASE_URL.startswith("sqlite:///"):
        # SQLite will not create the parent folder of the db file
        db_dir = os.path.dirname(DATABASE_URL.replace("sqlite:///", "", 1))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    SQLModel.metadata.create_all(engine)
    logger.info(f"Database initialized at {DATABASE_URL}")
