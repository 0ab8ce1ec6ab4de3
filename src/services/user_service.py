# src/services/user_service.py
from sqlmodel import Session, select
from src.database import engine
from src.models import User
from src.core.log_manager import logger
from src.config import ALLOWED_USERS

class AuthError(Exception):
    """Custom exception for sign-in failures."""
    pass

def get_or_create_user(email: str, name: str) -> User:
    """
    Checks if a user exists by email.
    If yes: Updates the display name if it changed.
    If no: Creates a new record.
    Returns: The User database object.
    """
    email = (email or "").strip().lower()
    name = (name or "").strip()

    if not email or "@" not in email:
        raise ValueError("A valid email is required to sign in")
    if not name:
        name = email.split("@", 1)[0]

    if ALLOWED_USERS and email not in [allowed.lower() for allowed in ALLOWED_USERS]:
        logger.warning(f"Sign-in attempt blocked for non-whitelisted user: {email}")
        raise AuthError("This email is not authorized to access this instance.")

    with Session(engine) as session:
        # 1. Try to find existing user
        user = session.exec(select(User).where(User.email == email)).first()

        if user:
            # 2. Sync the display name
            if user.name != name:
                user.name = name
                session.add(user)
                session.commit()
                session.refresh(user)
                logger.info(f"Updated user profile for: {email}")
            else:
                logger.info(f"User sign-in (existing): {email}")

        else:
            # 3. Create new user
            user = User(email=email, name=name)
            session.add(user)
            session.commit()
            session.refresh(user)
            logger.info(f"Created new user: {email}")

        return user
