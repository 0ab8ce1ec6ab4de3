from typing import Optional, List
from datetime import datetime, timezone
import uuid
from sqlmodel import SQLModel, Field, Relationship


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str
    created_at: datetime = Field(default_factory=_utcnow)

    # Relationships
    sets: List["FlashcardSet"] = Relationship(back_populates="owner")


class FlashcardSet(SQLModel, table=True):
    """
    A named, ordered collection of flashcards owned by one user.
    """
    id: str = Field(default_factory=_new_id, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)

    name: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # Relationships
    owner: User = Relationship(back_populates="sets")
    cards: List["Flashcard"] = Relationship(
        back_populates="flashcard_set",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Flashcard.position"},
    )


class Flashcard(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    set_id: str = Field(foreign_key="flashcardset.id", index=True)

    question: str
    answer: str
    # Stable presentation order inside the set
    position: int = Field(default=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # Relationships
    flashcard_set: FlashcardSet = Relationship(back_populates="cards")
