# src/services/set_service.py
from typing import List
from datetime import datetime, timezone
from sqlmodel import Session, select, func, col
from src.database import engine
from src.models import FlashcardSet, Flashcard
from src.schemas import (
    CardDTO,
    CardInputDTO,
    CardUpdateDTO,
    SetCreateDTO,
    SetSummaryDTO,
    StudySetDTO,
)
from src.core.log_manager import logger


class SetNotFoundError(Exception):
    """The set (or card) does not exist or belongs to another user."""
    pass


def _get_owned_set(session: Session, set_id: str, user_id: int) -> FlashcardSet:
    flashcard_set = session.get(FlashcardSet, set_id)
    if not flashcard_set or flashcard_set.owner_id != user_id:
        raise SetNotFoundError("Set not found")
    return flashcard_set


def _get_owned_card(session: Session, set_id: str, card_id: str, user_id: int) -> Flashcard:
    flashcard_set = _get_owned_set(session, set_id, user_id)
    card = session.get(Flashcard, card_id)
    if not card or card.set_id != flashcard_set.id:
        raise SetNotFoundError("Card not found")
    return card


def _touch(flashcard_set: FlashcardSet):
    flashcard_set.updated_at = datetime.now(timezone.utc)


def _to_card_dto(card: Flashcard) -> CardDTO:
    return CardDTO(id=card.id, question=card.question, answer=card.answer)

# --- LOAD SET (the study engine's card store) ---

def get_set(set_id: str, user_id: int) -> StudySetDTO:
    """
    Returns the set with its cards in their stable order.
    Raises SetNotFoundError if missing or not owned by the user.
    """
    with Session(engine) as session:
        flashcard_set = _get_owned_set(session, set_id, user_id)
        statement = (
            select(Flashcard)
            .where(Flashcard.set_id == set_id)
            .order_by(Flashcard.position, Flashcard.created_at)
        )
        cards = session.exec(statement).all()
        return StudySetDTO(
            id=flashcard_set.id,
            name=flashcard_set.name,
            cards=[_to_card_dto(c) for c in cards],
        )

# --- SET CRUD ---

def list_sets(user_id: int) -> List[SetSummaryDTO]:
    """
    All sets of the user, newest first, with card counts.
    """
    with Session(engine) as session:
        # Count in SQL to avoid lazy-loading every card list
        statement = (
            select(FlashcardSet, func.count(Flashcard.id))
            .join(Flashcard, Flashcard.set_id == FlashcardSet.id, isouter=True)
            .where(FlashcardSet.owner_id == user_id)
            .group_by(FlashcardSet.id)
            .order_by(col(FlashcardSet.created_at).desc())
        )
        results = session.exec(statement).all()

        return [
            SetSummaryDTO(
                id=flashcard_set.id,
                name=flashcard_set.name,
                card_count=card_count,
                created_at=flashcard_set.created_at.strftime("%Y-%m-%d"),
                updated_at=flashcard_set.updated_at.strftime("%Y-%m-%d"),
            )
            for flashcard_set, card_count in results
        ]


def create_set(user_id: int, set_dto: SetCreateDTO) -> StudySetDTO:
    """
    Takes an already validated DTO and commits the set with its cards in order.
    """
    with Session(engine) as session:
        new_set = FlashcardSet(owner_id=user_id, name=set_dto.name)
        session.add(new_set)

        for position, card_dto in enumerate(set_dto.cards):
            session.add(Flashcard(
                set_id=new_set.id,
                question=card_dto.question,
                answer=card_dto.answer,
                position=position,
            ))

        session.commit()
        logger.info(f"Created set '{new_set.name}' (ID: {new_set.id}) with {len(set_dto.cards)} cards for User {user_id}")
        new_set_id = new_set.id

    return get_set(new_set_id, user_id)


def rename_set(set_id: str, user_id: int, name: str) -> StudySetDTO:
    clean_name = name.strip() if name else ""
    if not clean_name:
        raise ValueError("Invalid set name")

    with Session(engine) as session:
        flashcard_set = _get_owned_set(session, set_id, user_id)
        flashcard_set.name = clean_name
        _touch(flashcard_set)
        session.add(flashcard_set)
        session.commit()

    logger.info(f"Renamed set {set_id} to '{clean_name}'")
    return get_set(set_id, user_id)


def delete_set(set_id: str, user_id: int) -> bool:
    with Session(engine) as session:
        flashcard_set = _get_owned_set(session, set_id, user_id)
        # Cards go with the set (cascade on the relationship)
        session.delete(flashcard_set)
        session.commit()

    logger.info(f"Deleted set {set_id} for User {user_id}")
    return True

# --- CARD CRUD ---

def add_card(set_id: str, user_id: int, card_dto: CardInputDTO) -> CardDTO:
    with Session(engine) as session:
        flashcard_set = _get_owned_set(session, set_id, user_id)

        last_position = session.exec(
            select(func.max(Flashcard.position)).where(Flashcard.set_id == set_id)
        ).one()
        position = 0 if last_position is None else last_position + 1

        card = Flashcard(
            set_id=set_id,
            question=card_dto.question,
            answer=card_dto.answer,
            position=position,
        )
        session.add(card)
        _touch(flashcard_set)
        session.add(flashcard_set)
        session.commit()
        session.refresh(card)
        return _to_card_dto(card)


def update_card(set_id: str, card_id: str, user_id: int, changes: CardUpdateDTO) -> CardDTO:
    """
    Applies a partial update. Blank strings are rejected rather than stored.
    """
    updates = changes.model_dump(exclude_none=True)
    for field, value in updates.items():
        if not value.strip():
            raise ValueError(f"Card {field} must not be empty")

    with Session(engine) as session:
        card = _get_owned_card(session, set_id, card_id, user_id)
        for field, value in updates.items():
            setattr(card, field, value.strip())
        card.updated_at = datetime.now(timezone.utc)
        session.add(card)
        session.commit()
        session.refresh(card)
        return _to_card_dto(card)


def delete_card(set_id: str, card_id: str, user_id: int) -> bool:
    with Session(engine) as session:
        card = _get_owned_card(session, set_id, card_id, user_id)
        session.delete(card)
        session.commit()

    logger.info(f"Deleted card {card_id} from set {set_id}")
    return True
