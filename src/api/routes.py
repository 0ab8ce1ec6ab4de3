# src/api/routes.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from nicegui import app
from pydantic import BaseModel

from src.core.log_manager import logger
from src.schemas import (
    CardDTO,
    CardInputDTO,
    CardUpdateDTO,
    ContentAnalysis,
    GenerateRequestDTO,
    GeneratedCardDTO,
    ImproveSetRequestDTO,
    RegenerateCardRequestDTO,
    SetCreateDTO,
    SetRenameDTO,
    SetSummaryDTO,
    StudySetDTO,
)
from src.services import set_service
from src.services.ai_service import AIServiceError, FlashcardAI, apply_improvements
from src.services.import_service import ExtractionError, extract_text
from src.services.set_service import SetNotFoundError

router = APIRouter(prefix="/api")

# --- DEPENDENCIES ---

def current_user_id() -> int:
    user_id = app.storage.user.get('id')
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id

def get_ai() -> FlashcardAI:
    return FlashcardAI()

def _ai_error(e: AIServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))

# --- RESPONSE MODELS ---

class AnalyzeRequest(BaseModel):
    text: str

class FlashcardsResponse(BaseModel):
    flashcards: List[GeneratedCardDTO]
    count: int

class RegeneratedCardResponse(BaseModel):
    flashcard: GeneratedCardDTO

class ExtractedTextResponse(BaseModel):
    text: str
    filename: Optional[str] = None
    characters: int

# --- SETS ---

@router.get("/sets", response_model=List[SetSummaryDTO])
def list_sets(user_id: int = Depends(current_user_id)):
    return set_service.list_sets(user_id)

@router.post("/sets", response_model=StudySetDTO, status_code=201)
def create_set(payload: SetCreateDTO, user_id: int = Depends(current_user_id)):
    return set_service.create_set(user_id, payload)

@router.get("/sets/{set_id}", response_model=StudySetDTO)
def get_set(set_id: str, user_id: int = Depends(current_user_id)):
    try:
        return set_service.get_set(set_id, user_id)
    except SetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.patch("/sets/{set_id}", response_model=StudySetDTO)
def rename_set(set_id: str, payload: SetRenameDTO, user_id: int = Depends(current_user_id)):
    try:
        return set_service.rename_set(set_id, user_id, payload.name)
    except SetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.delete("/sets/{set_id}")
def delete_set(set_id: str, user_id: int = Depends(current_user_id)):
    try:
        set_service.delete_set(set_id, user_id)
    except SetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}

# --- CARDS ---

@router.post("/sets/{set_id}/cards", response_model=CardDTO, status_code=201)
def add_card(set_id: str, payload: CardInputDTO, user_id: int = Depends(current_user_id)):
    try:
        return set_service.add_card(set_id, user_id, payload)
    except SetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.patch("/sets/{set_id}/cards/{card_id}", response_model=CardDTO)
def update_card(set_id: str, card_id: str, payload: CardUpdateDTO, user_id: int = Depends(current_user_id)):
    try:
        return set_service.update_card(set_id, card_id, user_id, payload)
    except SetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/sets/{set_id}/cards/{card_id}")
def delete_card(set_id: str, card_id: str, user_id: int = Depends(current_user_id)):
    try:
        set_service.delete_card(set_id, card_id, user_id)
    except SetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}

# --- AI ---

@router.post("/content/analyze", response_model=ContentAnalysis)
def analyze_content(payload: AnalyzeRequest, ai: FlashcardAI = Depends(get_ai), user_id: int = Depends(current_user_id)):
    try:
        return ai.analyze_content(payload.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AIServiceError as e:
        logger.error(f"Content analysis failed for User {user_id}: {e}")
        raise _ai_error(e)

@router.post("/flashcards/generate", response_model=FlashcardsResponse)
def generate_flashcards(payload: GenerateRequestDTO, ai: FlashcardAI = Depends(get_ai), user_id: int = Depends(current_user_id)):
    try:
        cards = ai.generate_cards(payload)
    except AIServiceError as e:
        logger.error(f"Flashcard generation failed for User {user_id}: {e}")
        raise _ai_error(e)
    return FlashcardsResponse(flashcards=cards, count=len(cards))

@router.post("/flashcards/improve-set", response_model=FlashcardsResponse)
def improve_set(payload: ImproveSetRequestDTO, ai: FlashcardAI = Depends(get_ai), user_id: int = Depends(current_user_id)):
    try:
        improved = ai.improve_set(payload)
    except AIServiceError as e:
        logger.error(f"Set improvement failed for User {user_id}: {e}")
        raise _ai_error(e)
    merged = apply_improvements(payload.cards, improved)
    return FlashcardsResponse(flashcards=merged, count=len(merged))

@router.post("/flashcards/regenerate-card", response_model=RegeneratedCardResponse)
def regenerate_card(payload: RegenerateCardRequestDTO, ai: FlashcardAI = Depends(get_ai), user_id: int = Depends(current_user_id)):
    try:
        card = ai.regenerate_card(payload)
    except AIServiceError as e:
        logger.error(f"Card regeneration failed for User {user_id}: {e}")
        raise _ai_error(e)
    return RegeneratedCardResponse(flashcard=card)

@router.post("/flashcards/extract-text", response_model=ExtractedTextResponse)
async def extract_uploaded_text(file: UploadFile = File(...), user_id: int = Depends(current_user_id)):
    data = await file.read()
    try:
        text = extract_text(data, file.filename or "", file.content_type or "")
    except ExtractionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ExtractedTextResponse(text=text, filename=file.filename, characters=len(text))
