# src/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Literal

MAX_CARDS_PER_SET = 500

class CardInputDTO(BaseModel):
    question: str
    answer: str

    @field_validator('question', 'answer')
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Question and answer must not be empty.")
        return v.strip()

class CardDTO(BaseModel):
    id: str
    question: str
    answer: str

class CardUpdateDTO(BaseModel):
    question: Optional[str] = None
    answer: Optional[str] = None

class SetCreateDTO(BaseModel):
    name: str
    cards: List[CardInputDTO]

    @field_validator('name')
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Set name must not be empty.")
        return v.strip()

    @field_validator('cards')
    def validate_card_count(cls, v):
        if not v:
            raise ValueError("Set must contain at least one card.")
        if len(v) > MAX_CARDS_PER_SET:
            raise ValueError(f"Max {MAX_CARDS_PER_SET} cards per set allowed.")
        return v

class SetRenameDTO(BaseModel):
    name: str

    @field_validator('name')
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Set name must not be empty.")
        return v.strip()

class StudySetDTO(BaseModel):
    """
    The 'Load set' contract: everything the study engine needs, in set order.
    """
    id: str
    name: str
    cards: List[CardDTO]

class SetSummaryDTO(BaseModel):
    id: str
    name: str
    card_count: int
    created_at: str
    updated_at: str

# --- AI CONTRACTS ---

ContentType = Literal["vocabulary", "concepts", "mixed", "other"]

class VocabularyTerm(BaseModel):
    term: str
    definition: Optional[str] = None

class ContentGuidance(BaseModel):
    approach: Literal["one-per-term", "concept-coverage", "balanced"] = "balanced"
    rationale: str = ""
    expected_range: str = ""

class ContentAnalysis(BaseModel):
    content_type: ContentType = "other"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    summary: str = ""
    key_topics: List[str] = Field(default_factory=list)
    vocabulary_terms: List[VocabularyTerm] = Field(default_factory=list)
    content_guidance: ContentGuidance = Field(default_factory=ContentGuidance)
    suggested_focus: List[str] = Field(default_factory=list)
    reasoning: str = ""

class GeneratedCardDTO(BaseModel):
    """A card returned by the AI services. `id` is echoed back for improved cards."""
    question: str
    answer: str
    id: Optional[str] = None
    is_new: bool = False

class GenerateRequestDTO(BaseModel):
    text: str
    analysis: Optional[ContentAnalysis] = None
    card_count: Optional[int] = Field(default=None, ge=1, le=50)
    focus_areas: Optional[List[str]] = None
    custom_instructions: Optional[str] = None

    @field_validator('text')
    def validate_text(cls, v):
        if not v or len(v.strip()) < 10:
            raise ValueError("Text content is required and must be at least 10 characters long")
        return v

class ImprovableCardDTO(BaseModel):
    id: Optional[str] = None
    question: str
    answer: str

class ImproveSetRequestDTO(BaseModel):
    cards: List[ImprovableCardDTO]
    improvement: str
    custom_instruction: Optional[str] = None
    context: Optional[str] = None
    content_type: Optional[ContentType] = None
    target_card_count: Optional[int] = None

    @field_validator('cards')
    def validate_cards(cls, v):
        if not v:
            raise ValueError("Cards array is required and must not be empty")
        for card in v:
            if not card.question or not card.answer:
                raise ValueError("All cards must have valid question and answer strings")
        return v

    @field_validator('improvement')
    def validate_improvement(cls, v):
        if not v or not v.strip():
            raise ValueError("Improvement type is required")
        return v.strip()

class RegenerateCardRequestDTO(BaseModel):
    original_card: ImprovableCardDTO
    instruction: str
    context: Optional[str] = None
    content_type: Optional[ContentType] = None

    @field_validator('instruction')
    def validate_instruction(cls, v):
        if not v or not v.strip():
            raise ValueError("Improvement instruction is required")
        return v.strip()

# --- IMPORT ---

class SetImportDTO(BaseModel):
    name: str
    cards: List[CardInputDTO]

    @field_validator('name')
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Set name must not be empty.")
        return v.strip()

    @field_validator('cards')
    def validate_card_count(cls, v):
        if not v:
            raise ValueError("Set must contain at least one card.")
        if len(v) > MAX_CARDS_PER_SET:
            raise ValueError(f"Max {MAX_CARDS_PER_SET} cards per import allowed.")
        return v
