# src/services/import_service.py
import io
import json
import re
import bleach
from collections import Counter
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError
from src.config import MAX_UPLOAD_BYTES
from src.schemas import SetImportDTO, SetCreateDTO, StudySetDTO
from src.services.set_service import create_set
from src.core.log_manager import logger

ALLOWED_TAGS = ['b', 'i', 'strong', 'em', 'p', 'br', 'ul', 'ol', 'li', 'code', 'pre', 'blockquote', 'span']

class ExtractionError(ValueError):
    """The uploaded document could not be turned into text."""
    pass

def sanitize_html(content: str) -> str:
    if not content: return ""
    return bleach.clean(content, tags=ALLOWED_TAGS, strip=True)

# --- JSON IMPORT ---

def parse_and_preview_set(file_content: str) -> dict:
    """
    1. Parses JSON.
    2. Validates Schema.
    3. Sanitizes HTML immediately (so preview shows what will be saved).
    4. Calculates Stats.
    Returns: A dict containing the 'dto' and 'stats'.
    """
    try:
        data = json.loads(file_content)
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON file format.")

    if not isinstance(data, dict):
        raise ValueError("Schema Error: the file must contain a single set object.")

    try:
        set_dto = SetImportDTO(**data)
    except Exception as e:
        raise ValueError(f"Schema Error: {e}")

    for card in set_dto.cards:
        card.question = sanitize_html(card.question)
        card.answer = sanitize_html(card.answer)

    # Cards reduced to nothing by sanitizing are dropped
    set_dto.cards = [c for c in set_dto.cards if c.question.strip() and c.answer.strip()]
    if not set_dto.cards:
        raise ValueError("No usable cards left after cleaning the file.")

    question_counts = Counter(c.question.strip().lower() for c in set_dto.cards)
    duplicates = [q for q, n in question_counts.items() if n > 1]

    stats = {
        "card_count": len(set_dto.cards),
        "duplicate_questions": len(duplicates),
        "avg_answer_length": round(sum(len(c.answer) for c in set_dto.cards) / len(set_dto.cards)),
    }

    return {"dto": set_dto, "stats": stats}

def save_import(user_id: int, set_dto: SetImportDTO) -> StudySetDTO:
    """
    Takes the already validated DTO and commits it to SQL.
    """
    saved = create_set(user_id, SetCreateDTO(name=set_dto.name, cards=set_dto.cards))
    logger.info(f"Import Success: Set '{saved.name}' (ID: {saved.id})")
    return saved

# --- TEXT EXTRACTION ---

def normalize_text(text: str) -> str:
    """Collapses runs of spaces and keeps at most one blank line between paragraphs."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()

def _extract_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            reader.decrypt("")
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError) as e:
        raise ExtractionError(f"Could not read PDF: {e}")
    return "\n\n".join(pages)

def extract_text(data: bytes, filename: str = "", content_type: str = "") -> str:
    """
    Turns an uploaded document into plain text for card generation.
    PDFs go through PyPDF2, everything else is decoded as UTF-8.
    """
    if not data:
        raise ExtractionError("The uploaded file is empty.")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ExtractionError(f"File too large (max {MAX_UPLOAD_BYTES // (1024 * 1024)} MB).")

    is_pdf = "application/pdf" in (content_type or "") or filename.lower().endswith(".pdf") or data[:5] == b"%PDF-"
    if is_pdf:
        raw = _extract_pdf(data)
    else:
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError:
            raise ExtractionError("Only UTF-8 text and PDF files are supported.")

    text = normalize_text(raw)
    if not text:
        raise ExtractionError("No text could be extracted from the file.")

    logger.info(f"Extracted {len(text)} characters from '{filename or 'upload'}' (pdf={is_pdf})")
    return text
