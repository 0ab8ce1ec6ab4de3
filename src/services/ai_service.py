# src/services/ai_service.py
import json
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from src.config import OPENAI_API_KEY, OPENAI_MODEL, OPENAI_MAX_RETRIES
from src.core.log_manager import logger
from src.schemas import (
    ContentAnalysis,
    ContentGuidance,
    GenerateRequestDTO,
    GeneratedCardDTO,
    ImprovableCardDTO,
    ImproveSetRequestDTO,
    RegenerateCardRequestDTO,
    VocabularyTerm,
)

# --- ERRORS ---

class AIServiceError(Exception):
    """Base error for anything that went wrong talking to the model."""
    status_code = 500

class AIConfigurationError(AIServiceError):
    """No API key, or the client could not be created."""
    status_code = 500

class AIResponseError(AIServiceError):
    """The model answered, but nothing usable could be parsed from it."""
    status_code = 502

# --- CONSTANTS ---

CONTENT_TYPES = ("vocabulary", "concepts", "mixed", "other")
GUIDANCE_APPROACHES = ("one-per-term", "concept-coverage", "balanced")

MIN_GENERATED_CARDS = 5
MAX_GENERATED_CARDS = 25
WORDS_PER_CARD = 50
DEFAULT_ADDED_CARDS = 3

IMPROVEMENT_DESCRIPTIONS = {
    "make_harder": "Increase difficulty by adding complexity, nuance, or requiring deeper analysis",
    "make_easier": "Simplify language and concepts while keeping the educational value",
    "add_examples": "Include concrete examples, scenarios, or practical applications",
    "add_context": "Provide more background information and contextual details",
    "diversify_questions": "Use more varied question types and formats to avoid repetition",
    "improve_clarity": "Improve wording and structure so each card is easier to understand",
    "add_more_cards": "Add cards to improve coverage of the material",
    "fix_grammar": "Correct grammatical errors and improve language quality",
}

IMPROVEMENT_GUIDELINES = {
    "make_harder": [
        "Ask for multi-step reasoning or analysis",
        "Include edge cases or exceptions",
        "Add 'why' or 'how' elements to questions",
    ],
    "make_easier": [
        "Simplify vocabulary and sentence structure",
        "Break complex concepts into simpler parts",
        "Focus on fundamental understanding",
    ],
    "add_examples": [
        "Include concrete examples in questions or answers",
        "Add real-world applications or scenarios",
    ],
    "add_context": [
        "Explain relationships to other concepts",
        "Add historical or practical background where it helps",
    ],
    "diversify_questions": [
        "Mix formats: fill-in-the-blank, scenario, comparison",
        "Vary between recall, understanding and application",
    ],
    "improve_clarity": [
        "Make questions specific and unambiguous",
        "Make sure each question has exactly one correct interpretation",
    ],
    "fix_grammar": [
        "Correct grammar, typos, punctuation and capitalization",
        "Keep the meaning of every card unchanged",
    ],
}

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

# --- PARSING (never raises on malformed model output) ---

def is_valid_card(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and isinstance(item.get("question"), str)
        and isinstance(item.get("answer"), str)
        and bool(item["question"].strip())
        and bool(item["answer"].strip())
    )

def clean_response(text: str) -> str:
    """Strips markdown code fences the model sometimes wraps JSON in."""
    return _FENCE_RE.sub("", text or "").strip()

def extract_json(text: str, expect: str = "array") -> Optional[Any]:
    """
    Best effort JSON extraction: the whole (fence-stripped) response first,
    then the outermost [...] or {...} block found inside it.
    Returns None when nothing parses.
    """
    cleaned = clean_response(text)
    if not cleaned:
        return None
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    pattern = _ARRAY_RE if expect == "array" else _OBJECT_RE
    match = pattern.search(cleaned)
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Model response contained a JSON-looking block that did not parse.")
        return None

def parse_completion_to_cards(text: str) -> List[Dict[str, Any]]:
    """
    Turns raw completion text into card dicts.

    A JSON array is accepted only if every item is a valid card (extra keys are kept);
    otherwise the text is read as `Q:` / `A:` blocks, where answers may span several lines
    until a blank line or the next `Q:`.
    """
    if not text or not text.strip():
        return []

    trimmed = text.strip()
    try:
        parsed = json.loads(trimmed)
        if isinstance(parsed, list) and parsed and all(is_valid_card(item) for item in parsed):
            return [dict(item) for item in parsed]
    except json.JSONDecodeError as e:
        if trimmed.startswith(("[", "{")):
            logger.error(f"Failed to parse flashcards: {e}")

    cards: List[Dict[str, Any]] = []
    question, answer = "", ""
    in_answer = False

    for raw_line in trimmed.split("\n"):
        line = raw_line.strip()
        if line.startswith("Q:"):
            if question and answer:
                cards.append({"question": question.strip(), "answer": answer.strip()})
            question = line[2:].strip()
            answer = ""
            in_answer = False
        elif line.startswith("A:"):
            answer = line[2:].strip()
            in_answer = True
        elif in_answer and line:
            answer += "\n" + line
        else:
            in_answer = False

    if question and answer:
        cards.append({"question": question.strip(), "answer": answer.strip()})

    return cards

def parse_generated_cards(response: str) -> List[GeneratedCardDTO]:
    """
    Cards from a generation/improvement response: JSON (array or {"flashcards": [...]})
    with invalid entries dropped, falling back to Q:/A: text.
    """
    parsed = extract_json(response, expect="array")
    if isinstance(parsed, dict) and isinstance(parsed.get("flashcards"), list):
        parsed = parsed["flashcards"]

    items: List[Dict[str, Any]] = []
    if isinstance(parsed, list):
        items = [item for item in parsed if is_valid_card(item)]
        if len(items) < len(parsed):
            logger.warning(f"Dropped {len(parsed) - len(items)} malformed cards from model output.")
    if not items:
        items = parse_completion_to_cards(clean_response(response))

    cards = []
    for item in items:
        card_id = item.get("id")
        cards.append(GeneratedCardDTO(
            question=item["question"].strip(),
            answer=item["answer"].strip(),
            id=str(card_id) if card_id is not None else None,
            is_new=bool(item.get("isNew", item.get("is_new", False))),
        ))
    return cards

def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]

def sanitize_analysis(raw: Dict[str, Any]) -> ContentAnalysis:
    """Coerces the model's analysis object into a ContentAnalysis with safe defaults."""
    required = ["contentType", "summary", "keyTopics", "suggestedFocus"]
    missing = [field for field in required if field not in raw]
    if missing:
        raise AIResponseError(f"Analysis missing required fields: {', '.join(missing)}")

    content_type = raw.get("contentType")
    if content_type not in CONTENT_TYPES:
        content_type = "other"

    try:
        confidence = float(raw.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.5
    confidence = min(max(confidence, 0.0), 1.0)

    terms = []
    for term in raw.get("vocabularyTerms") or []:
        if isinstance(term, dict) and isinstance(term.get("term"), str) and term["term"].strip():
            definition = term.get("definition")
            terms.append(VocabularyTerm(
                term=term["term"].strip(),
                definition=definition.strip() if isinstance(definition, str) and definition.strip() else None,
            ))

    guidance_raw = raw.get("contentGuidance") if isinstance(raw.get("contentGuidance"), dict) else {}
    approach = guidance_raw.get("approach")
    guidance = ContentGuidance(
        approach=approach if approach in GUIDANCE_APPROACHES else "balanced",
        rationale=str(guidance_raw.get("rationale") or ""),
        expected_range=str(guidance_raw.get("expectedRange") or ""),
    )

    return ContentAnalysis(
        content_type=content_type,
        confidence=confidence,
        summary=str(raw.get("summary") or ""),
        key_topics=_string_list(raw.get("keyTopics"))[:5],
        vocabulary_terms=terms,
        content_guidance=guidance,
        suggested_focus=_string_list(raw.get("suggestedFocus")),
        reasoning=str(raw.get("reasoning") or ""),
    )

# --- PROMPTS ---

def target_card_count(text: str, requested: Optional[int] = None) -> int:
    if requested:
        return requested
    word_count = len(text.split())
    return max(MIN_GENERATED_CARDS, min(MAX_GENERATED_CARDS, word_count // WORDS_PER_CARD))

def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")

def build_analysis_prompt(text: str) -> str:
    word_count = len(text.split())
    return f"""Analyze the following text for flashcard creation.

TEXT TO ANALYZE ({word_count} words):
{text}

Return a JSON object with this exact structure:
{{
  "contentType": "vocabulary" | "concepts" | "mixed" | "other",
  "confidence": 0.0-1.0,
  "summary": "what the content contains",
  "keyTopics": ["3-5 main subjects"],
  "vocabularyTerms": [{{"term": "word", "definition": "meaning if found"}}],
  "contentGuidance": {{
    "approach": "one-per-term" | "concept-coverage" | "balanced",
    "rationale": "why this approach",
    "expectedRange": "e.g. '8-12 cards' or '1 card per term'"
  }},
  "suggestedFocus": ["definitions", "applications", "comparisons"],
  "reasoning": "why you classified it this way"
}}

"vocabulary" is mostly terms and definitions, "concepts" is ideas and processes,
"mixed" is both, "other" is lists, facts or data."""

def build_generation_prompt(request: GenerateRequestDTO) -> str:
    analysis = request.analysis or ContentAnalysis()
    count = target_card_count(request.text, request.card_count)
    focus = request.focus_areas or analysis.suggested_focus or ["definitions", "explanations"]

    lines = [
        f"Create exactly {count} high-quality flashcards from the content below.",
        "",
        "CONTENT ANALYSIS:",
        f"- Content Type: {analysis.content_type}",
        f"- Word Count: {len(request.text.split())}",
        f"- Key Topics: {', '.join(analysis.key_topics) or 'Not specified'}",
        f"- Focus Areas: {', '.join(focus)}",
    ]

    if analysis.content_type == "vocabulary":
        lines.append("- Prioritize term definitions and usage, with context where helpful")
    elif analysis.content_type == "concepts":
        lines.append("- Focus on explanations, applications and cause-and-effect")
    elif analysis.content_type == "mixed":
        lines.append("- Balance vocabulary and conceptual questions")

    if analysis.vocabulary_terms:
        lines += ["", "VOCABULARY TERMS DETECTED:"]
        for term in analysis.vocabulary_terms[:10]:
            lines.append(f"- {term.term}: {term.definition}" if term.definition else f"- {term.term}")
        if len(analysis.vocabulary_terms) > 10:
            lines.append(f"... and {len(analysis.vocabulary_terms) - 10} more terms")

    lines += [
        "",
        "Make questions clear and concise, answers complete and accurate,",
        "vary the difficulty and avoid near-duplicate questions.",
        'FORMAT: Return a JSON array of objects with "question" and "answer" fields only.',
    ]
    if request.custom_instructions:
        lines += ["", f"ADDITIONAL INSTRUCTIONS: {request.custom_instructions}"]
    lines += ["", "CONTENT TO CREATE FLASHCARDS FROM:", request.text]
    return "\n".join(lines)

def build_set_improvement_prompt(request: ImproveSetRequestDTO) -> str:
    cards = request.cards
    description = IMPROVEMENT_DESCRIPTIONS.get(request.improvement, request.improvement)

    lines = [
        "Improve the following flashcard set.",
        "",
        f"IMPROVEMENT TYPE: {request.improvement}",
        f"DESCRIPTION: {description}",
    ]
    if request.content_type:
        lines.append(f"CONTENT TYPE: {request.content_type}")

    lines += ["", f"CURRENT FLASHCARD SET ({len(cards)} cards):"]
    for i, card in enumerate(cards, 1):
        id_part = f" [id: {card.id}]" if card.id else ""
        lines.append(f"{i}.{id_part} Q: {card.question}\n   A: {card.answer}")

    if request.context:
        lines += ["", "ORIGINAL CONTEXT (for reference):", _truncate(request.context, 800)]
    if request.custom_instruction:
        lines += ["", f"CUSTOM INSTRUCTION: {request.custom_instruction}"]

    lines += ["", "GUIDELINES:"]
    if request.improvement == "add_more_cards":
        total = request.target_card_count or len(cards) + DEFAULT_ADDED_CARDS
        lines += [
            f"- Return ALL existing cards PLUS {max(total - len(cards), 1)} new cards ({total} in total)",
            '- Mark new cards with "isNew": true',
        ]
    else:
        lines += [
            f"- Improve ALL cards and keep the same number of cards ({len(cards)})",
            "- Apply the improvement consistently",
        ]
    lines += [f"- {rule}" for rule in IMPROVEMENT_GUIDELINES.get(request.improvement, [])]
    lines += [
        "- Preserve the provided card ids",
        "- Keep the fundamental concepts unchanged",
        "",
        'Return a JSON array of objects with "question", "answer", "id" (original id if provided) '
        'and "isNew" (true only for added cards).',
    ]
    return "\n".join(lines)

def build_regeneration_prompt(request: RegenerateCardRequestDTO) -> str:
    card = request.original_card
    lines = [
        "Improve this flashcard according to the instruction.",
        "",
        "ORIGINAL FLASHCARD:",
        f"Question: {card.question}",
        f"Answer: {card.answer}",
        "",
        f"IMPROVEMENT INSTRUCTION: {request.instruction}",
    ]
    if request.content_type:
        lines.append(f"CONTENT TYPE: {request.content_type}")
    if request.context:
        lines += ["", "ORIGINAL CONTEXT (for reference):", _truncate(request.context, 500)]
    lines += [
        "",
        "Keep the core concept and accuracy of the card.",
        'Return a JSON object with "question" and "answer" fields.',
    ]
    return "\n".join(lines)

# --- CLIENT ---

class FlashcardAI:
    """
    Thin wrapper over the OpenAI chat API for analysis, generation and improvement.
    `client` can be any object exposing `chat.completions.create` (tests pass a fake).
    """

    def __init__(self, client: Any = None, model: str = OPENAI_MODEL):
        self._client = client
        self.model = model

    @property
    def client(self):
        if self._client is None:
            if not OPENAI_API_KEY:
                raise AIConfigurationError("OpenAI API key not configured")
            try:
                self._client = OpenAI(api_key=OPENAI_API_KEY, max_retries=OPENAI_MAX_RETRIES)
            except OpenAIError as e:
                raise AIConfigurationError(f"Failed to initialize OpenAI client: {e}")
        return self._client

    def _complete(self, system: str, prompt: str, temperature: float, max_tokens: int) -> str:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise AIServiceError(f"AI request failed: {e}")

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise AIResponseError("No response from the AI model")
        return content

    def analyze_content(self, text: str) -> ContentAnalysis:
        if not text or len(text.strip()) < 10:
            raise ValueError("Text content is required and must be at least 10 characters long")

        logger.info(f"Analyzing content: {len(text)} chars, {len(text.split())} words")
        response = self._complete(
            "You are an expert educational content analyzer. Always return valid JSON objects with the exact structure requested.",
            build_analysis_prompt(text),
            temperature=0.3,
            max_tokens=1500,
        )
        parsed = extract_json(response, expect="object")
        if not isinstance(parsed, dict):
            logger.error(f"Failed to parse analysis response: {response[:200]}")
            raise AIResponseError("Failed to parse AI analysis as JSON")
        return sanitize_analysis(parsed)

    def generate_cards(self, request: GenerateRequestDTO) -> List[GeneratedCardDTO]:
        count = target_card_count(request.text, request.card_count)
        logger.info(
            f"Generating flashcards: {len(request.text)} chars, requested={request.card_count or 'auto'} "
            f"(target {count}), content_type={request.analysis.content_type if request.analysis else 'unknown'}"
        )
        response = self._complete(
            "You are an expert educational content creator who makes high-quality flashcards. "
            "Always return valid JSON arrays with question and answer fields.",
            build_generation_prompt(request),
            temperature=0.7,
            max_tokens=3000,
        )
        cards = [GeneratedCardDTO(question=c.question, answer=c.answer) for c in parse_generated_cards(response)]
        if not cards:
            logger.error(f"No valid flashcards in model output: {response[:200]}")
            raise AIResponseError("No valid flashcards were generated from the content")
        logger.info(f"Generated {len(cards)} flashcards")
        return cards

    def improve_set(self, request: ImproveSetRequestDTO) -> List[GeneratedCardDTO]:
        logger.info(f"Improving flashcard set: {len(request.cards)} cards, improvement={request.improvement}")
        response = self._complete(
            "You are an expert educational content creator focused on improving flashcard sets. "
            "Always return valid JSON arrays with the requested structure.",
            build_set_improvement_prompt(request),
            temperature=0.7,
            max_tokens=4000,
        )
        cards = parse_generated_cards(response)
        if not cards:
            raise AIResponseError("AI response format error - please try again")

        if request.improvement == "add_more_cards":
            expected = request.target_card_count or len(request.cards) + DEFAULT_ADDED_CARDS
            if len(cards) < expected:
                logger.warning(f"Expected {expected} cards but got {len(cards)}")
        elif len(cards) != len(request.cards):
            logger.warning(f"Expected {len(request.cards)} cards but got {len(cards)} for improvement: {request.improvement}")

        logger.info(f"Improved set: {len(request.cards)} -> {len(cards)} cards, {sum(c.is_new for c in cards)} new")
        return cards

    def regenerate_card(self, request: RegenerateCardRequestDTO) -> GeneratedCardDTO:
        original = request.original_card
        logger.info(f"Regenerating card with instruction '{request.instruction}'")
        response = self._complete(
            "You are an expert educational content creator focused on improving flashcards. "
            "Always return valid JSON objects with question and answer fields.",
            build_regeneration_prompt(request),
            temperature=0.7,
            max_tokens=800,
        )
        parsed = extract_json(response, expect="object")
        if not is_valid_card(parsed):
            raise AIResponseError("AI response format error - please try again")

        card = GeneratedCardDTO(
            question=parsed["question"].strip(),
            answer=parsed["answer"].strip(),
            id=original.id,
        )
        if card.question == original.question and card.answer == original.answer:
            logger.warning("Regenerated card is identical to the original; the instruction may not have been understood.")
        return card



def apply_improvements(original: List[ImprovableCardDTO], improved: List[GeneratedCardDTO]) -> List[GeneratedCardDTO]:
    """
    Matches improved cards back to the originals. Ids echoed by the model win; when none
    were echoed, cards are matched by position. Originals the model dropped are kept
    unchanged and anything left over is a new card.
    """
    known_ids = {c.id for c in original if c.id}

    if not any(c.id in known_ids for c in improved):
        merged = [
            GeneratedCardDTO(id=orig.id, question=new.question, answer=new.answer)
            for orig, new in zip(original, improved)
        ]
        merged += [
            GeneratedCardDTO(id=orig.id, question=orig.question, answer=orig.answer)
            for orig in original[len(improved):]
        ]
        merged += [c.model_copy(update={"id": None, "is_new": True}) for c in improved[len(original):]]
        return merged

    by_id = {c.id: c for c in improved if c.id in known_ids}
    merged = []
    for card in original:
        replacement = by_id.get(card.id) if card.id else None
        if replacement:
            merged.append(replacement.model_copy(update={"is_new": False}))
        else:
            merged.append(GeneratedCardDTO(id=card.id, question=card.question, answer=card.answer))
    merged += [c.model_copy(update={"id": None, "is_new": True}) for c in improved if c.id not in known_ids]
    return merged
