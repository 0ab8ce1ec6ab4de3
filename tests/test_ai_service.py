"""
Tests for src/services/ai_service.py. The OpenAI client is replaced by a fake;
nothing here talks to the network.
"""
import json
from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

import src.services.ai_service as ai_service
from src.schemas import (
    ContentAnalysis,
    GenerateRequestDTO,
    GeneratedCardDTO,
    ImprovableCardDTO,
    ImproveSetRequestDTO,
    RegenerateCardRequestDTO,
)
from src.services.ai_service import (
    AIConfigurationError,
    AIResponseError,
    AIServiceError,
    FlashcardAI,
    apply_improvements,
    build_generation_prompt,
    build_set_improvement_prompt,
    extract_json,
    parse_completion_to_cards,
    parse_generated_cards,
    target_card_count,
)


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, error=None):
    completions = FakeCompletions(content, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


SOURCE_TEXT = "Photosynthesis converts light energy into chemical energy stored in glucose."


# ── Completion parsing ────────────────────────────────────────

class TestParseCompletionToCards:
    def test_json_array(self):
        text = json.dumps([{"question": "Q1", "answer": "A1"}, {"question": "Q2", "answer": "A2", "id": "x"}])
        cards = parse_completion_to_cards(text)
        assert cards == [{"question": "Q1", "answer": "A1"}, {"question": "Q2", "answer": "A2", "id": "x"}]

    def test_q_a_lines(self):
        text = "Q: What is H2O?\nA: Water\n\nQ: What is NaCl?\nA: Salt"
        cards = parse_completion_to_cards(text)
        assert cards == [
            {"question": "What is H2O?", "answer": "Water"},
            {"question": "What is NaCl?", "answer": "Salt"},
        ]

    def test_multiline_answer(self):
        text = "Q: Name two gases\nA: Oxygen\nNitrogen\n\nQ: Next\nA: Done"
        cards = parse_completion_to_cards(text)
        assert cards[0]["answer"] == "Oxygen\nNitrogen"
        assert len(cards) == 2

    def test_question_without_answer_dropped(self):
        assert parse_completion_to_cards("Q: lonely question") == []

    def test_partially_invalid_json_falls_back_to_text(self):
        text = json.dumps([{"question": "Q1", "answer": "A1"}, {"question": "Q2"}])
        assert parse_completion_to_cards(text) == []

    @pytest.mark.parametrize("text", ["", "   ", "[not json", "{\"broken\": ", "random prose"])
    def test_malformed_input_never_raises(self, text):
        assert parse_completion_to_cards(text) == []


class TestExtractJson:
    def test_fenced_block(self):
        assert extract_json('```json\n[{"question": "q", "answer": "a"}]\n```') == [{"question": "q", "answer": "a"}]

    def test_embedded_array(self):
        text = 'Here you go: [{"question": "q", "answer": "a"}] Enjoy!'
        assert extract_json(text) == [{"question": "q", "answer": "a"}]

    def test_embedded_object(self):
        text = 'Sure! {"question": "q", "answer": "a"} That is it.'
        assert extract_json(text, expect="object") == {"question": "q", "answer": "a"}

    def test_nothing_parses(self):
        assert extract_json("no json here") is None
        assert extract_json("") is None


class TestParseGeneratedCards:
    def test_flashcards_wrapper(self):
        text = json.dumps({"flashcards": [{"question": "q", "answer": "a"}]})
        assert parse_generated_cards(text) == [GeneratedCardDTO(question="q", answer="a")]

    def test_invalid_entries_filtered(self):
        text = json.dumps([
            {"question": "q1", "answer": "a1"},
            {"question": "", "answer": "a2"},
            {"question": "q3"},
            "junk",
        ])
        assert [c.question for c in parse_generated_cards(text)] == ["q1"]

    def test_ids_and_new_flags(self):
        text = json.dumps([
            {"question": "q1", "answer": "a1", "id": "c1"},
            {"question": "q2", "answer": "a2", "isNew": True},
        ])
        cards = parse_generated_cards(text)
        assert cards[0].id == "c1" and not cards[0].is_new
        assert cards[1].id is None and cards[1].is_new

    def test_text_fallback(self):
        cards = parse_generated_cards("Q: one\nA: two")
        assert cards == [GeneratedCardDTO(question="one", answer="two")]

    def test_garbage_gives_empty_list(self):
        assert parse_generated_cards("I cannot help with that.") == []


# ── Prompts ───────────────────────────────────────────────────

class TestPrompts:
    @pytest.mark.parametrize("words, expected", [(10, 5), (500, 10), (5000, 25)])
    def test_target_card_count(self, words, expected):
        assert target_card_count(" ".join(["word"] * words)) == expected

    def test_requested_count_wins(self):
        assert target_card_count("short text here", 12) == 12

    def test_generation_prompt_carries_analysis(self):
        analysis = ContentAnalysis(content_type="vocabulary", key_topics=["plants"])
        prompt = build_generation_prompt(GenerateRequestDTO(text=SOURCE_TEXT, analysis=analysis, card_count=7))
        assert "exactly 7" in prompt
        assert "vocabulary" in prompt
        assert "plants" in prompt
        assert SOURCE_TEXT in prompt

    def test_add_more_cards_prompt(self):
        request = ImproveSetRequestDTO(
            cards=[ImprovableCardDTO(id="c1", question="q", answer="a")],
            improvement="add_more_cards",
        )
        prompt = build_set_improvement_prompt(request)
        assert "PLUS 3 new cards" in prompt
        assert "[id: c1]" in prompt


# ── Client calls ──────────────────────────────────────────────

class TestFlashcardAI:
    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(ai_service, 'OPENAI_API_KEY', None)
        with pytest.raises(AIConfigurationError):
            FlashcardAI().generate_cards(GenerateRequestDTO(text=SOURCE_TEXT))

    def test_generate_cards(self):
        client = fake_client('```json\n[{"question": "What does photosynthesis make?", "answer": "Glucose"}]\n```')
        ai = FlashcardAI(client=client, model="test-model")

        cards = ai.generate_cards(GenerateRequestDTO(text=SOURCE_TEXT, card_count=1))

        assert cards == [GeneratedCardDTO(question="What does photosynthesis make?", answer="Glucose")]
        call = client.chat.completions.calls[0]
        assert call["model"] == "test-model"
        assert call["messages"][0]["role"] == "system"
        assert SOURCE_TEXT in call["messages"][1]["content"]

    def test_generate_with_unusable_output(self):
        ai = FlashcardAI(client=fake_client("Sorry, I can't do that."))
        with pytest.raises(AIResponseError) as exc:
            ai.generate_cards(GenerateRequestDTO(text=SOURCE_TEXT))
        assert exc.value.status_code == 502

    def test_empty_completion(self):
        ai = FlashcardAI(client=fake_client(""))
        with pytest.raises(AIResponseError):
            ai.generate_cards(GenerateRequestDTO(text=SOURCE_TEXT))

    def test_openai_error_is_wrapped(self):
        error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        ai = FlashcardAI(client=fake_client(error=error))
        with pytest.raises(AIServiceError):
            ai.generate_cards(GenerateRequestDTO(text=SOURCE_TEXT))

    def test_analyze_content(self):
        raw = {
            "contentType": "concepts",
            "confidence": 1.7,
            "summary": "Plant energy",
            "keyTopics": ["photosynthesis", "glucose", 3, "", "light", "chlorophyll", "extra"],
            "vocabularyTerms": [{"term": "glucose", "definition": "a sugar"}, {"definition": "no term"}],
            "contentGuidance": {"approach": "whatever", "expectedRange": "5-8 cards"},
            "suggestedFocus": ["processes"],
        }
        ai = FlashcardAI(client=fake_client(json.dumps(raw)))

        analysis = ai.analyze_content(SOURCE_TEXT)

        assert analysis.content_type == "concepts"
        assert analysis.confidence == 1.0
        assert analysis.key_topics == ["photosynthesis", "glucose", "3", "light", "chlorophyll"]
        assert [t.term for t in analysis.vocabulary_terms] == ["glucose"]
        assert analysis.content_guidance.approach == "balanced"
        assert analysis.content_guidance.expected_range == "5-8 cards"

    def test_analyze_unknown_type_and_missing_fields(self):
        ai = FlashcardAI(client=fake_client(json.dumps({"contentType": "poetry", "summary": "x", "keyTopics": [], "suggestedFocus": []})))
        assert ai.analyze_content(SOURCE_TEXT).content_type == "other"

        ai = FlashcardAI(client=fake_client(json.dumps({"summary": "x"})))
        with pytest.raises(AIResponseError):
            ai.analyze_content(SOURCE_TEXT)

    def test_analyze_short_text(self):
        with pytest.raises(ValueError):
            FlashcardAI(client=fake_client("{}")).analyze_content("too short")

    def test_improve_set_keeps_ids(self):
        response = json.dumps([
            {"question": "Harder q1", "answer": "a1", "id": "c1"},
            {"question": "Harder q2", "answer": "a2", "id": "c2"},
        ])
        request = ImproveSetRequestDTO(
            cards=[ImprovableCardDTO(id="c1", question="q1", answer="a1"),
                   ImprovableCardDTO(id="c2", question="q2", answer="a2")],
            improvement="make_harder",
        )
        cards = FlashcardAI(client=fake_client(response)).improve_set(request)
        assert [c.id for c in cards] == ["c1", "c2"]
        assert cards[0].question == "Harder q1"

    def test_regenerate_card(self):
        ai = FlashcardAI(client=fake_client('{"question": "Better q", "answer": "Better a"}'))
        request = RegenerateCardRequestDTO(
            original_card=ImprovableCardDTO(id="c9", question="q", answer="a"),
            instruction="add an example",
        )
        card = ai.regenerate_card(request)
        assert card == GeneratedCardDTO(question="Better q", answer="Better a", id="c9")

    def test_regenerate_card_bad_output(self):
        ai = FlashcardAI(client=fake_client('{"question": "only a question"}'))
        request = RegenerateCardRequestDTO(
            original_card=ImprovableCardDTO(question="q", answer="a"),
            instruction="simplify",
        )
        with pytest.raises(AIResponseError):
            ai.regenerate_card(request)


# ── Merging improvements ──────────────────────────────────────

class TestApplyImprovements:
    ORIGINAL = [
        ImprovableCardDTO(id="c1", question="q1", answer="a1"),
        ImprovableCardDTO(id="c2", question="q2", answer="a2"),
    ]

    def test_matches_by_id_and_appends_new(self):
        improved = [
            GeneratedCardDTO(question="q2+", answer="a2+", id="c2"),
            GeneratedCardDTO(question="new", answer="card", is_new=True),
        ]
        merged = apply_improvements(self.ORIGINAL, improved)

        assert [(c.id, c.question, c.is_new) for c in merged] == [
            ("c1", "q1", False),
            ("c2", "q2+", False),
            (None, "new", True),
        ]

    def test_falls_back_to_position(self):
        improved = [GeneratedCardDTO(question="x1", answer="y1"), GeneratedCardDTO(question="x2", answer="y2"),
                    GeneratedCardDTO(question="x3", answer="y3")]
        merged = apply_improvements(self.ORIGINAL, improved)

        assert [(c.id, c.question, c.is_new) for c in merged] == [
            ("c1", "x1", False),
            ("c2", "x2", False),
            (None, "x3", True),
        ]

    def test_dropped_cards_are_kept(self):
        merged = apply_improvements(self.ORIGINAL, [GeneratedCardDTO(question="x1", answer="y1")])
        assert [c.question for c in merged] == ["x1", "q2"]
