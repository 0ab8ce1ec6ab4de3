"""
Tests for src/api/routes.py through FastAPI's TestClient. The signed-in user
and the AI client are swapped in with dependency overrides.
"""
import json
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.routes import current_user_id, get_ai, router
from src.services.ai_service import FlashcardAI


def fake_ai(content):
    completions = SimpleNamespace(create=lambda **kwargs: SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    ))
    return FlashcardAI(client=SimpleNamespace(chat=SimpleNamespace(completions=completions)))


@pytest.fixture()
def api(user_id):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[current_user_id] = lambda: user_id
    with TestClient(app) as client:
        yield client


def create(api, name="Bio", cards=(("q1", "a1"), ("q2", "a2"))):
    response = api.post("/api/sets", json={
        "name": name,
        "cards": [{"question": q, "answer": a} for q, a in cards],
    })
    assert response.status_code == 201
    return response.json()


class TestSetRoutes:
    def test_create_list_get(self, api):
        created = create(api)

        listed = api.get("/api/sets").json()
        assert [s["name"] for s in listed] == ["Bio"]
        assert listed[0]["card_count"] == 2

        loaded = api.get(f"/api/sets/{created['id']}").json()
        assert [c["question"] for c in loaded["cards"]] == ["q1", "q2"]

    def test_invalid_payload(self, api):
        response = api.post("/api/sets", json={"name": "", "cards": []})
        assert response.status_code == 422

    def test_unknown_set(self, api):
        assert api.get("/api/sets/missing").status_code == 404
        assert api.delete("/api/sets/missing").status_code == 404

    def test_rename_and_delete(self, api):
        created = create(api)
        renamed = api.patch(f"/api/sets/{created['id']}", json={"name": "Botany"})
        assert renamed.json()["name"] == "Botany"

        assert api.delete(f"/api/sets/{created['id']}").json() == {"success": True}
        assert api.get(f"/api/sets/{created['id']}").status_code == 404

    def test_card_routes(self, api):
        created = create(api)
        set_id = created["id"]

        added = api.post(f"/api/sets/{set_id}/cards", json={"question": "q3", "answer": "a3"})
        assert added.status_code == 201
        card_id = added.json()["id"]

        updated = api.patch(f"/api/sets/{set_id}/cards/{card_id}", json={"answer": "better"})
        assert updated.json()["answer"] == "better"

        blank = api.patch(f"/api/sets/{set_id}/cards/{card_id}", json={"question": "  "})
        assert blank.status_code == 400

        assert api.delete(f"/api/sets/{set_id}/cards/{card_id}").status_code == 200
        assert api.delete(f"/api/sets/{set_id}/cards/{card_id}").status_code == 404


class TestAIRoutes:
    def test_generate(self, api):
        api.app.dependency_overrides[get_ai] = lambda: fake_ai(json.dumps([{"question": "q", "answer": "a"}]))
        response = api.post("/api/flashcards/generate", json={"text": "A long enough source text."})
        assert response.status_code == 200
        assert response.json()["count"] == 1

    def test_generate_short_text(self, api):
        response = api.post("/api/flashcards/generate", json={"text": "short"})
        assert response.status_code == 422

    def test_generate_bad_model_output(self, api):
        api.app.dependency_overrides[get_ai] = lambda: fake_ai("nonsense")
        response = api.post("/api/flashcards/generate", json={"text": "A long enough source text."})
        assert response.status_code == 502

    def test_improve_set_merges_by_id(self, api):
        api.app.dependency_overrides[get_ai] = lambda: fake_ai(json.dumps([
            {"question": "q1+", "answer": "a1+", "id": "c1"},
            {"question": "extra", "answer": "card", "isNew": True},
        ]))
        response = api.post("/api/flashcards/improve-set", json={
            "cards": [{"id": "c1", "question": "q1", "answer": "a1"}, {"id": "c2", "question": "q2", "answer": "a2"}],
            "improvement": "add_more_cards",
        })
        cards = response.json()["flashcards"]
        assert [(c["id"], c["question"], c["is_new"]) for c in cards] == [
            ("c1", "q1+", False),
            ("c2", "q2", False),
            (None, "extra", True),
        ]

    def test_regenerate_card(self, api):
        api.app.dependency_overrides[get_ai] = lambda: fake_ai('{"question": "nq", "answer": "na"}')
        response = api.post("/api/flashcards/regenerate-card", json={
            "original_card": {"id": "c1", "question": "q", "answer": "a"},
            "instruction": "simplify",
        })
        assert response.json()["flashcard"] == {"question": "nq", "answer": "na", "id": "c1", "is_new": False}

    def test_analyze(self, api):
        api.app.dependency_overrides[get_ai] = lambda: fake_ai(json.dumps({
            "contentType": "vocabulary", "summary": "terms", "keyTopics": ["a"], "suggestedFocus": ["definitions"],
        }))
        response = api.post("/api/content/analyze", json={"text": "A long enough source text."})
        assert response.json()["content_type"] == "vocabulary"

    def test_extract_text(self, api):
        response = api.post("/api/flashcards/extract-text", files={"file": ("notes.txt", b"Some  notes", "text/plain")})
        assert response.json()["text"] == "Some notes"

    def test_extract_empty_file(self, api):
        response = api.post("/api/flashcards/extract-text", files={"file": ("notes.txt", b"", "text/plain")})
        assert response.status_code == 400
