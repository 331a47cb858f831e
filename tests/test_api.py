"""Tests for the FastAPI API endpoints."""

import pytest
from fastapi.testclient import TestClient

from context_kernel.api.app import create_app
from context_kernel.engine.context_engine import ContextEngine
from context_kernel.models.config import EngineConfig


@pytest.fixture
def engine(tmp_path, clock):
    return ContextEngine(config=EngineConfig(snapshot_dir=str(tmp_path)), clock=clock)


@pytest.fixture
def client(engine):
    """Create a test client around a fresh engine."""
    return TestClient(create_app(engine=engine))


class TestEntityEndpoints:
    def test_add_and_get_entity(self, client):
        response = client.post("/entities", json={"name": "Sam", "entity_type": "person"})
        assert response.status_code == 200
        data = response.json()
        assert data["tier"] == "WORKING"

        fetched = client.get(f"/entities/{data['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Sam"

    def test_find_by_name_and_type(self, client):
        client.post("/entities", json={"name": "Sam", "entity_type": "person"})
        client.post("/entities", json={"name": "Dune", "entity_type": "book", "tier": "LONG_TERM"})

        assert client.get("/entities/by-name/sam").json()["name"] == "Sam"
        assert len(client.get("/entities", params={"entity_type": "book"}).json()) == 1
        assert len(client.get("/entities", params={"tier": "LONG_TERM"}).json()) == 1
        assert len(client.get("/entities").json()) == 2

    def test_move_and_remove(self, client):
        entity_id = client.post("/entities", json={"name": "Sam", "entity_type": "person"}).json()["id"]

        moved = client.put(f"/entities/{entity_id}/tier", json={"tier": "FLASHBULB"})
        assert moved.status_code == 200
        assert client.get(f"/entities/{entity_id}").json()["tier"] == "FLASHBULB"

        assert client.delete(f"/entities/{entity_id}").status_code == 200
        assert client.delete(f"/entities/{entity_id}").status_code == 404

    def test_missing_entity(self, client):
        assert client.get("/entities/nope").status_code == 404
        assert client.get("/entities/by-name/nobody").status_code == 404
        assert client.put("/entities/nope/tier", json={"tier": "LONG_TERM"}).status_code == 404

    def test_invalid_tier_rejected(self, client):
        response = client.post("/entities", json={"name": "Sam", "entity_type": "person", "tier": "FOREVER"})
        assert response.status_code == 422


class TestReferenceEndpoints:
    def test_register_and_resolve(self, client):
        sam_id = client.post("/entities", json={"name": "Sam", "entity_type": "person"}).json()["id"]
        registered = client.post("/references", json={"pronoun": "He", "entity_id": sam_id})
        assert registered.json()["pronoun"] == "he"

        assert client.get("/references/resolve/he").json()["id"] == sam_id
        text = client.post("/references/resolve-text", json={"text": "Is he here?"}).json()
        assert text["text"].startswith("Is Sam")

        stats = client.get("/references/statistics").json()
        assert stats["resolution_count"] >= 1

    def test_unknown_entity_or_pronoun(self, client):
        assert client.post("/references", json={"pronoun": "he", "entity_id": "nope"}).status_code == 404
        assert client.get("/references/resolve/she").status_code == 404


class TestThreadEndpoints:
    def test_messages_and_current_thread(self, client):
        created = client.post("/threads", json={"topic": "Games"}).json()
        response = client.post("/threads/current/messages", json={
            "sender": "User",
            "content": "Minecraft survival mode",
        })
        assert response.json()["thread_id"] == created["id"]
        assert response.json()["message_count"] == 1

        current = client.get("/threads/current").json()
        assert current["topic"] == "Games"
        assert client.get("/topics").json()

    def test_merge(self, client):
        first = client.post("/threads", json={"topic": "A"}).json()["id"]
        client.post("/threads/current/messages", json={"sender": "User", "content": "java code"})
        second = client.post("/threads", json={"topic": "B"}).json()["id"]

        merged = client.post(f"/threads/{first}/merge-into/{second}")
        assert merged.status_code == 200
        assert len(merged.json()["messages"]) == 1
        assert len(client.get("/threads", params={"active_only": True}).json()) == 2

        assert client.post(f"/threads/{first}/merge-into/missing").status_code == 404
        assert client.put("/threads/current/missing").status_code == 404

    def test_similar_thread(self, client):
        games = client.post("/threads", json={"topic": "Games"}).json()["id"]
        client.post("/threads/current/messages", json={"sender": "User", "content": "minecraft server mods"})
        client.post("/threads", json={"topic": "Other"})

        similar = client.get("/threads/similar", params={"content": "minecraft mods"})
        assert similar.status_code == 200
        assert similar.json()["id"] == games


class TestQuestionEndpoints:
    def test_question_lifecycle(self, client):
        question = client.post("/questions", json={
            "text": "What are you reading?",
            "asked_by": "Assistant",
            "priority": "HIGH",
        }).json()
        assert len(client.get("/questions/open").json()) == 1

        answered = client.post(f"/questions/{question['id']}/answer", json={"answer": "Dune"})
        assert answered.status_code == 200
        assert answered.json()["status"] == "ANSWERED"
        assert client.get("/questions/open").json() == []

        again = client.post(f"/questions/{question['id']}/answer", json={"answer": "Dune"})
        assert again.status_code == 404


class TestMaintenanceEndpoints:
    def test_summary_and_sweep(self, client, clock):
        client.post("/entities", json={"name": "Sam", "entity_type": "person"})
        assert client.get("/summary").json()["working_memory"] == 1

        clock.advance(minutes=2)
        swept = client.post("/maintenance/sweep").json()
        assert swept["expired_count"] == 1
        assert client.get("/statistics").json()["entity_count"] == 0
        assert client.get("/maintenance/status").json()["status"] == "stopped"

    def test_snapshots(self, client):
        client.post("/entities", json={"name": "Sam", "entity_type": "person", "tier": "LONG_TERM"})
        saved = client.post("/snapshots/save", json={"filename": "s.mem"})
        assert saved.status_code == 200
        assert saved.json()["size"] > 0
        assert client.get("/snapshots").json() == ["s.mem"]

        client.delete("/context")
        assert client.post("/snapshots/load", json={"filename": "s.mem"}).status_code == 200
        assert client.get("/entities/by-name/Sam").status_code == 200

        assert client.delete("/snapshots/s.mem").status_code == 200
        assert client.post("/snapshots/load", json={"filename": "s.mem"}).status_code == 404

    def test_snapshot_names_outside_directory_rejected(self, client, tmp_path):
        client.post("/entities", json={"name": "Sam", "entity_type": "person"})
        outside = tmp_path.parent / "outside.mem"

        for name in ["../outside.mem", str(outside), "nested/s.mem"]:
            assert client.post("/snapshots/save", json={"filename": name}).status_code == 400
            assert client.post("/snapshots/load", json={"filename": name}).status_code == 400

        assert not outside.exists()
        assert not (tmp_path / "nested").exists()
        assert client.get("/snapshots").json() == []
