"""
Context Kernel API — FastAPI endpoints.

Exposes one conversation session's engine via a REST API for:
- Entity management
- Pronoun resolution
- Conversation threads
- Open questions
- Implicit topics
- Maintenance and snapshots
"""

from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from context_kernel.engine.context_engine import ContextEngine
from context_kernel.models.config import EngineConfig
from context_kernel.models.entity import MemoryTier
from context_kernel.models.question import QuestionPriority


# --- Request/Response Models ---

class EntityCreateRequest(BaseModel):
    name: str
    entity_type: str
    tier: MemoryTier = MemoryTier.WORKING


class TierMoveRequest(BaseModel):
    tier: MemoryTier


class ReferenceRegisterRequest(BaseModel):
    pronoun: str
    entity_id: str


class ResolveTextRequest(BaseModel):
    text: str
    context_hint: Optional[str] = None


class ThreadCreateRequest(BaseModel):
    topic: str = ""
    make_current: bool = True


class MessageRequest(BaseModel):
    sender: str
    content: str


class QuestionCreateRequest(BaseModel):
    text: str
    asked_by: str
    context: str = ""
    priority: QuestionPriority = QuestionPriority.MEDIUM


class AnswerRequest(BaseModel):
    answer: str


class SnapshotRequest(BaseModel):
    filename: str
    tier: Optional[MemoryTier] = None


class SweepResponse(BaseModel):
    expired: list
    expired_count: int


# --- Application Factory ---

def create_app(
    engine: Optional[ContextEngine] = None,
    config: Optional[EngineConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Context Kernel API",
        description="Conversation context memory: entities, pronouns, threads and questions",
        version="0.1.0",
    )

    ce = engine or ContextEngine(config=config)
    app.state.engine = ce

    # === ENTITIES ===

    @app.post("/entities")
    def add_entity(req: EntityCreateRequest):
        """Track a newly mentioned entity."""
        entity = ce.add_entity(req.name, req.entity_type, req.tier)
        return entity.model_dump(mode="json")

    @app.get("/entities")
    def list_entities(tier: Optional[MemoryTier] = None, entity_type: Optional[str] = None):
        """All entities, optionally filtered by tier or type."""
        if tier is not None:
            entities = ce.get_entities_by_tier(tier)
        elif entity_type is not None:
            entities = ce.find_entities_by_type(entity_type)
        else:
            entities = ce.get_all_entities()
        return [e.model_dump(mode="json") for e in entities]

    @app.get("/entities/by-name/{name}")
    def find_entity_by_name(name: str):
        entity = ce.find_entity_by_name(name)
        if not entity:
            raise HTTPException(404, "Entity not found")
        return entity.model_dump(mode="json")

    @app.get("/entities/{entity_id}")
    def get_entity(entity_id: str):
        entity = ce.get_entity(entity_id)
        if not entity:
            raise HTTPException(404, "Entity not found")
        return entity.model_dump(mode="json")

    @app.put("/entities/{entity_id}/tier")
    def move_entity(entity_id: str, req: TierMoveRequest):
        """Move an entity to another memory tier."""
        if not ce.move_entity_to_tier(entity_id, req.tier):
            raise HTTPException(404, "Entity not found")
        return {"status": "moved", "entity_id": entity_id, "tier": req.tier.value}

    @app.delete("/entities/{entity_id}")
    def remove_entity(entity_id: str):
        if not ce.remove_entity(entity_id):
            raise HTTPException(404, "Entity not found")
        return {"status": "removed", "entity_id": entity_id}

    # === REFERENCES ===

    @app.post("/references")
    def register_reference(req: ReferenceRegisterRequest):
        """Bind a pronoun to an entity."""
        entity = ce.store.peek(req.entity_id)
        if not entity:
            raise HTTPException(404, "Entity not found")
        ce.register_reference(req.pronoun, entity)
        return {"status": "registered", "pronoun": req.pronoun.lower(), "entity_id": entity.id}

    @app.get("/references/resolve/{pronoun}")
    def resolve_reference(pronoun: str):
        entity = ce.resolve_reference(pronoun)
        if not entity:
            raise HTTPException(404, "Pronoun could not be resolved")
        return entity.model_dump(mode="json")

    @app.post("/references/resolve-text")
    def resolve_text(req: ResolveTextRequest):
        """Replace resolvable pronouns in text with entity names."""
        return {"text": ce.resolve_references_in_text(req.text, req.context_hint)}

    @app.get("/references/statistics")
    def reference_statistics():
        return ce.get_reference_statistics()

    # === THREADS ===

    @app.post("/threads")
    def create_thread(req: ThreadCreateRequest):
        thread = ce.create_thread(req.topic)
        if req.make_current:
            ce.set_current_thread(thread)
        return thread.model_dump(mode="json")

    @app.get("/threads")
    def list_threads(active_only: bool = False):
        threads = ce.get_active_threads() if active_only else ce.get_all_threads()
        return [t.model_dump(mode="json") for t in threads]

    @app.get("/threads/current")
    def get_current_thread():
        thread = ce.current_thread
        if not thread:
            raise HTTPException(404, "No current thread")
        return thread.model_dump(mode="json")

    @app.get("/threads/similar")
    def find_similar_thread(content: str):
        """Closest non-current thread for some content."""
        thread = ce.find_most_similar_thread(content)
        if not thread:
            raise HTTPException(404, "No other thread")
        return thread.model_dump(mode="json")

    @app.put("/threads/current/{thread_id}")
    def set_current_thread(thread_id: str):
        thread = ce.set_current_thread(thread_id)
        if not thread:
            raise HTTPException(404, "Thread not found")
        return thread.model_dump(mode="json")

    @app.post("/threads/current/messages")
    def add_message(req: MessageRequest):
        """Append a turn to the current thread and track its topics."""
        thread = ce.add_message_to_current_thread(req.sender, req.content)
        ce.observe_topics(req.content)
        return {
            "thread_id": thread.id,
            "message_count": thread.message_count,
            "coherence": thread.coherence_score(),
        }

    @app.post("/threads/{source_id}/merge-into/{target_id}")
    def merge_threads(source_id: str, target_id: str):
        source = ce.thread_manager.get_thread(source_id)
        target = ce.thread_manager.get_thread(target_id)
        if not source or not target:
            raise HTTPException(404, "Thread not found")
        return ce.merge_threads(source, target).model_dump(mode="json")

    # === QUESTIONS ===

    @app.post("/questions")
    def create_question(req: QuestionCreateRequest):
        question = ce.create_open_question(req.text, req.asked_by, req.context, req.priority)
        return question.model_dump(mode="json")

    @app.get("/questions/open")
    def list_open_questions():
        """OPEN questions, highest priority first."""
        return [q.model_dump(mode="json") for q in ce.get_open_questions()]

    @app.get("/questions/follow-up")
    def questions_for_follow_up():
        return [q.model_dump(mode="json") for q in ce.get_questions_for_follow_up()]

    @app.post("/questions/{question_id}/answer")
    def answer_question(question_id: str, req: AnswerRequest):
        if not ce.mark_question_answered(question_id, req.answer):
            raise HTTPException(404, "Question not found or not open")
        return ce.question_tracker.get_question(question_id).model_dump(mode="json")

    # === TOPICS ===

    @app.get("/topics")
    def get_topics(limit: int = 5):
        """Most salient implicit topics."""
        return [t.model_dump(mode="json") for t in ce.topic_tracker.top_topics(limit)]

    @app.get("/topics/pending")
    def get_pending_topics(limit: int = 5):
        return [t.model_dump(mode="json") for t in ce.pending_topics.topics_by_urgency(limit)]

    # === SUMMARY & MAINTENANCE ===

    @app.get("/summary")
    def get_summary():
        return ce.get_context_summary()

    @app.get("/statistics")
    def get_statistics():
        return ce.get_statistics()

    @app.post("/maintenance/sweep")
    def trigger_sweep():
        """Force a TTL sweep (for testing)."""
        expired = ce.cleanup_expired_entities()
        return SweepResponse(expired=expired, expired_count=len(expired))

    @app.get("/maintenance/status")
    def maintenance_status():
        return {
            "status": ce.sweeper.status,
            "sweep_interval_seconds": ce.sweeper.interval_seconds,
            "auto_save_schedule": ce.sweeper.auto_save_schedule,
            "ticks": ce.sweeper.ticks,
        }

    @app.delete("/context")
    def clear_context():
        ce.clear_all()
        return {"status": "cleared"}

    # === SNAPSHOTS ===

    def _check_snapshot_name(filename: str) -> None:
        if not ce.snapshots.is_valid_name(filename):
            raise HTTPException(400, "Invalid snapshot file name")

    @app.get("/snapshots")
    def list_snapshots():
        return ce.get_saved_memories()

    @app.post("/snapshots/save")
    def save_snapshot(req: SnapshotRequest):
        _check_snapshot_name(req.filename)
        if not ce.save_snapshot(req.filename, req.tier):
            raise HTTPException(500, "Snapshot could not be saved")
        return {"status": "saved", "filename": req.filename, "size": ce.get_memory_size(req.filename)}

    @app.post("/snapshots/load")
    def load_snapshot(req: SnapshotRequest):
        _check_snapshot_name(req.filename)
        if not ce.load_snapshot(req.filename):
            raise HTTPException(404, "Snapshot not found or unreadable")
        return {"status": "loaded", "filename": req.filename}

    @app.delete("/snapshots/{filename}")
    def delete_snapshot(filename: str):
        _check_snapshot_name(filename)
        if not ce.delete_memory(filename):
            raise HTTPException(404, "Snapshot not found")
        return {"status": "deleted", "filename": filename}

    return app
