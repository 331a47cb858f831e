"""
Context Engine — session-scoped facade over the memory components.

One engine serves one conversation. Per turn, the caller typically:
  1. appends the turn to the current thread
  2. registers newly mentioned entities
  3. resolves pronouns in the turn
  4. registers any unanswered question
while a MemorySweeper expires stale entities in the background.

Lookups never raise: misses come back as None, [] or False.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from context_kernel.engine.sweeper import MemorySweeper
from context_kernel.memory.store import EntityStore
from context_kernel.models.config import EngineConfig
from context_kernel.models.entity import Entity, MemoryTier
from context_kernel.models.question import OpenQuestion, QuestionPriority
from context_kernel.models.thread import ConversationThread
from context_kernel.models.topics import TrackedTopic
from context_kernel.observability.logging import session_logger
from context_kernel.questions.tracker import QuestionTracker
from context_kernel.reference.resolver import ReferenceResolver
from context_kernel.snapshot.codec import to_millis
from context_kernel.snapshot.manager import SnapshotManager
from context_kernel.threads.manager import ThreadManager
from context_kernel.topics.pending import PendingTopicsQueue
from context_kernel.topics.tracker import ImplicitTopicTracker


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContextEngine:

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        session_id: Optional[str] = None,
    ):
        self.config = config or EngineConfig()
        self._clock = clock or _utcnow
        self.session_id = session_id
        self._log = session_logger(__name__, session_id)

        self.store = EntityStore(self.config.tiers, clock=self._clock, session_id=session_id)
        self.resolver = ReferenceResolver(
            self.store,
            recent_limit=self.config.recent_entities_limit,
            category_limit=self.config.category_recency_limit,
            session_id=session_id,
        )
        self.thread_manager = ThreadManager(clock=self._clock, session_id=session_id)
        self.question_tracker = QuestionTracker(
            follow_up_after_seconds=self.config.follow_up_after_seconds,
            max_follow_ups=self.config.max_follow_ups,
            clock=self._clock,
            session_id=session_id,
        )
        self.topic_tracker = ImplicitTopicTracker(
            max_tracked_topics=self.config.max_tracked_topics,
            min_confidence=self.config.topic_min_confidence,
            clock=self._clock,
        )
        self.pending_topics = PendingTopicsQueue(
            max_size=self.config.pending_topics_limit,
            min_relevance=self.config.pending_min_relevance,
            clock=self._clock,
        )
        self.snapshots = SnapshotManager(
            base_path=self.config.snapshot_dir,
            version=self.config.snapshot_version,
            session_id=session_id,
        )
        self.sweeper = MemorySweeper(
            self,
            interval_seconds=self.config.sweep_interval_seconds,
            auto_save_schedule=self.config.auto_save_schedule,
        )
        self.last_context_update = self._clock()

    def _mark_updated(self) -> None:
        self.last_context_update = self._clock()

    # === ENTITY MANAGEMENT ===

    def add_entity(
        self,
        name: str,
        entity_type: str,
        tier: MemoryTier = MemoryTier.WORKING,
    ) -> Entity:
        entity = self.store.add(name, entity_type, tier)
        self._mark_updated()
        return entity

    def get_entity(self, entity_id: str) -> Optional[Entity]:
        return self.store.get(entity_id)

    def find_entity_by_name(self, name: str) -> Optional[Entity]:
        return self.store.find_by_name(name)

    def find_entities_by_type(self, entity_type: str) -> List[Entity]:
        return self.store.find_by_type(entity_type)

    def move_entity_to_tier(self, entity_id: str, tier: MemoryTier) -> bool:
        return self.store.move_tier(entity_id, tier)

    def remove_entity(self, entity_id: str) -> bool:
        return self.store.remove(entity_id)

    def get_entities_by_tier(self, tier: MemoryTier) -> List[Entity]:
        return self.store.entities_by_tier(tier)

    def get_all_entities(self) -> List[Entity]:
        return self.store.all_entities()

    def cleanup_expired_entities(self, now: Optional[datetime] = None) -> List[str]:
        return self.store.sweep_expired(now)

    def promote_to_long_term(self) -> int:
        return self.store.promote_to_long_term()

    def demote_to_short_term(self) -> int:
        return self.store.demote_to_short_term()

    # === CONVERSATION THREADS ===

    def create_thread(self, topic: str = "") -> ConversationThread:
        return self.thread_manager.create_thread(topic)

    def set_current_thread(
        self, thread: Union[ConversationThread, str]
    ) -> Optional[ConversationThread]:
        return self.thread_manager.set_current_thread(thread)

    @property
    def current_thread(self) -> Optional[ConversationThread]:
        return self.thread_manager.current_thread

    def add_message_to_current_thread(self, sender: str, content: str) -> ConversationThread:
        thread = self.thread_manager.add_message_to_current_thread(sender, content)
        self._mark_updated()
        return thread

    def get_all_threads(self) -> List[ConversationThread]:
        return self.thread_manager.all_threads()

    def get_active_threads(self) -> List[ConversationThread]:
        return self.thread_manager.active_threads()

    def find_most_similar_thread(self, content: str) -> Optional[ConversationThread]:
        return self.thread_manager.find_most_similar_thread(content)

    def merge_threads(
        self, source: ConversationThread, target: ConversationThread
    ) -> ConversationThread:
        return self.thread_manager.merge_threads(source, target)

    # === OPEN QUESTIONS ===

    def create_open_question(
        self,
        text: str,
        asked_by: str,
        context: str = "",
        priority: QuestionPriority = QuestionPriority.MEDIUM,
    ) -> OpenQuestion:
        return self.question_tracker.create_open_question(text, asked_by, context, priority)

    def mark_question_answered(self, question_id: str, answer: str) -> bool:
        return self.question_tracker.mark_answered(question_id, answer)

    def get_open_questions(self) -> List[OpenQuestion]:
        return self.question_tracker.get_open_questions()

    def get_all_questions(self) -> List[OpenQuestion]:
        return self.question_tracker.all_questions()

    def find_oldest_open_question(self) -> Optional[OpenQuestion]:
        return self.question_tracker.find_oldest_open_question()

    def find_highest_priority_question(self) -> Optional[OpenQuestion]:
        return self.question_tracker.find_highest_priority_question()

    def get_questions_for_follow_up(self) -> List[OpenQuestion]:
        return self.question_tracker.get_questions_for_follow_up()

    def increment_follow_up_count(self, question_id: str) -> bool:
        return self.question_tracker.increment_follow_up_count(question_id)

    # === PRONOUN RESOLUTION ===

    def register_reference(self, pronoun: str, entity: Entity) -> None:
        self.resolver.register_pronoun(pronoun, entity)

    def resolve_reference(self, pronoun: str) -> Optional[Entity]:
        return self.resolver.resolve_pronoun(pronoun)

    def resolve_references_in_text(
        self, text: str, context_hint: Optional[str] = None
    ) -> Optional[str]:
        return self.resolver.resolve_pronouns_in_text(text, context_hint)

    def get_reference_statistics(self) -> dict:
        return self.resolver.get_statistics()

    # === IMPLICIT TOPICS ===

    def observe_topics(self, text: str) -> List[TrackedTopic]:
        """Detect topics in a turn and queue them as pending."""
        detected = self.topic_tracker.process_text(text)
        self.pending_topics.add_from_detected_topics(detected)
        return detected

    # === SUMMARY & STATISTICS ===

    def get_context_summary(self) -> Dict[str, Any]:
        current = self.current_thread
        summary: Dict[str, Any] = {
            "total_entities": self.store.count(),
            "working_memory": self.store.count(MemoryTier.WORKING),
            "short_term_memory": self.store.count(MemoryTier.SHORT_TERM),
            "long_term_memory": self.store.count(MemoryTier.LONG_TERM),
            "flashbulb_memory": self.store.count(MemoryTier.FLASHBULB),
            "active_threads": len(self.get_active_threads()),
            "open_questions": len(self.get_open_questions()),
            "current_thread_topic": current.topic if current else None,
            "last_update": to_millis(self.last_context_update),
        }
        if current is not None:
            summary["current_coherence"] = current.coherence_score()
            summary["current_keywords"] = [
                word for word, _ in current.top_keywords()[:5]
            ]
        return summary

    def get_statistics(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "entity_count": self.store.count(),
            "thread_count": len(self.get_all_threads()),
            "active_thread_count": len(self.get_active_threads()),
            "open_question_count": len(self.get_open_questions()),
            "resolved_question_count": self.question_tracker.answered_count(),
        }
        stats.update(self.get_reference_statistics())
        return stats

    def clear_all(self) -> None:
        self.store.clear()
        self.resolver.clear()
        self.thread_manager.clear()
        self.question_tracker.clear()
        self.topic_tracker.clear()
        self.pending_topics.clear()
        self._mark_updated()
        self._log.info("context_cleared")

    # === PERSISTENCE ===

    def _default_filename(self, prefix: str) -> str:
        return f"{prefix}_{to_millis(self._clock())}.mem"

    def save_snapshot(self, filename: str, tier: Optional[MemoryTier] = None) -> bool:
        return self.snapshots.save(self, filename, tier)

    def load_snapshot(self, filename: str) -> bool:
        loaded = self.snapshots.load(self, filename)
        if loaded:
            self._mark_updated()
        return loaded

    async def save_snapshot_async(
        self, filename: str, tier: Optional[MemoryTier] = None
    ) -> bool:
        """Save on a worker thread so the conversation loop is not blocked."""
        return await asyncio.to_thread(self.save_snapshot, filename, tier)

    def save_short_term_memory(self, filename: Optional[str] = None) -> bool:
        return self.snapshots.save_short_term(self, filename or self._default_filename("shortterm"))

    def save_long_term_memory(self, filename: Optional[str] = None) -> bool:
        return self.snapshots.save_long_term(self, filename or self._default_filename("longterm"))

    def get_saved_memories(self) -> List[str]:
        return self.snapshots.list_saved()

    def delete_memory(self, filename: str) -> bool:
        return self.snapshots.delete(filename)

    def get_memory_size(self, filename: str) -> int:
        return self.snapshots.size(filename)

    # === LIFECYCLE ===

    def start_maintenance(self) -> asyncio.Task:
        """Start the background sweep on the running event loop."""
        return self.sweeper.start()

    async def shutdown(self, save_filename: Optional[str] = None) -> bool:
        """Stop background maintenance and optionally write a final snapshot."""
        await self.sweeper.stop()
        if save_filename is None:
            return True
        return await self.save_snapshot_async(save_filename)

    def __repr__(self) -> str:
        return (
            f"ContextEngine(entities={self.store.count()}, "
            f"threads={len(self.get_all_threads())}, "
            f"open_questions={len(self.get_open_questions())})"
        )
