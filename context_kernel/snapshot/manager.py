"""
Snapshot Manager — saves and loads engine state as snapshot files.

Save and load report success as a boolean; I/O and format failures are
logged, never raised. A snapshot is fully decoded and converted before any
of it is applied, so a failed load leaves the engine as it was.
"""

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from context_kernel.models.entity import Entity, MemoryTier
from context_kernel.models.question import OpenQuestion, QuestionStatus
from context_kernel.models.snapshot import (
    PersistedEntity,
    PersistedQuestion,
    PersistedThread,
    PersistedTurn,
    Snapshot,
)
from context_kernel.models.thread import ConversationThread
from context_kernel.observability.logging import session_logger
from context_kernel.snapshot.codec import SnapshotFormatError, decode, encode

if TYPE_CHECKING:
    from context_kernel.engine.context_engine import ContextEngine

SNAPSHOT_SUFFIX = ".mem"


class SnapshotManager:

    def __init__(
        self,
        base_path: str = "data/context",
        version: str = "1.0",
        session_id: Optional[str] = None,
    ):
        self.base_path = Path(base_path)
        self.version = version
        self._log = session_logger(__name__, session_id)

    def is_valid_name(self, filename: Optional[str]) -> bool:
        """A bare file name that stays inside the snapshot directory."""
        if not filename or filename in (".", ".."):
            return False
        if "/" in filename or "\\" in filename or "\0" in filename:
            return False
        if Path(filename).is_absolute():
            return False
        base = self.base_path.resolve()
        return (base / filename).resolve().parent == base

    def path_for(self, filename: str) -> Optional[Path]:
        """Path of a snapshot file, or None for a name outside the directory."""
        if not self.is_valid_name(filename):
            self._log.warning("snapshot_path_rejected", filename=filename)
            return None
        return self.base_path / filename

    # --- Capture / apply ---

    def capture(
        self,
        engine: "ContextEngine",
        tier: Optional[MemoryTier] = None,
        active_threads_only: bool = False,
    ) -> Snapshot:
        """Snapshot entities (all, or one tier), threads and questions."""
        store = engine.store
        entities = store.entities_by_tier(tier) if tier else store.all_entities()
        threads = (
            engine.thread_manager.active_threads()
            if active_threads_only
            else engine.thread_manager.all_threads()
        )
        return Snapshot(
            version=self.version,
            timestamp=store.now(),
            entities=[
                PersistedEntity(
                    id=e.id,
                    name=e.name,
                    entity_type=e.entity_type,
                    tier=e.tier,
                    created_at=e.created_at,
                )
                for e in entities
            ],
            threads=[
                PersistedThread(
                    id=t.id,
                    topic=t.topic,
                    created_at=t.created_at,
                    turns=[
                        PersistedTurn(
                            sender=turn.sender,
                            content=turn.content,
                            timestamp=turn.timestamp,
                        )
                        for turn in t.messages
                    ],
                )
                for t in threads
            ],
            questions=[
                PersistedQuestion(
                    id=q.id,
                    text=q.text,
                    asked_by=q.asked_by,
                    context=q.context,
                    status=q.status,
                    answer_text=q.answer_text,
                )
                for q in engine.question_tracker.all_questions()
            ],
        )

    def apply(self, engine: "ContextEngine", snapshot: Snapshot) -> dict:
        """
        Rebuild snapshot records inside an engine, keeping their ids.
        Records whose id already exists are skipped. Thread keyword
        frequencies are rebuilt by replaying turns.
        """
        now = engine.store.now()

        entities = [
            Entity(
                id=pe.id,
                name=pe.name,
                entity_type=pe.entity_type,
                tier=pe.tier,
                created_at=pe.created_at,
                last_accessed=now,
            )
            for pe in snapshot.entities
        ]

        threads = []
        for pt in snapshot.threads:
            thread = ConversationThread(
                id=pt.id,
                topic=pt.topic,
                created_at=pt.created_at,
                last_activity_at=pt.created_at,
            )
            for turn in pt.turns:
                thread.add_message(turn.sender, turn.content, turn.timestamp)
            threads.append(thread)

        questions = []
        for pq in snapshot.questions:
            question = OpenQuestion(
                id=pq.id,
                text=pq.text,
                asked_by=pq.asked_by,
                context=pq.context,
                status=pq.status,
                created_at=snapshot.timestamp,
            )
            if pq.status == QuestionStatus.ANSWERED:
                question.answer_text = pq.answer_text or ""
                question.answered_at = snapshot.timestamp
            questions.append(question)

        counts = {
            "entities": sum(1 for e in entities if engine.store.restore(e)),
            "threads": sum(1 for t in threads if engine.thread_manager.adopt_thread(t)),
            "questions": sum(1 for q in questions if engine.question_tracker.adopt_question(q)),
        }
        return counts

    # --- File I/O ---

    def save(
        self,
        engine: "ContextEngine",
        filename: str,
        tier: Optional[MemoryTier] = None,
        active_threads_only: bool = False,
    ) -> bool:
        path = self.path_for(filename)
        if path is None:
            return False
        try:
            snapshot = self.capture(engine, tier, active_threads_only)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(encode(snapshot), encoding="utf-8")
        except OSError as exc:
            self._log.error("snapshot_save_failed", path=str(path), error=str(exc))
            return False
        self._log.info(
            "snapshot_saved",
            path=str(path),
            entities=len(snapshot.entities),
            threads=len(snapshot.threads),
            questions=len(snapshot.questions),
        )
        return True

    def load(self, engine: "ContextEngine", filename: str) -> bool:
        path = self.path_for(filename)
        if path is None:
            return False
        try:
            snapshot = decode(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, SnapshotFormatError) as exc:
            self._log.warning("snapshot_load_failed", path=str(path), error=str(exc))
            return False
        counts = self.apply(engine, snapshot)
        self._log.info("snapshot_loaded", path=str(path), **counts)
        return True

    def save_short_term(self, engine: "ContextEngine", filename: str) -> bool:
        """SHORT_TERM entities with every thread."""
        return self.save(engine, filename, MemoryTier.SHORT_TERM)

    def save_long_term(self, engine: "ContextEngine", filename: str) -> bool:
        """LONG_TERM entities with the active threads only."""
        return self.save(engine, filename, MemoryTier.LONG_TERM, active_threads_only=True)

    def list_saved(self) -> List[str]:
        if not self.base_path.is_dir():
            return []
        return sorted(
            p.name for p in self.base_path.iterdir()
            if p.is_file() and p.suffix == SNAPSHOT_SUFFIX
        )

    def delete(self, filename: str) -> bool:
        path = self.path_for(filename)
        if path is None:
            return False
        try:
            if not path.is_file():
                return False
            path.unlink()
        except OSError as exc:
            self._log.error("snapshot_delete_failed", filename=filename, error=str(exc))
            return False
        return True

    def size(self, filename: str) -> int:
        """Size in bytes, or -1 if the file cannot be read."""
        path = self.path_for(filename)
        if path is None:
            return -1
        try:
            return path.stat().st_size
        except OSError:
            return -1
