"""
Thread Manager — groups conversation turns into topic threads.

One thread is current at a time; new turns go there. Threads are never
deleted: merged-away threads are archived.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from context_kernel.models.thread import ConversationThread, ThreadStatus
from context_kernel.observability.logging import session_logger

DEFAULT_TOPIC = "General"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThreadManager:
    """Owns every ConversationThread of one session."""

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        session_id: Optional[str] = None,
    ):
        self._clock = clock or _utcnow
        self._log = session_logger(__name__, session_id)
        self._threads: Dict[str, ConversationThread] = {}
        self._current: Optional[ConversationThread] = None
        self.set_current_thread(self.create_thread(DEFAULT_TOPIC))

    @property
    def current_thread(self) -> Optional[ConversationThread]:
        return self._current

    def create_thread(self, topic: str = "") -> ConversationThread:
        now = self._clock()
        thread = ConversationThread(topic=topic or "", created_at=now, last_activity_at=now)
        self._threads[thread.id] = thread
        return thread

    def adopt_thread(self, thread: ConversationThread) -> bool:
        """Take ownership of an existing thread (snapshot load). False on id clash."""
        if thread.id in self._threads:
            return False
        self._threads[thread.id] = thread
        return True

    def set_current_thread(
        self, thread: Union[ConversationThread, str, None]
    ) -> Optional[ConversationThread]:
        """Make a thread current, given the thread itself or its id."""
        if isinstance(thread, str):
            thread = self._threads.get(thread)
            if thread is None:
                return None
        elif thread is not None and thread.id not in self._threads:
            self._threads[thread.id] = thread
        self._current = thread
        return thread

    def add_message_to_current_thread(self, sender: str, content: str) -> ConversationThread:
        if self._current is None:
            self._current = self.create_thread(DEFAULT_TOPIC)
        self._current.add_message(sender, content, self._clock())
        return self._current

    def get_thread(self, thread_id: str) -> Optional[ConversationThread]:
        return self._threads.get(thread_id)

    def all_threads(self) -> List[ConversationThread]:
        return list(self._threads.values())

    def active_threads(self) -> List[ConversationThread]:
        return [t for t in self._threads.values() if t.status == ThreadStatus.ACTIVE]

    def merge_threads(
        self, source: ConversationThread, target: ConversationThread
    ) -> ConversationThread:
        """Fold source into target and archive the source."""
        if source is target:
            return target
        target.merge_thread(source)
        source.status = ThreadStatus.ARCHIVED
        self._log.info(
            "thread_merged",
            source_id=source.id,
            target_id=target.id,
            messages=source.message_count,
        )
        return target

    def find_most_similar_thread(self, content: str) -> Optional[ConversationThread]:
        """Best-matching thread for some content, ignoring the current thread."""
        sample = ConversationThread(topic="temp")
        sample.add_message("User", content)

        best: Optional[ConversationThread] = None
        best_score = -1.0
        for thread in self._threads.values():
            if thread is self._current:
                continue
            score = thread.topic_similarity(sample)
            if score > best_score:
                best, best_score = thread, score
        return best

    def clear(self) -> None:
        self._threads.clear()
        self._current = None
        self.set_current_thread(self.create_thread(DEFAULT_TOPIC))
