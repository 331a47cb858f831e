"""Pending Topics Queue — topics mentioned but not yet explored."""

from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, Iterable, List, Optional

from context_kernel.models.topics import PendingTopic, TrackedTopic

_RECENT_WINDOW_SECONDS = 30 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingTopicsQueue:
    """
    Bounded queue, newest at the front. When full, the topic at the back
    is dropped. The next topic to raise is the one with the highest urgency.
    """

    def __init__(
        self,
        max_size: int = 20,
        min_relevance: float = 0.3,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.max_size = max_size
        self.min_relevance = min_relevance
        self._clock = clock or _utcnow
        self._queue: Deque[PendingTopic] = deque()
        self._index: Dict[str, PendingTopic] = {}

    def add_topic(self, name: str, context: str = "", relevance_score: float = 0.5) -> Optional[PendingTopic]:
        """Queue a topic. Re-adding refreshes its relevance and wait time."""
        if not name or not name.strip():
            return None
        if relevance_score < self.min_relevance:
            return None

        key = name.lower()
        existing = self._index.get(key)
        if existing is not None:
            existing.relevance_score = max(existing.relevance_score, relevance_score)
            existing.added_at = self._clock()
            return existing

        topic = PendingTopic(
            name=name,
            context=context or "",
            relevance_score=relevance_score,
            added_at=self._clock(),
        )
        self._queue.appendleft(topic)
        self._index[key] = topic

        if len(self._queue) > self.max_size:
            dropped = self._queue.pop()
            self._index.pop(dropped.name.lower(), None)
        return topic

    def add_from_detected_topics(self, topics: Iterable[TrackedTopic]) -> None:
        now = self._clock()
        for tracked in topics:
            self.add_topic(tracked.name, tracked.category, tracked.salience_score(now))

    def next_topic(self) -> Optional[PendingTopic]:
        ranked = self.topics_by_urgency(1)
        return ranked[0] if ranked else None

    def topics_by_urgency(self, limit: int = 5) -> List[PendingTopic]:
        now = self._clock()
        ranked = sorted(self._queue, key=lambda t: t.urgency_score(now), reverse=True)
        return ranked[:limit]

    def recent_topics(self, limit: int = 5) -> List[PendingTopic]:
        """Topics queued within the last thirty minutes, newest first."""
        now = self._clock()
        recent = [
            t for t in self._queue
            if t.waiting_seconds(now) < _RECENT_WINDOW_SECONDS
        ]
        return recent[:limit]

    def address_topic(self, name: str) -> Optional[PendingTopic]:
        """Remove a topic because it has now been talked about."""
        topic = self._index.pop(name.lower(), None)
        if topic is not None:
            self._remove(topic)
        return topic

    def defer_topic(self, name: str) -> bool:
        """Move a topic to the back of the queue."""
        topic = self._index.get(name.lower())
        if topic is None:
            return False
        self._remove(topic)
        self._queue.append(topic)
        return True

    def bump_topic(self, name: str) -> bool:
        """Move a topic to the front of the queue and count the revisit."""
        topic = self._index.get(name.lower())
        if topic is None:
            return False
        self._remove(topic)
        self._queue.appendleft(topic)
        topic.revisit_count += 1
        return True

    def has_topic(self, name: str) -> bool:
        return name.lower() in self._index

    def size(self) -> int:
        return len(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def clear(self) -> None:
        self._queue.clear()
        self._index.clear()

    def get_statistics(self) -> dict:
        now = self._clock()
        nxt = self.next_topic()
        urgencies = [t.urgency_score(now) for t in self._queue]
        return {
            "pending_count": len(self._queue),
            "max_size": self.max_size,
            "next_topic": nxt.name if nxt else None,
            "average_urgency": sum(urgencies) / len(urgencies) if urgencies else 0.0,
        }

    def _remove(self, topic: PendingTopic) -> None:
        for i, queued in enumerate(self._queue):
            if queued is topic:
                del self._queue[i]
                return
