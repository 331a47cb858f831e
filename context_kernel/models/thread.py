"""Conversation Thread — a cluster of turns sharing a topic."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field

from context_kernel.threads.keywords import extract_keywords


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThreadStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class ConversationTurn(BaseModel):
    """A single turn in a conversation thread."""

    sender: str
    content: str
    timestamp: datetime


class ConversationThread(BaseModel):
    """
    Turns grouped under one topic, with an incrementally maintained
    keyword frequency table. Coherence and similarity are always computed
    from the current state.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    topic: str = ""
    messages: List[ConversationTurn] = []
    keyword_frequency: Dict[str, int] = {}
    status: ThreadStatus = ThreadStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utcnow)
    last_activity_at: datetime = Field(default_factory=_utcnow)

    @property
    def message_count(self) -> int:
        return len(self.messages)

    def add_message(
        self,
        sender: str,
        content: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> ConversationTurn:
        """Append a turn and fold its keywords into the frequency table."""
        turn = ConversationTurn(
            sender=sender,
            content=content or "",
            timestamp=timestamp or _utcnow(),
        )
        self.messages.append(turn)
        self.last_activity_at = max(self.last_activity_at, turn.timestamp)
        for word in extract_keywords(turn.content):
            self.keyword_frequency[word] = self.keyword_frequency.get(word, 0) + 1
        return turn

    def top_keywords(self) -> List[Tuple[str, float]]:
        """Keywords scored relative to the most frequent one (which scores 1.0)."""
        if not self.keyword_frequency:
            return []
        max_freq = max(self.keyword_frequency.values())
        scored = [
            (word, freq / max_freq) for word, freq in self.keyword_frequency.items()
        ]
        return sorted(scored, key=lambda item: item[1], reverse=True)

    def coherence_score(self) -> float:
        if len(self.messages) < 2:
            return 1.0
        if not self.keyword_frequency:
            return 0.5
        total = sum(self.keyword_frequency.values())
        repeated = sum(f for f in self.keyword_frequency.values() if f > 1)
        length_factor = min(1.0, len(self.messages) / 10.0) * 0.3
        return min(1.0, max(0.0, (repeated / total) * 0.7 + length_factor))

    def topic_similarity(self, other: Optional["ConversationThread"]) -> float:
        """Jaccard index of the two keyword vocabularies."""
        if other is None:
            return 0.0
        mine = set(self.keyword_frequency)
        theirs = set(other.keyword_frequency)
        if not mine and not theirs:
            return 0.5
        if not mine or not theirs:
            return 0.2
        return len(mine & theirs) / len(mine | theirs)

    def merge_thread(self, other: Optional["ConversationThread"]) -> None:
        """
        Replay the other thread's turns into this one. The other thread
        is left untouched; archiving it is the caller's job.
        """
        if other is None or other is self:
            return
        for turn in list(other.messages):
            self.add_message(turn.sender, turn.content, turn.timestamp)
        if not self.topic and other.topic:
            self.topic = other.topic

    def summary(self) -> str:
        return (
            f"Thread: {self.topic or 'Untitled'}\n"
            f"Messages: {len(self.messages)}\n"
            f"Status: {self.status.value}\n"
            f"Coherence: {self.coherence_score():.2f}"
        )
