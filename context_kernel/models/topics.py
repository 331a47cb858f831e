"""Implicit topic models — detected topics and topics waiting to be explored."""

from datetime import datetime
from typing import Set
from uuid import uuid4

from pydantic import BaseModel, Field


class TrackedTopic(BaseModel):
    """A topic detected from conversation text without explicit labeling."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str
    category: str                           # e.g., "gaming", "travel", "custom"
    confidence: float = Field(ge=0, le=1)
    first_mention: datetime
    last_mention: datetime
    mention_count: int = 1
    related_keywords: Set[str] = set()
    context_phrases: Set[str] = set()

    def update(self, confidence: float, now: datetime) -> None:
        self.confidence = (self.confidence + confidence) / 2
        self.last_mention = now
        self.mention_count += 1

    def recency_score(self, now: datetime) -> float:
        """Linear decay to zero over thirty minutes."""
        elapsed = (now - self.last_mention).total_seconds()
        return max(0.0, 1.0 - elapsed / (30 * 60.0))

    def salience_score(self, now: datetime) -> float:
        return (
            self.confidence * 0.4
            + self.mention_count * 0.1
            + self.recency_score(now) * 0.5
        )


class PendingTopic(BaseModel):
    """A topic that was mentioned but not yet explored."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str
    context: str = ""
    priority: int = 0
    added_at: datetime
    revisit_count: int = 0
    relevance_score: float
    related_keywords: Set[str] = set()

    def waiting_seconds(self, now: datetime) -> float:
        return (now - self.added_at).total_seconds()

    def urgency_score(self, now: datetime) -> float:
        recency_boost = min(1.0, self.waiting_seconds(now) / 3600.0)
        return (
            self.relevance_score * 0.5
            + self.priority * 0.2
            + recency_boost * 0.3
        )
