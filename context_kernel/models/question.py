"""Open Question — an utterance that still needs an answer."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class QuestionPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def level(self) -> int:
        return _PRIORITY_LEVELS[self]


_PRIORITY_LEVELS = {
    QuestionPriority.LOW: 1,
    QuestionPriority.MEDIUM: 2,
    QuestionPriority.HIGH: 3,
    QuestionPriority.URGENT: 4,
}


class QuestionStatus(str, Enum):
    OPEN = "OPEN"
    ANSWERED = "ANSWERED"     # Terminal
    DEFERRED = "DEFERRED"     # Terminal
    DROPPED = "DROPPED"       # Terminal


class OpenQuestion(BaseModel):
    """A tracked question. Leaves OPEN exactly once; never re-opened."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    text: str
    asked_by: str
    context: str = ""
    priority: QuestionPriority = QuestionPriority.MEDIUM
    status: QuestionStatus = QuestionStatus.OPEN
    created_at: datetime
    answered_at: Optional[datetime] = None
    answer_text: Optional[str] = None
    related_topic: Optional[str] = None
    related_entity: Optional[str] = None
    follow_up_count: int = 0

    @property
    def is_open(self) -> bool:
        return self.status == QuestionStatus.OPEN

    @property
    def is_answered(self) -> bool:
        return self.status == QuestionStatus.ANSWERED

    def time_open(self, now: datetime) -> float:
        """Seconds the question has been (or was) open."""
        if self.status == QuestionStatus.ANSWERED and self.answered_at:
            return (self.answered_at - self.created_at).total_seconds()
        return (now - self.created_at).total_seconds()

    def summary(self) -> str:
        lines = [
            f"Question: {self.text}",
            f"Asked by: {self.asked_by}",
            f"Priority: {self.priority.value}",
            f"Status: {self.status.value}",
        ]
        if self.is_answered:
            lines.append(f"Answer: {self.answer_text}")
        return "\n".join(lines)
