"""Snapshot records — the subset of engine state written to disk."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from context_kernel.models.entity import MemoryTier
from context_kernel.models.question import QuestionStatus


class PersistedEntity(BaseModel):
    id: str
    name: str
    entity_type: str
    tier: MemoryTier
    created_at: datetime


class PersistedTurn(BaseModel):
    sender: str
    content: str
    timestamp: datetime


class PersistedThread(BaseModel):
    id: str
    topic: str = ""
    created_at: datetime
    turns: List[PersistedTurn] = []


class PersistedQuestion(BaseModel):
    id: str
    text: str
    asked_by: str
    context: str = ""
    status: QuestionStatus = QuestionStatus.OPEN
    answer_text: Optional[str] = None


class Snapshot(BaseModel):
    """One saved snapshot. Not a durable or transactional format."""

    version: str = "1.0"
    timestamp: datetime
    entities: List[PersistedEntity] = []
    threads: List[PersistedThread] = []
    questions: List[PersistedQuestion] = []
