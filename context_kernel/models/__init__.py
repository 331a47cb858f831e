"""Context Kernel data models."""

from context_kernel.models.config import EngineConfig
from context_kernel.models.entity import (
    DEFAULT_TIER_POLICIES,
    Entity,
    MemoryTier,
    TierPolicy,
)
from context_kernel.models.question import (
    OpenQuestion,
    QuestionPriority,
    QuestionStatus,
)
from context_kernel.models.snapshot import (
    PersistedEntity,
    PersistedQuestion,
    PersistedThread,
    PersistedTurn,
    Snapshot,
)
from context_kernel.models.thread import (
    ConversationThread,
    ConversationTurn,
    ThreadStatus,
)
from context_kernel.models.topics import PendingTopic, TrackedTopic

__all__ = [
    "DEFAULT_TIER_POLICIES",
    "ConversationThread",
    "ConversationTurn",
    "EngineConfig",
    "Entity",
    "MemoryTier",
    "OpenQuestion",
    "PendingTopic",
    "PersistedEntity",
    "PersistedQuestion",
    "PersistedThread",
    "PersistedTurn",
    "QuestionPriority",
    "QuestionStatus",
    "Snapshot",
    "ThreadStatus",
    "TierPolicy",
    "TrackedTopic",
]
