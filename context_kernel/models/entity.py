"""Entity Model — tracked referents and the memory tiers that retain them."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class MemoryTier(str, Enum):
    WORKING = "WORKING"          # The immediate utterance
    SHORT_TERM = "SHORT_TERM"    # The current session
    LONG_TERM = "LONG_TERM"      # Cross-session recall
    FLASHBULB = "FLASHBULB"      # Pinned facts, never evicted


class TierPolicy(BaseModel):
    """Retention policy for one memory tier. None means no limit."""

    ttl_seconds: Optional[float] = Field(default=None, gt=0)
    capacity: Optional[int] = Field(default=None, ge=0)

    @property
    def permanent(self) -> bool:
        return self.ttl_seconds is None

    @property
    def ttl(self) -> Optional[timedelta]:
        if self.ttl_seconds is None:
            return None
        return timedelta(seconds=self.ttl_seconds)


DEFAULT_TIER_POLICIES: Dict[MemoryTier, TierPolicy] = {
    MemoryTier.WORKING: TierPolicy(ttl_seconds=60, capacity=10),
    MemoryTier.SHORT_TERM: TierPolicy(ttl_seconds=30 * 60, capacity=50),
    MemoryTier.LONG_TERM: TierPolicy(ttl_seconds=24 * 60 * 60, capacity=200),
    MemoryTier.FLASHBULB: TierPolicy(),
}


def new_entity_id() -> str:
    return uuid4().hex


class Entity(BaseModel):
    """A person, object, topic or place mentioned in conversation."""

    id: str = Field(default_factory=new_entity_id, frozen=True)
    name: str
    entity_type: str                        # e.g., "person", "book", "topic"
    tier: MemoryTier
    created_at: datetime
    last_accessed: datetime
    access_count: int = 0
    attributes: Dict[str, Any] = {}

    def touch(self, now: datetime) -> None:
        """Record an access."""
        self.last_accessed = now
        self.access_count += 1

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return self.id == other.id
