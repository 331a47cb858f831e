"""Engine configuration — tier policies, recency limits and maintenance schedule."""

from typing import Dict, Optional

from croniter import croniter
from pydantic import BaseModel, Field, field_validator

from context_kernel.models.entity import DEFAULT_TIER_POLICIES, MemoryTier, TierPolicy


class EngineConfig(BaseModel):
    """Configuration injected into one ContextEngine (one conversation session)."""

    tiers: Dict[MemoryTier, TierPolicy] = Field(
        default_factory=lambda: dict(DEFAULT_TIER_POLICIES)
    )

    # Reference resolution
    recent_entities_limit: int = Field(default=10, ge=1)
    category_recency_limit: int = Field(default=5, ge=1)

    # Open questions
    follow_up_after_seconds: int = Field(default=300, ge=0)
    max_follow_ups: int = Field(default=3, ge=0)

    # Background maintenance
    sweep_interval_seconds: float = Field(default=30, gt=0)
    auto_save_schedule: Optional[str] = None    # Cron expression, e.g. "*/15 * * * *"

    # Snapshots
    snapshot_dir: str = "data/context"
    snapshot_version: str = "1.0"

    # Implicit topics
    max_tracked_topics: int = Field(default=50, ge=1)
    topic_min_confidence: float = Field(default=0.3, ge=0, le=1)
    pending_topics_limit: int = Field(default=20, ge=1)
    pending_min_relevance: float = Field(default=0.3, ge=0)

    @field_validator("tiers")
    @classmethod
    def _fill_missing_tiers(cls, value: Dict[MemoryTier, TierPolicy]) -> Dict[MemoryTier, TierPolicy]:
        merged = dict(DEFAULT_TIER_POLICIES)
        merged.update(value)
        flashbulb = merged[MemoryTier.FLASHBULB]
        if flashbulb.ttl_seconds is not None or flashbulb.capacity is not None:
            raise ValueError("FLASHBULB tier must have no TTL and no capacity")
        return merged

    @field_validator("auto_save_schedule")
    @classmethod
    def _check_cron(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not croniter.is_valid(value):
            raise ValueError(f"Invalid cron expression: {value!r}")
        return value

    def policy(self, tier: MemoryTier) -> TierPolicy:
        return self.tiers[tier]
