"""
Entity Store — tiered memory of everything mentioned in a conversation.

Behavioral Contract:
- Every entity lives in exactly one tier. Each tier keeps its member ids in
  tier-entry order, which is also the eviction order (FIFO per tier, not LRU).
- After an insertion or a move, the destination tier is trimmed back to its
  capacity, oldest tier-entry first.
- The TTL sweep removes entities not accessed within their tier's TTL.
  FLASHBULB entities are neither evicted nor expired.
- Removal, eviction and expiry all notify removal listeners, so components
  holding entity ids (the reference resolver) can drop them.
- Tier membership is guarded by a lock so the sweep may run from a
  background task while the conversation loop reads.
"""

import threading
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from context_kernel.models.entity import (
    DEFAULT_TIER_POLICIES,
    Entity,
    MemoryTier,
    TierPolicy,
)
from context_kernel.observability.logging import session_logger

# Called with the entity that left the store and the reason:
# "removed", "evicted" or "expired".
RemovalListener = Callable[[Entity, str], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityStore:
    """In-memory, session-scoped entity store."""

    def __init__(
        self,
        tiers: Optional[Dict[MemoryTier, TierPolicy]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        session_id: Optional[str] = None,
    ):
        self._policies: Dict[MemoryTier, TierPolicy] = dict(DEFAULT_TIER_POLICIES)
        if tiers:
            self._policies.update(tiers)
        self._clock = clock or _utcnow
        self._entities: Dict[str, Entity] = {}
        self._members: Dict[MemoryTier, "OrderedDict[str, None]"] = {
            tier: OrderedDict() for tier in MemoryTier
        }
        self._lock = threading.RLock()
        self._listeners: List[RemovalListener] = []
        self._log = session_logger(__name__, session_id)

    def now(self) -> datetime:
        return self._clock()

    def policy(self, tier: MemoryTier) -> TierPolicy:
        return self._policies[tier]

    def add_removal_listener(self, listener: RemovalListener) -> None:
        """Subscribe to entity removal, eviction and expiry."""
        self._listeners.append(listener)

    # --- Insertion ---

    def add(
        self,
        name: str,
        entity_type: str,
        tier: MemoryTier = MemoryTier.WORKING,
    ) -> Entity:
        """Create an entity in the given tier, then enforce that tier's capacity."""
        now = self._clock()
        entity = Entity(
            name=name,
            entity_type=entity_type,
            tier=tier,
            created_at=now,
            last_accessed=now,
        )
        self._insert(entity)
        return entity

    def restore(self, entity: Entity) -> bool:
        """
        Insert an already-built entity, keeping its id. Used when loading
        snapshots. Returns False if the id is already present.
        """
        with self._lock:
            if entity.id in self._entities:
                return False
        self._insert(entity)
        return True

    def _insert(self, entity: Entity) -> None:
        with self._lock:
            self._entities[entity.id] = entity
            self._members[entity.tier][entity.id] = None
            evicted = self._enforce_capacity(entity.tier)
        self._notify(evicted, "evicted")

    # --- Lookup ---

    def get(self, entity_id: str) -> Optional[Entity]:
        """Get an entity by id and record the access."""
        with self._lock:
            entity = self._entities.get(entity_id)
            if entity:
                entity.touch(self._clock())
        return entity

    def peek(self, entity_id: str) -> Optional[Entity]:
        """Get an entity by id without recording an access."""
        with self._lock:
            return self._entities.get(entity_id)

    def touch(self, entity_id: str) -> bool:
        return self.get(entity_id) is not None

    def contains(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._entities

    def find_by_name(self, name: str) -> Optional[Entity]:
        """Case-insensitive exact name match. Records the access on a hit."""
        if name is None:
            return None
        wanted = name.lower()
        with self._lock:
            for entity in self._entities.values():
                if entity.name.lower() == wanted:
                    entity.touch(self._clock())
                    return entity
        return None

    def find_by_type(self, entity_type: str) -> List[Entity]:
        """All entities of a type (case-insensitive). Does not count as access."""
        if entity_type is None:
            return []
        wanted = entity_type.lower()
        with self._lock:
            return [
                e for e in self._entities.values()
                if e.entity_type.lower() == wanted
            ]

    def entities_by_tier(self, tier: MemoryTier) -> List[Entity]:
        """Members of a tier, oldest tier-entry first."""
        with self._lock:
            return [
                self._entities[eid]
                for eid in self._members[tier]
                if eid in self._entities
            ]

    def all_entities(self) -> List[Entity]:
        with self._lock:
            return list(self._entities.values())

    def count(self, tier: Optional[MemoryTier] = None) -> int:
        with self._lock:
            if tier is None:
                return len(self._entities)
            return len(self._members[tier])

    # --- Mutation ---

    def rename(self, entity_id: str, name: str) -> bool:
        with self._lock:
            entity = self._entities.get(entity_id)
            if not entity:
                return False
            entity.name = name
            entity.touch(self._clock())
        return True

    def set_attribute(self, entity_id: str, key: str, value: Any) -> bool:
        with self._lock:
            entity = self._entities.get(entity_id)
            if not entity:
                return False
            entity.attributes[key] = value
            entity.touch(self._clock())
        return True

    def move_tier(self, entity_id: str, new_tier: MemoryTier) -> bool:
        """
        Move an entity to another tier, entering it at the most-recent
        position. Only the destination tier is trimmed.
        """
        with self._lock:
            entity = self._entities.get(entity_id)
            if not entity:
                return False
            self._members[entity.tier].pop(entity_id, None)
            entity.tier = new_tier
            entity.touch(self._clock())
            self._members[new_tier][entity_id] = None
            evicted = self._enforce_capacity(new_tier)
        self._notify(evicted, "evicted")
        return True

    def remove(self, entity_id: str) -> bool:
        """Delete an entity and notify listeners."""
        with self._lock:
            entity = self._entities.pop(entity_id, None)
            if not entity:
                return False
            self._members[entity.tier].pop(entity_id, None)
        self._notify([entity], "removed")
        return True

    def clear(self) -> None:
        with self._lock:
            self._entities.clear()
            for members in self._members.values():
                members.clear()

    # --- Memory management ---

    def _enforce_capacity(self, tier: MemoryTier) -> List[Entity]:
        """Trim a tier to capacity, oldest tier-entry first. Caller holds the lock."""
        capacity = self._policies[tier].capacity
        if tier == MemoryTier.FLASHBULB or capacity is None:
            return []

        members = self._members[tier]
        evicted = []
        while len(members) > capacity:
            oldest_id, _ = members.popitem(last=False)
            oldest = self._entities.get(oldest_id)
            if oldest is not None and oldest.tier == tier:
                del self._entities[oldest_id]
                evicted.append(oldest)
        return evicted

    def sweep_expired(self, now: Optional[datetime] = None) -> List[str]:
        """
        Remove every entity whose last access is older than its tier's TTL.
        Returns the expired ids.
        """
        if now is None:
            now = self._clock()

        expired: List[Entity] = []
        with self._lock:
            for tier, members in self._members.items():
                policy = self._policies[tier]
                if tier == MemoryTier.FLASHBULB or policy.permanent:
                    continue
                ttl = policy.ttl
                for entity_id in list(members):
                    entity = self._entities.get(entity_id)
                    if entity is None:
                        del members[entity_id]
                        continue
                    if now - entity.last_accessed > ttl:
                        del members[entity_id]
                        del self._entities[entity_id]
                        expired.append(entity)

        if expired:
            self._log.info("entities_expired", count=len(expired))
        self._notify(expired, "expired")
        return [e.id for e in expired]

    def promote_to_long_term(self) -> int:
        """Move every SHORT_TERM entity to LONG_TERM."""
        promoted = self.entities_by_tier(MemoryTier.SHORT_TERM)
        for entity in promoted:
            self.move_tier(entity.id, MemoryTier.LONG_TERM)
        return len(promoted)

    def demote_to_short_term(self, min_access_count: int = 3) -> int:
        """Move rarely accessed LONG_TERM entities back to SHORT_TERM."""
        demoted = [
            e for e in self.entities_by_tier(MemoryTier.LONG_TERM)
            if e.access_count < min_access_count
        ]
        for entity in demoted:
            self.move_tier(entity.id, MemoryTier.SHORT_TERM)
        return len(demoted)

    def _notify(self, entities: List[Entity], reason: str) -> None:
        for entity in entities:
            if reason == "evicted":
                self._log.debug(
                    "entity_evicted",
                    entity_id=entity.id,
                    name=entity.name,
                    tier=entity.tier.value,
                )
            for listener in self._listeners:
                listener(entity, reason)
