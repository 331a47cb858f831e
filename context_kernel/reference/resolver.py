"""
Reference Resolver — maps pronouns to entities held in the EntityStore.

Resolution order:
  1. Explicit pronoun → entity binding
  2. Demonstratives (it/this/that/here/there...): most recent entity whose
     type fits the demonstrative's category
  3. Person pronouns (he/she/they...): most recent person-like entity
  4. The last mentioned entity, whatever its type

Steps 3 and 4 are guesses: they return an entity when one is available but
are counted as unresolved. The resolver stores entity ids only; entity
lifetime belongs to the store, which notifies the resolver on removal.
That notification can arrive from the sweeper's thread, so resolver state
is guarded by its own lock.
"""

import re
import threading
from collections import deque
from typing import Deque, Dict, FrozenSet, List, Optional

from context_kernel.memory.store import EntityStore
from context_kernel.models.entity import Entity
from context_kernel.observability.logging import session_logger

OBJECT_PRONOUNS = frozenset({"it", "its"})
TOPIC_PRONOUNS = frozenset({"this", "that", "these", "those"})
PLACE_PRONOUNS = frozenset({"here", "there"})
PERSON_PRONOUNS = frozenset({
    "he", "him", "his", "she", "her", "hers", "they", "them", "their", "theirs",
})

OBJECT_TYPES = frozenset({"object", "thing", "concept", "book", "game", "item", "idea"})
TOPIC_TYPES = frozenset({"topic", "subject", "idea", "question", "matter", "situation"})
PLACE_TYPES = frozenset({"place", "location", "city", "country", "building", "room"})
PERSON_TYPES = frozenset({"person", "character", "user", "friend"})

COMMON_PRONOUNS = frozenset({
    # personal
    "i", "me", "my", "mine", "you", "your", "yours", "he", "him", "his",
    "she", "her", "hers", "it", "its", "we", "us", "our", "ours",
    "they", "them", "their", "theirs",
    # reflexive
    "myself", "yourself", "himself", "herself", "itself", "ourselves",
    "yourselves", "themselves",
    # demonstrative
    "this", "that", "these", "those", "here", "there",
    # interrogative / relative
    "who", "whom", "whose", "which", "what", "where", "when", "why", "how",
    # indefinite
    "anyone", "anything", "anybody", "everyone", "everything", "everybody",
    "someone", "something", "somebody", "nothing", "nobody",
})

_CATEGORIES: Dict[str, FrozenSet[str]] = {
    "object": OBJECT_PRONOUNS,
    "topic": TOPIC_PRONOUNS,
    "place": PLACE_PRONOUNS,
}

_CATEGORY_TYPES: Dict[str, FrozenSet[str]] = {
    "object": OBJECT_TYPES,
    "topic": TOPIC_TYPES,
    "place": PLACE_TYPES,
}

_WORD = re.compile(r"\b\w+\b")
_NON_LETTERS = re.compile(r"[^a-zA-Z]")


def demonstrative_category(word: str) -> Optional[str]:
    """'object', 'topic' or 'place' for a demonstrative pronoun, else None."""
    for category, pronouns in _CATEGORIES.items():
        if word in pronouns:
            return category
    return None


class ReferenceResolver:
    """Pronoun resolution over a bounded, category-aware recency history."""

    def __init__(
        self,
        store: EntityStore,
        recent_limit: int = 10,
        category_limit: int = 5,
        session_id: Optional[str] = None,
    ):
        self._store = store
        self._lock = threading.RLock()
        self._log = session_logger(__name__, session_id)
        self._bindings: Dict[str, str] = {}
        self._recent: Deque[str] = deque(maxlen=recent_limit)
        self._recent_by_category: Dict[str, Deque[str]] = {
            category: deque(maxlen=category_limit) for category in _CATEGORIES
        }
        self._last_mentioned: Optional[str] = None
        self.resolution_count = 0
        self.unresolved_count = 0
        store.add_removal_listener(self.forget_entity)

    # --- Registration ---

    def register_pronoun(self, pronoun: str, entity: Entity) -> None:
        """Bind a pronoun to an entity and record the mention."""
        if pronoun is None or entity is None:
            return

        word = pronoun.lower()
        category = demonstrative_category(word)
        with self._lock:
            self._bindings[word] = entity.id
            _push_front(self._recent, entity.id)
            if category:
                _push_front(self._recent_by_category[category], entity.id)
            self._last_mentioned = entity.id

    def remove_pronoun(self, pronoun: str) -> None:
        if pronoun is not None:
            with self._lock:
                self._bindings.pop(pronoun.lower(), None)

    def update_pronoun_reference(
        self,
        old_pronoun: Optional[str],
        new_pronoun: Optional[str],
        entity: Optional[Entity],
    ) -> None:
        self.remove_pronoun(old_pronoun)
        if new_pronoun is not None and entity is not None:
            self.register_pronoun(new_pronoun, entity)

    def forget_entity(self, entity: Entity, reason: str = "removed") -> None:
        """Drop every binding and recency entry that points at an entity."""
        with self._lock:
            self._bindings.pop(entity.name.lower(), None)
            for pronoun in [p for p, eid in list(self._bindings.items()) if eid == entity.id]:
                del self._bindings[pronoun]

            _discard(self._recent, entity.id)
            for recent in self._recent_by_category.values():
                _discard(recent, entity.id)

            if self._last_mentioned == entity.id:
                self._last_mentioned = None

    def clear(self) -> None:
        with self._lock:
            self._bindings.clear()
            self._recent.clear()
            for recent in self._recent_by_category.values():
                recent.clear()
            self._last_mentioned = None
            self.resolution_count = 0
            self.unresolved_count = 0

    # --- Resolution ---

    def resolve_pronoun(self, pronoun: str) -> Optional[Entity]:
        """Resolve a pronoun. Never raises; may return a best guess."""
        if pronoun is None:
            return None
        word = pronoun.lower()

        with self._lock:
            entity = self._lookup(self._bindings.get(word))
            if entity is None:
                category = demonstrative_category(word)
                if category:
                    entity = self._most_recent_of_types(_CATEGORY_TYPES[category])
            if entity is not None:
                self.resolution_count += 1
                self._store.touch(entity.id)
                return entity

            self.unresolved_count += 1
            self._log.debug("pronoun_unresolved", pronoun=word)

            if word in PERSON_PRONOUNS:
                entity = self._most_recent_of_types(PERSON_TYPES)
                if entity is not None:
                    self._store.touch(entity.id)
                    return entity

            return self._lookup(self._last_mentioned)

    def resolve_pronoun_in_context(
        self, pronoun: str, context_hint: Optional[str] = None
    ) -> Optional[Entity]:
        """Resolve, then fall back to matching the hint against recent entities."""
        entity = self.resolve_pronoun(pronoun)
        if entity is None and context_hint:
            hint = context_hint.lower()
            for candidate in self.recent_entities():
                if hint in candidate.name.lower() or hint in candidate.entity_type.lower():
                    return candidate
        return entity

    def is_pronoun(self, word: Optional[str]) -> bool:
        return word is not None and word.lower() in COMMON_PRONOUNS

    def find_pronouns(self, text: Optional[str]) -> List[str]:
        """Pronouns appearing in text, lowercased, in order."""
        if not text:
            return []
        found = []
        for token in text.split():
            clean = _NON_LETTERS.sub("", token)
            if self.is_pronoun(clean):
                found.append(clean.lower())
        return found

    def resolve_pronouns_in_text(
        self, text: Optional[str], context_hint: Optional[str] = None
    ) -> Optional[str]:
        """Replace every pronoun that resolves with the entity's name."""
        if text is None:
            return None

        def _replace(match: "re.Match") -> str:
            word = match.group()
            clean = _NON_LETTERS.sub("", word)
            if not self.is_pronoun(clean):
                return word
            entity = self.resolve_pronoun_in_context(clean, context_hint)
            return entity.name if entity is not None else word

        return _WORD.sub(_replace, text)

    # --- Inspection ---

    def registered_pronouns(self) -> List[str]:
        with self._lock:
            return sorted(self._bindings)

    def recent_entities(self) -> List[Entity]:
        return self._resolve_ids(self._recent)

    def recent_objects(self) -> List[Entity]:
        return self._resolve_ids(self._recent_by_category["object"])

    def recent_topics(self) -> List[Entity]:
        return self._resolve_ids(self._recent_by_category["topic"])

    def recent_places(self) -> List[Entity]:
        return self._resolve_ids(self._recent_by_category["place"])

    @property
    def last_mentioned(self) -> Optional[Entity]:
        with self._lock:
            return self._lookup(self._last_mentioned)

    def most_recent_of_type(self, entity_type: str) -> Optional[Entity]:
        """Most recent entity of a type, else whatever that word is bound to."""
        with self._lock:
            entity = self._most_recent_of_types(frozenset({entity_type.lower()}))
            if entity is None:
                entity = self._lookup(self._bindings.get(entity_type.lower()))
            return entity

    def get_statistics(self) -> dict:
        with self._lock:
            attempts = self.resolution_count + self.unresolved_count
            return {
                "total_pronouns": len(self._bindings),
                "resolution_count": self.resolution_count,
                "unresolved_count": self.unresolved_count,
                "resolution_rate": self.resolution_count / attempts if attempts else 0.0,
                "recent_objects_count": len(self._recent_by_category["object"]),
                "recent_topics_count": len(self._recent_by_category["topic"]),
                "recent_places_count": len(self._recent_by_category["place"]),
            }

    # --- Internals ---

    def _lookup(self, entity_id: Optional[str]) -> Optional[Entity]:
        if entity_id is None:
            return None
        return self._store.peek(entity_id)

    def _resolve_ids(self, ids: Deque[str]) -> List[Entity]:
        with self._lock:
            snapshot = list(ids)
        entities = []
        for entity_id in snapshot:
            entity = self._store.peek(entity_id)
            if entity is not None:
                entities.append(entity)
        return entities

    def _most_recent_of_types(self, types: FrozenSet[str]) -> Optional[Entity]:
        for entity in self.recent_entities():
            if entity.entity_type.lower() in types:
                return entity
        return None


def _push_front(recent: Deque[str], entity_id: str) -> None:
    """Move an id to the front; the deque's maxlen drops the oldest."""
    _discard(recent, entity_id)
    recent.appendleft(entity_id)


def _discard(recent: Deque[str], entity_id: str) -> None:
    try:
        recent.remove(entity_id)
    except ValueError:
        pass
