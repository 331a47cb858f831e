"""
Implicit Topic Tracker — picks topics out of conversation text without
explicit labeling.

Two detectors run on every text:
  - Category patterns: a fixed keyword list per category; the best-matching
    keyword of a category becomes the topic.
  - Custom phrases: the text is chunked into phrases of up to three words;
    each non-trivial phrase is tracked as a "custom" topic.
"""

import re
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional

from context_kernel.models.topics import TrackedTopic

TOPIC_PATTERNS: Dict[str, frozenset] = {
    "technology": frozenset({
        "computer", "software", "app", "phone", "internet", "code", "programming",
        "ai", "robot", "device", "digital", "online", "website", "data",
    }),
    "gaming": frozenset({
        "game", "play", "player", "level", "win", "score", "gaming", "video game",
        "fortnite", "minecraft", "cs2", "console", "gamer", "multiplayer",
    }),
    "academics": frozenset({
        "school", "college", "university", "study", "homework", "exam", "test",
        "grade", "class", "subject", "teacher", "assignment", "quiz",
    }),
    "relationships": frozenset({
        "friend", "family", "relationship", "dating", "marriage", "love", "partner",
        "parents", "sibling", "boyfriend", "girlfriend",
    }),
    "health": frozenset({
        "health", "exercise", "fitness", "workout", "gym", "diet", "nutrition",
        "sleep", "mental health", "anxiety", "depression", "stress",
    }),
    "entertainment": frozenset({
        "movie", "film", "series", "show", "music", "song", "book", "reading",
        "tv", "netflix", "youtube", "streaming", "anime",
    }),
    "food": frozenset({
        "food", "eat", "cooking", "recipe", "restaurant", "breakfast", "lunch",
        "dinner", "snack", "healthy", "delicious", "cuisine",
    }),
    "travel": frozenset({
        "travel", "trip", "vacation", "holiday", "flight", "hotel", "destination",
        "tourism", "adventure", "country", "city", "beach",
    }),
    "work": frozenset({
        "job", "work", "career", "office", "boss", "employee", "salary",
        "interview", "resume", "profession", "business",
    }),
}

COMMON_PHRASES = frozenset({
    "i think", "i feel", "i want", "i need", "i like", "i love",
    "what about", "how about", "do you", "can you", "would you",
})

_PHRASE = re.compile(r"\b\w+(?:\s+\w+){0,2}\b")
_CUSTOM_CONFIDENCE = 0.4
_RECENT_WINDOW_SECONDS = 10 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def count_occurrences(text: str, keyword: str) -> int:
    """Whole-word occurrences of a keyword (which may span words)."""
    return len(re.findall(r"\b" + re.escape(keyword) + r"\b", text))


class ImplicitTopicTracker:

    def __init__(
        self,
        max_tracked_topics: int = 50,
        min_confidence: float = 0.3,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.max_tracked_topics = max_tracked_topics
        self.min_confidence = min_confidence
        self._clock = clock or _utcnow
        self._topics: Dict[str, TrackedTopic] = {}
        self._history: Deque[TrackedTopic] = deque()

    def process_text(self, text: Optional[str]) -> List[TrackedTopic]:
        """Detect and record the topics of a piece of text."""
        if not text:
            return []
        lowered = text.lower()
        detected: List[TrackedTopic] = []

        for category, keywords in TOPIC_PATTERNS.items():
            best_keyword = None
            best_confidence = 0.0
            for keyword in sorted(keywords):
                count = count_occurrences(lowered, keyword)
                if count == 0:
                    continue
                confidence = min(1.0, 0.3 + count * 0.1)
                if confidence > best_confidence:
                    best_keyword, best_confidence = keyword, confidence
            if best_keyword and best_confidence >= self.min_confidence:
                topic = self._get_or_create(best_keyword, category, best_confidence)
                topic.related_keywords.add(best_keyword)
                detected.append(topic)

        for match in _PHRASE.finditer(lowered):
            phrase = match.group().strip()
            if len(phrase) <= 3 or phrase in COMMON_PHRASES:
                continue
            topic = self._get_or_create(phrase, "custom", _CUSTOM_CONFIDENCE)
            topic.context_phrases.add(phrase)
            if topic not in detected:
                detected.append(topic)

        return detected

    def _get_or_create(self, name: str, category: str, confidence: float) -> TrackedTopic:
        key = name.lower()
        now = self._clock()
        topic = self._topics.get(key)

        if topic is None:
            topic = TrackedTopic(
                name=name,
                category=category,
                confidence=confidence,
                first_mention=now,
                last_mention=now,
            )
            self._topics[key] = topic
            self._history.appendleft(topic)
            if len(self._topics) > self.max_tracked_topics:
                oldest = self._history.pop()
                self._topics.pop(oldest.name.lower(), None)
        else:
            topic.update(confidence, now)
            self._history.remove(topic)
            self._history.appendleft(topic)

        return topic

    # --- Queries ---

    def top_topics(self, limit: int = 5) -> List[TrackedTopic]:
        now = self._clock()
        ranked = sorted(
            self._topics.values(),
            key=lambda t: t.salience_score(now),
            reverse=True,
        )
        return ranked[:limit]

    def dominant_topic(self) -> Optional[TrackedTopic]:
        top = self.top_topics(1)
        return top[0] if top else None

    def recent_topics(self, limit: int = 5) -> List[TrackedTopic]:
        """Most recently mentioned topics from the last ten minutes."""
        now = self._clock()
        recent = [
            t for t in self._history
            if (now - t.last_mention).total_seconds() < _RECENT_WINDOW_SECONDS
        ]
        return recent[:limit]

    def detect_topic_transitions(self) -> List[TrackedTopic]:
        """Recurring topics that have faded well below the dominant one."""
        current = self.dominant_topic()
        if current is None:
            return []
        now = self._clock()
        threshold = current.salience_score(now) * 0.5
        faded = [
            t for t in self._topics.values()
            if t is not current
            and t.mention_count > 1
            and t.salience_score(now) < threshold
        ]
        return sorted(faded, key=lambda t: t.salience_score(now), reverse=True)

    def suggest_related_topics(self, topic_name: str) -> List[str]:
        topic = self.get_topic(topic_name)
        if topic is None:
            return []
        related = [
            t.name for t in self._topics.values()
            if t is not topic and t.category == topic.category
        ]
        return related[:5]

    def has_topic_been_discussed(self, topic_name: str) -> bool:
        return topic_name.lower() in self._topics

    def get_topic(self, topic_name: str) -> Optional[TrackedTopic]:
        return self._topics.get(topic_name.lower())

    def clear(self) -> None:
        self._topics.clear()
        self._history.clear()

    def get_statistics(self) -> dict:
        dominant = self.dominant_topic()
        categories = []
        for topic in self._topics.values():
            if topic.category not in categories:
                categories.append(topic.category)
        return {
            "total_topics": len(self._topics),
            "dominant_topic": dominant.name if dominant else None,
            "categories_found": categories,
        }
