"""Tests for core data models."""

from datetime import datetime, timedelta, timezone

import pytest

from context_kernel.models import (
    ConversationThread,
    EngineConfig,
    Entity,
    MemoryTier,
    OpenQuestion,
    PendingTopic,
    QuestionPriority,
    QuestionStatus,
    TierPolicy,
    TrackedTopic,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _make_thread(*contents: str) -> ConversationThread:
    thread = ConversationThread(topic="test")
    for content in contents:
        thread.add_message("User", content, NOW)
    return thread


class TestEntity:
    def test_touch_records_access(self):
        entity = Entity(
            name="Sam",
            entity_type="person",
            tier=MemoryTier.WORKING,
            created_at=NOW,
            last_accessed=NOW,
        )
        later = NOW + timedelta(seconds=5)
        entity.touch(later)
        assert entity.access_count == 1
        assert entity.last_accessed == later

    def test_identity_is_the_id(self):
        a = Entity(name="Sam", entity_type="person", tier=MemoryTier.WORKING,
                   created_at=NOW, last_accessed=NOW)
        b = Entity(name="Sam", entity_type="person", tier=MemoryTier.WORKING,
                   created_at=NOW, last_accessed=NOW)
        assert a != b
        assert a.id != b.id
        assert len({a, b}) == 2

    def test_id_is_frozen(self):
        entity = Entity(name="Sam", entity_type="person", tier=MemoryTier.WORKING,
                        created_at=NOW, last_accessed=NOW)
        with pytest.raises(Exception):
            entity.id = "other"


class TestTierPolicy:
    def test_permanent_when_no_ttl(self):
        policy = TierPolicy()
        assert policy.permanent is True
        assert policy.ttl is None

    def test_ttl_as_timedelta(self):
        policy = TierPolicy(ttl_seconds=60, capacity=10)
        assert policy.permanent is False
        assert policy.ttl == timedelta(seconds=60)

    def test_ttl_must_be_positive(self):
        with pytest.raises(Exception):
            TierPolicy(ttl_seconds=-1)


class TestEngineConfig:
    def test_defaults_cover_every_tier(self):
        config = EngineConfig()
        assert set(config.tiers) == set(MemoryTier)
        assert config.policy(MemoryTier.WORKING).capacity == 10
        assert config.policy(MemoryTier.SHORT_TERM).ttl_seconds == 1800
        assert config.policy(MemoryTier.LONG_TERM).capacity == 200

    def test_partial_tiers_are_filled(self):
        config = EngineConfig(tiers={MemoryTier.WORKING: TierPolicy(ttl_seconds=5, capacity=2)})
        assert config.policy(MemoryTier.WORKING).capacity == 2
        assert config.policy(MemoryTier.SHORT_TERM).capacity == 50

    def test_flashbulb_cannot_expire(self):
        with pytest.raises(Exception):
            EngineConfig(tiers={MemoryTier.FLASHBULB: TierPolicy(ttl_seconds=60)})

    def test_invalid_cron_rejected(self):
        with pytest.raises(Exception):
            EngineConfig(auto_save_schedule="not a cron")

    def test_valid_cron_accepted(self):
        config = EngineConfig(auto_save_schedule="*/15 * * * *")
        assert config.auto_save_schedule == "*/15 * * * *"


class TestConversationThread:
    def test_keywords_are_counted_incrementally(self):
        thread = _make_thread("Java code is fun", "more java code")
        assert thread.keyword_frequency["java"] == 2
        assert thread.keyword_frequency["code"] == 2
        assert thread.keyword_frequency["fun"] == 1
        assert "is" not in thread.keyword_frequency

    def test_coherence_single_message(self):
        assert _make_thread("hello there").coherence_score() == 1.0

    def test_coherence_without_keywords(self):
        thread = _make_thread("it is", "so it is")
        assert thread.coherence_score() == 0.5

    def test_coherence_formula(self):
        thread = _make_thread("apple banana", "apple cherry")
        # repeated 2 of 4 keywords, two messages
        assert thread.coherence_score() == pytest.approx(0.5 * 0.7 + 0.2 * 0.3)

    def test_coherence_bounded(self):
        thread = _make_thread(*["java java java"] * 20)
        assert 0.0 <= thread.coherence_score() <= 1.0

    def test_similarity_jaccard(self):
        a = _make_thread("java code")
        b = _make_thread("java python")
        assert a.topic_similarity(b) == pytest.approx(1 / 3)
        assert b.topic_similarity(a) == pytest.approx(1 / 3)

    def test_similarity_edge_cases(self):
        empty = ConversationThread()
        other_empty = ConversationThread()
        full = _make_thread("java code")
        assert empty.topic_similarity(other_empty) == 0.5
        assert empty.topic_similarity(full) == 0.2
        assert full.topic_similarity(None) == 0.0

    def test_merge_adds_messages_and_keywords(self):
        target = _make_thread("java code")
        source = _make_thread("java python", "python rocks")
        target.merge_thread(source)
        assert target.message_count == 3
        assert target.keyword_frequency["java"] == 2
        assert target.keyword_frequency["python"] == 2
        assert source.message_count == 2

    def test_top_keywords_relative_to_max(self):
        thread = _make_thread("java java code")
        top = thread.top_keywords()
        assert top[0] == ("java", 1.0)
        assert top[1] == ("code", 0.5)


class TestOpenQuestion:
    def test_time_open(self):
        question = OpenQuestion(text="Why?", asked_by="User", created_at=NOW)
        assert question.time_open(NOW + timedelta(seconds=90)) == 90
        assert question.is_open

    def test_answered_time_is_fixed(self):
        question = OpenQuestion(
            text="Why?",
            asked_by="User",
            created_at=NOW,
            status=QuestionStatus.ANSWERED,
            answered_at=NOW + timedelta(seconds=10),
            answer_text="Because",
        )
        assert question.time_open(NOW + timedelta(hours=1)) == 10
        assert "Answer: Because" in question.summary()

    def test_priority_levels(self):
        assert QuestionPriority.URGENT.level > QuestionPriority.HIGH.level
        assert QuestionPriority.MEDIUM.level > QuestionPriority.LOW.level


class TestTopics:
    def test_recency_decays_over_thirty_minutes(self):
        topic = TrackedTopic(
            name="minecraft", category="gaming", confidence=0.4,
            first_mention=NOW, last_mention=NOW,
        )
        assert topic.recency_score(NOW) == 1.0
        assert topic.recency_score(NOW + timedelta(minutes=15)) == pytest.approx(0.5)
        assert topic.recency_score(NOW + timedelta(hours=1)) == 0.0

    def test_salience(self):
        topic = TrackedTopic(
            name="minecraft", category="gaming", confidence=0.5,
            first_mention=NOW, last_mention=NOW,
        )
        assert topic.salience_score(NOW) == pytest.approx(0.2 + 0.1 + 0.5)

    def test_urgency_grows_with_waiting(self):
        pending = PendingTopic(name="travel", relevance_score=0.6, added_at=NOW)
        assert pending.urgency_score(NOW) == pytest.approx(0.3)
        assert pending.urgency_score(NOW + timedelta(hours=2)) == pytest.approx(0.6)
