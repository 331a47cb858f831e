"""
Question Tracker — questions that were asked and not yet answered.

States:
  OPEN → ANSWERED | DEFERRED | DROPPED   (all terminal, no re-opening)

Follow-up: an OPEN question becomes eligible for re-surfacing once it has
been open longer than the follow-up delay, until it has been followed up
max_follow_ups times. Consumers must call increment_follow_up_count each
time they re-surface a question.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from context_kernel.models.question import (
    OpenQuestion,
    QuestionPriority,
    QuestionStatus,
)
from context_kernel.observability.logging import session_logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionTracker:

    def __init__(
        self,
        follow_up_after_seconds: int = 300,
        max_follow_ups: int = 3,
        clock: Optional[Callable[[], datetime]] = None,
        session_id: Optional[str] = None,
    ):
        self.follow_up_after_seconds = follow_up_after_seconds
        self.max_follow_ups = max_follow_ups
        self._clock = clock or _utcnow
        self._questions: Dict[str, OpenQuestion] = {}
        self._log = session_logger(__name__, session_id)

    def create_open_question(
        self,
        text: str,
        asked_by: str,
        context: str = "",
        priority: QuestionPriority = QuestionPriority.MEDIUM,
    ) -> OpenQuestion:
        question = OpenQuestion(
            text=text,
            asked_by=asked_by,
            context=context or "",
            priority=priority,
            created_at=self._clock(),
        )
        self._questions[question.id] = question
        return question

    def adopt_question(self, question: OpenQuestion) -> bool:
        """Take ownership of an existing question (snapshot load)."""
        if question.id in self._questions:
            return False
        self._questions[question.id] = question
        return True

    def get_question(self, question_id: str) -> Optional[OpenQuestion]:
        return self._questions.get(question_id)

    # --- Transitions ---

    def mark_answered(self, question_id: str, answer_text: str) -> bool:
        question = self._open_question(question_id)
        if question is None:
            return False
        question.status = QuestionStatus.ANSWERED
        question.answer_text = answer_text
        question.answered_at = max(self._clock(), question.created_at)
        self._log.debug("question_answered", question_id=question_id)
        return True

    def defer(self, question_id: str) -> bool:
        return self._close(question_id, QuestionStatus.DEFERRED)

    def drop(self, question_id: str) -> bool:
        return self._close(question_id, QuestionStatus.DROPPED)

    def increment_follow_up_count(self, question_id: str) -> bool:
        question = self._questions.get(question_id)
        if question is None:
            return False
        question.follow_up_count += 1
        return True

    def _open_question(self, question_id: str) -> Optional[OpenQuestion]:
        question = self._questions.get(question_id)
        if question is None or not question.is_open:
            return None
        return question

    def _close(self, question_id: str, status: QuestionStatus) -> bool:
        question = self._open_question(question_id)
        if question is None:
            return False
        question.status = status
        return True

    # --- Queries ---

    def all_questions(self) -> List[OpenQuestion]:
        return list(self._questions.values())

    def get_open_questions(self) -> List[OpenQuestion]:
        """OPEN questions, highest priority first."""
        return sorted(
            (q for q in self._questions.values() if q.is_open),
            key=lambda q: q.priority.level,
            reverse=True,
        )

    def find_oldest_open_question(self) -> Optional[OpenQuestion]:
        open_questions = [q for q in self._questions.values() if q.is_open]
        if not open_questions:
            return None
        return min(open_questions, key=lambda q: q.created_at)

    def find_highest_priority_question(self) -> Optional[OpenQuestion]:
        open_questions = self.get_open_questions()
        return open_questions[0] if open_questions else None

    def get_questions_for_follow_up(
        self, now: Optional[datetime] = None
    ) -> List[OpenQuestion]:
        """OPEN questions due for a follow-up, longest open first."""
        if now is None:
            now = self._clock()
        due = [
            q for q in self._questions.values()
            if q.is_open
            and q.time_open(now) > self.follow_up_after_seconds
            and q.follow_up_count < self.max_follow_ups
        ]
        return sorted(due, key=lambda q: q.time_open(now), reverse=True)

    def answered_count(self) -> int:
        return sum(1 for q in self._questions.values() if q.is_answered)

    def clear(self) -> None:
        self._questions.clear()
