"""Quiz Session Controller.

One ``QuizSession`` holds one attempt at a time and moves it through

    SELECTING --start()--> IN_PROGRESS --submit()/expiry--> COMPLETED

``reset()`` goes back to SELECTING from anywhere and never records anything.
The COMPLETED transition is one-way, so a user submit racing a timer expiry
finishes the attempt exactly once: whichever arrives second sees COMPLETED and
returns the stored result.

The countdown is owned by the session and measured against an injected
monotonic clock. Whatever drives the session (a UI loop, a request handler,
a test) delivers ``tick()`` events; the session checks the countdown on each.
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Callable, Optional

from errors import InvalidTransitionError, QuizValidationError, RecordError
from quizzes import AnswerMap, Question, Quiz
from recorder import AttemptRecord, ProgressRecorder, SaveStatus, record_with_retry
from scoring import ScoreResult, score

logger = logging.getLogger("studyhall.session")

Clock = Callable[[], float]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionState(str, Enum):
    SELECTING = "selecting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Countdown:
    def __init__(self, limit_seconds: int, clock: Clock):
        self._clock = clock
        self._deadline = clock() + limit_seconds
        self._stopped_at: Optional[float] = None

    def remaining(self) -> int:
        now = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0, math.ceil(self._deadline - now))

    @property
    def expired(self) -> bool:
        return self.remaining() == 0

    def stop(self) -> None:
        if self._stopped_at is None:
            self._stopped_at = self._clock()


class QuizSession:
    def __init__(
        self,
        recorder: ProgressRecorder,
        *,
        clock: Clock = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._recorder = recorder
        self._clock = clock
        self._now = now
        self._clear()

    def _clear(self) -> None:
        self._state = SessionState.SELECTING
        self._quiz: Optional[Quiz] = None
        self._answers: AnswerMap = {}
        self._index = 0
        self._countdown: Optional[Countdown] = None
        self._session_id: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._completed_at: Optional[datetime] = None
        self._completion_reason: Optional[str] = None
        self._result: Optional[ScoreResult] = None
        self._record: Optional[AttemptRecord] = None
        self._save_status = SaveStatus.NOT_SUBMITTED
        self._save_error: Optional[str] = None

    # ---------- transitions ----------

    def start(self, quiz: Quiz) -> None:
        if self._state is SessionState.IN_PROGRESS:
            raise InvalidTransitionError("an attempt is already in progress; reset() it first")
        if not quiz.questions:
            raise QuizValidationError(f"quiz {quiz.id} has no questions")

        self._clear()
        self._quiz = quiz
        self._session_id = uuid.uuid4().hex
        self._started_at = self._now()
        if quiz.time_limit:
            self._countdown = Countdown(quiz.time_limit, self._clock)
        self._state = SessionState.IN_PROGRESS
        logger.info(
            "session %s started quiz %s (%d questions, limit=%s)",
            self._session_id,
            quiz.id,
            quiz.question_count,
            quiz.time_limit,
        )

    def select_answer(self, question_id: str, option_index: int) -> None:
        self._require_in_progress("select_answer")
        q = self._quiz.question(question_id)
        if q is None:
            raise QuizValidationError(f"unknown question id: {question_id}")
        if isinstance(option_index, bool) or not isinstance(option_index, int):
            raise QuizValidationError("option index must be an integer")
        if not q.accepts(option_index):
            raise QuizValidationError(
                f"option {option_index} out of range for question {question_id} "
                f"({len(q.options)} options)"
            )
        self._answers[q.id] = option_index

    def advance(self, direction: str) -> int:
        self._require_in_progress("advance")
        if direction == "next":
            self._index = min(self._index + 1, self._quiz.question_count - 1)
        elif direction == "prev":
            self._index = max(self._index - 1, 0)
        else:
            raise QuizValidationError(f"direction must be 'next' or 'prev', got {direction!r}")
        return self._index

    def jump_to(self, index: int) -> int:
        self._require_in_progress("jump_to")
        if isinstance(index, bool) or not isinstance(index, int):
            raise QuizValidationError("question index must be an integer")
        if not 0 <= index < self._quiz.question_count:
            raise QuizValidationError(
                f"question index {index} out of range (0..{self._quiz.question_count - 1})"
            )
        self._index = index
        return self._index

    def submit(self) -> ScoreResult:
        if self._state is SessionState.COMPLETED:
            return self._result
        self._require_in_progress("submit")
        return self._finish("submitted")

    def tick(self) -> Optional[ScoreResult]:
        """Timer event. Finishes the attempt if its countdown has run out."""
        if (
            self._state is SessionState.IN_PROGRESS
            and self._countdown is not None
            and self._countdown.expired
        ):
            return self._finish("expired")
        return None

    def expire(self) -> Optional[ScoreResult]:
        # late or stale timer events outside IN_PROGRESS are ignored
        if self._state is SessionState.IN_PROGRESS:
            return self._finish("expired")
        return self._result

    def reset(self) -> None:
        if self._state is SessionState.IN_PROGRESS:
            logger.info("session %s abandoned quiz %s", self._session_id, self._quiz.id)
        if self._countdown is not None:
            self._countdown.stop()
        self._clear()

    def _require_in_progress(self, op: str) -> None:
        if self._state is not SessionState.IN_PROGRESS:
            raise InvalidTransitionError(
                f"{op}() requires an attempt in progress (state={self._state.value})"
            )

    def _finish(self, reason: str) -> ScoreResult:
        if self._countdown is not None:
            self._countdown.stop()
        self._state = SessionState.COMPLETED
        self._completed_at = self._now()
        self._completion_reason = reason
        self._result = score(self._quiz, self._answers)
        logger.info(
            "session %s %s quiz %s: %d/%d (%d%%, passed=%s)",
            self._session_id,
            reason,
            self._quiz.id,
            self._result.correct_count,
            self._result.total,
            self._result.score_percent,
            self._result.passed,
        )

        try:
            self._record = record_with_retry(
                self._recorder,
                self._quiz.id,
                self._answers,
                self._result,
                session_id=self._session_id,
                started_at=self._started_at,
                completed_at=self._completed_at,
            )
            self._save_status = SaveStatus.SAVED
        except RecordError as e:
            self._save_status = SaveStatus.FAILED
            self._save_error = str(e)
            logger.error("session %s result not saved: %s", self._session_id, e.cause)
        return self._result

    # ---------- views ----------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def quiz(self) -> Optional[Quiz]:
        return self._quiz

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def answers(self) -> AnswerMap:
        return dict(self._answers)

    @property
    def answered_count(self) -> int:
        return len(self._answers)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_question(self) -> Optional[Question]:
        if self._quiz is None:
            return None
        return self._quiz.questions[self._index]

    @property
    def remaining_seconds(self) -> Optional[int]:
        if self._countdown is None:
            return None
        return self._countdown.remaining()

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def completed_at(self) -> Optional[datetime]:
        return self._completed_at

    @property
    def completion_reason(self) -> Optional[str]:
        return self._completion_reason

    @property
    def result(self) -> Optional[ScoreResult]:
        return self._result

    @property
    def record(self) -> Optional[AttemptRecord]:
        return self._record

    @property
    def save_status(self) -> SaveStatus:
        return self._save_status

    @property
    def save_error(self) -> Optional[str]:
        return self._save_error
