"""Server side of the Progress Recorder.

Attempts are scored here from the submitted answer map and the stored answer
key. Any score the client sends along is only compared against ours and logged
when it disagrees.

Course progress is recomputed from lesson completion rows every time rather
than incremented, so replaying the same update leaves it unchanged.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from db import SessionLocal
from errors import QuizValidationError
from models import Enrollment, Lesson, LessonProgress, QuizAttempt, QuizRecord
from quizzes import Quiz, answers_from_json, quiz_from_row
from schemas.attempts import AttemptOut
from scoring import ScoreResult, percent_half_up, score

logger = logging.getLogger("studyhall.progress")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def upsert_lesson_progress(
    db: Session,
    user_id: str,
    lesson_id: int,
    *,
    watch_time: Optional[int] = None,
    is_completed: bool = False,
) -> LessonProgress:
    row = db.query(LessonProgress).filter_by(user_id=user_id, lesson_id=lesson_id).first()
    if row is None:
        row = LessonProgress(user_id=user_id, lesson_id=lesson_id, is_completed=False, watch_time=0)
        db.add(row)

    if watch_time is not None:
        row.watch_time = max(row.watch_time or 0, watch_time)
    # completion is sticky; a later autosave with is_completed=False does not undo it
    if is_completed and not row.is_completed:
        row.is_completed = True
        row.completed_at = _utcnow()
    db.flush()
    return row


def recompute_enrollment_progress(
    db: Session, user_id: str, course_id: int
) -> Optional[Enrollment]:
    enrollment = db.query(Enrollment).filter_by(user_id=user_id, course_id=course_id).first()
    if enrollment is None:
        return None

    total = (
        db.query(func.count(Lesson.id))
        .filter(Lesson.course_id == course_id, Lesson.is_active.is_(True))
        .scalar()
    )
    completed = (
        db.query(func.count(LessonProgress.id))
        .join(Lesson, Lesson.id == LessonProgress.lesson_id)
        .filter(
            LessonProgress.user_id == user_id,
            LessonProgress.is_completed.is_(True),
            Lesson.course_id == course_id,
            Lesson.is_active.is_(True),
        )
        .scalar()
    )

    progress = percent_half_up(completed or 0, total or 0)
    enrollment.progress = progress
    if progress >= 100:
        if enrollment.completed_at is None:
            enrollment.completed_at = _utcnow()
    else:
        enrollment.completed_at = None
    logger.info(
        "enrollment %s progress %d%% (%s/%s lessons)", enrollment.id, progress, completed, total
    )
    return enrollment


def recompute_course_enrollments(db: Session, course_id: int) -> int:
    """Recompute every enrollment of a course after its set of active lessons changed."""
    user_ids = [
        uid for (uid,) in db.query(Enrollment.user_id).filter(Enrollment.course_id == course_id)
    ]
    for uid in user_ids:
        recompute_enrollment_progress(db, uid, course_id)
    return len(user_ids)


def complete_lesson(db: Session, user_id: str, lesson_id: int) -> Optional[Enrollment]:
    lesson = db.get(Lesson, lesson_id)
    if lesson is None:
        return None
    upsert_lesson_progress(db, user_id, lesson_id, is_completed=True)
    return recompute_enrollment_progress(db, user_id, lesson.course_id)


def record_attempt(
    db: Session,
    user_id: str,
    quiz: Quiz,
    raw_answers: Any,
    *,
    session_id: Optional[str] = None,
    started_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
    client_score: Optional[int] = None,
) -> QuizAttempt:
    """Validate, score and store one finished attempt. The caller commits."""
    if session_id:
        existing = db.query(QuizAttempt).filter_by(session_id=session_id).first()
        if existing is not None:
            if existing.user_id != user_id or existing.quiz_id != quiz.id:
                raise QuizValidationError("session_id already used by another attempt")
            logger.info("attempt for session %s already stored as %s", session_id, existing.id)
            return existing

    answers = answers_from_json(raw_answers, quiz)
    result = score(quiz, answers)
    if client_score is not None and client_score != result.score_percent:
        logger.warning(
            "client score %s for quiz %s (user %s) differs from server score %s",
            client_score,
            quiz.id,
            user_id,
            result.score_percent,
        )

    completed = completed_at or _utcnow()
    attempt = QuizAttempt(
        user_id=user_id,
        quiz_id=quiz.id,
        session_id=session_id,
        answers=answers,
        correct=result.correct_count,
        total=result.total,
        score=result.score_percent,
        is_passed=result.passed,
        started_at=started_at or completed,
        completed_at=completed,
    )
    db.add(attempt)

    if result.passed and quiz.lesson_id is not None:
        complete_lesson(db, user_id, quiz.lesson_id)
    db.flush()
    return attempt


class DatabaseProgressRecorder:
    """``ProgressRecorder`` that writes straight to the database.

    Used by server-hosted quiz sessions. The quiz is re-read from the database
    so the stored score comes from the stored answer key.
    """

    def __init__(self, user_id: str, session_factory: Callable[[], Session] = SessionLocal):
        self.user_id = user_id
        self._session_factory = session_factory

    def record_attempt(
        self,
        quiz_id: int,
        answers: Mapping[str, int],
        result: ScoreResult,
        *,
        session_id: str,
        started_at: datetime,
        completed_at: datetime,
    ) -> AttemptOut:
        with self._session_factory() as db:
            row = db.get(QuizRecord, quiz_id)
            if row is None:
                raise QuizValidationError(f"quiz {quiz_id} not found")
            attempt = record_attempt(
                db,
                self.user_id,
                quiz_from_row(row),
                dict(answers),
                session_id=session_id,
                started_at=started_at,
                completed_at=completed_at,
                client_score=result.score_percent,
            )
            db.commit()
            db.refresh(attempt)
            return AttemptOut.model_validate(attempt)
