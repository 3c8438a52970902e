from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from db import SessionLocal
from deps.auth import current_user_id, require_admin
from errors import QuizValidationError
from models import Lesson, QuizAttempt, QuizRecord
from progress import record_attempt
from quizzes import Quiz, questions_from_json, questions_to_json, quiz_from_row
from schemas.attempts import AttemptCreate, AttemptOut
from schemas.quizzes import QuizCreate, QuizOut

logger = logging.getLogger("studyhall.quizzes")

router = APIRouter(tags=["quizzes"])


def _load_quiz(db, quiz_id: int) -> Quiz:
    row = db.get(QuizRecord, quiz_id)
    if not row or not row.is_active:
        raise HTTPException(status_code=404, detail="Quiz not found")
    try:
        return quiz_from_row(row)
    except QuizValidationError as e:
        logger.error("stored quiz %s is invalid: %s", quiz_id, e)
        raise HTTPException(status_code=500, detail=f"stored quiz is invalid: {e}") from e


def _quiz_out(row: QuizRecord, quiz: Quiz) -> QuizOut:
    out = QuizOut.model_validate(row)
    # always hand out the normalized shape, with question ids filled in
    out.questions = questions_to_json(quiz.questions)
    return out


@router.get("/lessons/{lesson_id}/quizzes", response_model=List[QuizOut])
def list_lesson_quizzes(lesson_id: int):
    with SessionLocal() as db:
        rows = (
            db.query(QuizRecord)
            .filter(QuizRecord.lesson_id == lesson_id, QuizRecord.is_active.is_(True))
            .order_by(QuizRecord.id.asc())
            .all()
        )
        out = []
        for row in rows:
            try:
                out.append(_quiz_out(row, quiz_from_row(row)))
            except QuizValidationError as e:
                logger.error("skipping invalid stored quiz %s: %s", row.id, e)
        return out


@router.get("/quizzes/{quiz_id}", response_model=QuizOut)
def get_quiz(quiz_id: int):
    with SessionLocal() as db:
        quiz = _load_quiz(db, quiz_id)
        return _quiz_out(db.get(QuizRecord, quiz_id), quiz)


@router.post(
    "/quizzes", response_model=QuizOut, status_code=201, dependencies=[Depends(require_admin)]
)
def create_quiz(req: QuizCreate):
    try:
        questions = questions_from_json(req.questions)
    except QuizValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    with SessionLocal() as db:
        if req.lesson_id is not None and not db.get(Lesson, req.lesson_id):
            raise HTTPException(status_code=404, detail="Lesson not found")
        row = QuizRecord(
            lesson_id=req.lesson_id,
            title=req.title,
            questions=questions_to_json(questions),
            time_limit_seconds=req.time_limit_seconds,
            passing_score=req.passing_score,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return _quiz_out(row, quiz_from_row(row))


def _store_attempt(db, user_id: str, quiz: Quiz, req: AttemptCreate) -> QuizAttempt:
    attempt = record_attempt(
        db,
        user_id,
        quiz,
        req.answers,
        session_id=req.session_id,
        started_at=req.started_at,
        completed_at=req.completed_at,
        client_score=req.score_percent,
    )
    db.commit()
    return attempt


@router.post("/quizzes/{quiz_id}/attempts", response_model=AttemptOut, status_code=201)
def submit_attempt(quiz_id: int, req: AttemptCreate, user_id: str = Depends(current_user_id)):
    with SessionLocal() as db:
        quiz = _load_quiz(db, quiz_id)
        try:
            try:
                attempt = _store_attempt(db, user_id, quiz, req)
            except IntegrityError as e:
                # a concurrent request stored the same session_id or lesson progress row
                # first; the second pass sees its row and goes through the usual checks
                db.rollback()
                logger.info("retrying attempt for quiz %s after conflict: %s", quiz_id, e.orig)
                attempt = _store_attempt(db, user_id, quiz, req)
        except QuizValidationError as e:
            db.rollback()
            raise HTTPException(status_code=422, detail=str(e)) from e
        except IntegrityError as e:
            db.rollback()
            raise HTTPException(status_code=409, detail="conflicting update, retry") from e
        db.refresh(attempt)
        return AttemptOut.model_validate(attempt)


@router.get("/quizzes/{quiz_id}/attempts", response_model=List[AttemptOut])
def list_my_attempts(quiz_id: int, user_id: str = Depends(current_user_id)):
    with SessionLocal() as db:
        rows = (
            db.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id)
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
            .all()
        )
        return [AttemptOut.model_validate(a) for a in rows]
