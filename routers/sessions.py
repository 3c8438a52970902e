from __future__ import annotations

from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException

from db import SessionLocal
from deps.auth import current_user_id
from errors import InvalidTransitionError, QuizValidationError, SessionLimitError
from models import QuizRecord
from quiz_session import QuizSession
from quizzes import quiz_from_row
from schemas.quizzes import (
    AnswerSelect,
    Navigate,
    QuestionView,
    ScoreOut,
    SessionOut,
    SessionStart,
)
from sessions import store

router = APIRouter(prefix="/quiz-sessions", tags=["quiz-sessions"])


def _session_out(s: QuizSession) -> SessionOut:
    q = s.current_question
    r = s.result
    return SessionOut(
        session_id=s.session_id,
        quiz_id=s.quiz.id,
        title=s.quiz.title,
        state=s.state.value,
        current_index=s.current_index,
        question_count=s.quiz.question_count,
        # the answer key stays on the server
        current_question=(
            QuestionView(id=q.id, prompt=q.prompt, options=list(q.options)) if q else None
        ),
        answers=s.answers,
        remaining_seconds=s.remaining_seconds,
        completion_reason=s.completion_reason,
        result=(
            ScoreOut(
                correct_count=r.correct_count,
                total=r.total,
                score_percent=r.score_percent,
                passed=r.passed,
            )
            if r
            else None
        ),
        save_status=s.save_status.value,
        save_error=s.save_error,
        attempt_id=s.record.id if s.record else None,
    )


@contextmanager
def _locked_session(sid: str, user_id: str):
    entry = store.get(sid, user_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    with entry.lock:
        # deliver the timer first so an expired attempt finishes before anything else
        entry.session.tick()
        try:
            yield entry.session
        except QuizValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e


@router.post("", response_model=SessionOut, status_code=201)
def start_session(req: SessionStart, user_id: str = Depends(current_user_id)):
    with SessionLocal() as db:
        row = db.get(QuizRecord, req.quiz_id)
        if not row or not row.is_active:
            raise HTTPException(status_code=404, detail="Quiz not found")
        try:
            quiz = quiz_from_row(row)
        except QuizValidationError as e:
            raise HTTPException(status_code=500, detail=f"stored quiz is invalid: {e}") from e

    session = store.new_session(user_id)
    try:
        session.start(quiz)
    except QuizValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    try:
        store.add(user_id, session)
    except SessionLimitError as e:
        raise HTTPException(status_code=429, detail=str(e)) from e
    return _session_out(session)


@router.get("/{sid}", response_model=SessionOut)
def get_session(sid: str, user_id: str = Depends(current_user_id)):
    with _locked_session(sid, user_id) as s:
        return _session_out(s)


@router.put("/{sid}/answers", response_model=SessionOut)
def select_answer(sid: str, req: AnswerSelect, user_id: str = Depends(current_user_id)):
    with _locked_session(sid, user_id) as s:
        s.select_answer(req.question_id, req.option_index)
        return _session_out(s)


@router.post("/{sid}/navigate", response_model=SessionOut)
def navigate(sid: str, req: Navigate, user_id: str = Depends(current_user_id)):
    with _locked_session(sid, user_id) as s:
        if req.direction is not None:
            s.advance(req.direction)
        else:
            s.jump_to(req.index)
        return _session_out(s)


@router.post("/{sid}/submit", response_model=SessionOut)
def submit(sid: str, user_id: str = Depends(current_user_id)):
    with _locked_session(sid, user_id) as s:
        s.submit()
        return _session_out(s)


@router.delete("/{sid}")
def abandon(sid: str, user_id: str = Depends(current_user_id)):
    entry = store.get(sid, user_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    with entry.lock:
        # an attempt whose time already ran out is recorded, not abandoned
        entry.session.tick()
        entry.session.reset()
    store.discard(sid)
    return {"ok": True}
