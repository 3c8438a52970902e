from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuizCreate(BaseModel):
    lesson_id: Optional[int] = None
    title: str = Field(min_length=1, max_length=255)
    # loose JSON blob; converted by quizzes.questions_from_json
    questions: List[Any] = Field(min_length=1)
    time_limit_seconds: Optional[int] = Field(default=None, gt=0)
    passing_score: int = Field(default=70, ge=0, le=100)


class QuizOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    lesson_id: Optional[int] = None
    title: str
    questions: List[Any]
    time_limit_seconds: Optional[int] = None
    passing_score: int
    is_active: bool
    created_at: Optional[datetime] = None


# ---------- Server-side quiz sessions ----------


class SessionStart(BaseModel):
    quiz_id: int


class AnswerSelect(BaseModel):
    question_id: str
    option_index: int


class Navigate(BaseModel):
    direction: Optional[Literal["next", "prev"]] = None
    index: Optional[int] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "Navigate":
        if (self.direction is None) == (self.index is None):
            raise ValueError("send exactly one of 'direction' or 'index'")
        return self


class QuestionView(BaseModel):
    id: str
    prompt: str
    options: List[str]


class ScoreOut(BaseModel):
    correct_count: int
    total: int
    score_percent: int
    passed: bool


class SessionOut(BaseModel):
    session_id: str
    quiz_id: int
    title: str
    state: str
    current_index: int
    question_count: int
    current_question: Optional[QuestionView] = None
    answers: dict[str, int]
    remaining_seconds: Optional[int] = None
    completion_reason: Optional[str] = None
    result: Optional[ScoreOut] = None
    save_status: str
    save_error: Optional[str] = None
    attempt_id: Optional[int] = None
