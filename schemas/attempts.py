from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    quiz_id: int
    user_id: str
    session_id: str | None = None
    answers: dict[str, int] = Field(default_factory=dict)
    correct: int
    total: int
    score: int
    is_passed: bool
    started_at: datetime | None = None
    completed_at: datetime | None = None


class AttemptCreate(BaseModel):
    # kept loose here; quizzes.answers_from_json validates against the quiz
    answers: dict[str, Any]
    # Client may send its own score, but the server recomputes it anyway.
    score_percent: Optional[int] = None
    passed: Optional[bool] = None
    session_id: Optional[str] = Field(default=None, max_length=64)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
