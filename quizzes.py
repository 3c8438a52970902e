"""Quiz and question records, plus conversion from the loose JSON kept in the database.

The ``quizzes.questions`` column stores a JSON list shaped like::

    [{"question": "...", "options": ["A", "B"], "correct": 0, "explanation": "..."}]

``id`` is optional in stored rows; questions without one get a positional id
(``q1``, ``q2``, ...). Everything past this module works with the validated
records only.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from errors import QuizValidationError

AnswerMap = Dict[str, int]


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    prompt: str
    options: Tuple[str, ...] = Field(min_length=2)
    correct_index: int
    explanation: Optional[str] = None

    @model_validator(mode="after")
    def _correct_index_in_range(self) -> "Question":
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} out of range for {len(self.options)} options"
            )
        return self

    def accepts(self, option_index: int) -> bool:
        return 0 <= option_index < len(self.options)


class Quiz(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    questions: Tuple[Question, ...] = ()
    time_limit: Optional[int] = Field(default=None, gt=0)  # seconds
    passing_score: int = Field(default=70, ge=0, le=100)
    lesson_id: Optional[int] = None

    @model_validator(mode="after")
    def _unique_question_ids(self) -> "Quiz":
        ids = [q.id for q in self.questions]
        if len(ids) != len(set(ids)):
            raise ValueError("question ids must be unique within a quiz")
        return self

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def question(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def question_from_json(raw: Any, position: int) -> Question:
    if not isinstance(raw, dict):
        raise QuizValidationError(f"question {position + 1}: expected an object")
    data = {
        "id": str(raw.get("id") or f"q{position + 1}"),
        "prompt": raw.get("question", raw.get("prompt")),
        "options": raw.get("options"),
        "correct_index": raw.get("correct", raw.get("correct_index")),
        "explanation": raw.get("explanation") or None,
    }
    try:
        return Question(**data)
    except ValidationError as e:
        raise QuizValidationError(f"question {position + 1}: {_first_error(e)}") from e


def questions_from_json(raw: Any) -> Tuple[Question, ...]:
    if not isinstance(raw, list):
        raise QuizValidationError("questions must be a JSON list")
    return tuple(question_from_json(item, i) for i, item in enumerate(raw))


def questions_to_json(questions: Tuple[Question, ...]) -> List[Dict[str, Any]]:
    out = []
    for q in questions:
        item: Dict[str, Any] = {
            "id": q.id,
            "question": q.prompt,
            "options": list(q.options),
            "correct": q.correct_index,
        }
        if q.explanation:
            item["explanation"] = q.explanation
        out.append(item)
    return out


def answers_from_json(raw: Any, quiz: Quiz) -> AnswerMap:
    """Validate a submitted ``{question_id: option_index}`` mapping against ``quiz``.

    Unknown question ids and out-of-range indexes are rejected rather than dropped,
    since the mapping is what the stored score is recomputed from.
    """
    if not isinstance(raw, dict):
        raise QuizValidationError("answers must be an object of question id -> option index")
    answers: AnswerMap = {}
    for qid, idx in raw.items():
        q = quiz.question(str(qid))
        if q is None:
            raise QuizValidationError(f"unknown question id: {qid}")
        # bool is an int subclass; true/false are not option indexes
        if isinstance(idx, bool) or not isinstance(idx, int):
            raise QuizValidationError(f"answer for {qid} must be an integer option index")
        if not q.accepts(idx):
            raise QuizValidationError(
                f"option {idx} out of range for question {qid} ({len(q.options)} options)"
            )
        answers[q.id] = idx
    return answers


def quiz_from_row(row) -> Quiz:
    """Build a ``Quiz`` from a ``models.QuizRecord`` row."""
    return Quiz(
        id=row.id,
        title=row.title,
        questions=questions_from_json(row.questions),
        time_limit=row.time_limit_seconds or None,
        passing_score=row.passing_score,
        lesson_id=row.lesson_id,
    )
