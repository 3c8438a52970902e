"""Progress Recorder: where a finished quiz attempt goes to be stored.

A quiz session calls its recorder once per submitted attempt. The score has
already been computed locally by then, so a failing recorder never changes what
the user is shown; it only flips the session's save status to ``FAILED``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional, Protocol

import httpx

from errors import RecordError
from schemas.attempts import AttemptOut
from scoring import ScoreResult

logger = logging.getLogger("studyhall.recorder")

AttemptRecord = AttemptOut

MAX_ATTEMPTS = 2  # first call plus one automatic retry
RETRYABLE_CLIENT_ERRORS = (408, 429)


class SaveStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    SAVED = "saved"
    FAILED = "failed"


class ProgressRecorder(Protocol):
    def record_attempt(
        self,
        quiz_id: int,
        answers: Mapping[str, int],
        result: ScoreResult,
        *,
        session_id: str,
        started_at: datetime,
        completed_at: datetime,
    ) -> AttemptRecord: ...


def record_with_retry(
    recorder: ProgressRecorder,
    quiz_id: int,
    answers: Mapping[str, int],
    result: ScoreResult,
    *,
    session_id: str,
    started_at: datetime,
    completed_at: datetime,
) -> AttemptRecord:
    last: Optional[Exception] = None
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return recorder.record_attempt(
                quiz_id,
                dict(answers),
                result,
                session_id=session_id,
                started_at=started_at,
                completed_at=completed_at,
            )
        except RecordError as e:
            logger.warning(
                "record_attempt rejected for quiz %s session %s: %s", quiz_id, session_id, e.cause
            )
            raise
        except Exception as e:
            last = e
            logger.warning(
                "record_attempt failed for quiz %s session %s (try %d/%d): %s",
                quiz_id,
                session_id,
                attempt,
                MAX_ATTEMPTS,
                e,
            )
    raise RecordError("result not saved", cause=last)


class HttpProgressRecorder:
    """Posts finished attempts to ``POST /quizzes/{quiz_id}/attempts``.

    The server recomputes the score from ``answers``; the score fields sent here
    are advisory and only used to flag a client/server mismatch in the logs.
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"x-user-id": user_id}
        if api_key:
            headers["x-api-key"] = api_key
        self.client = httpx.Client(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    def record_attempt(
        self,
        quiz_id: int,
        answers: Mapping[str, int],
        result: ScoreResult,
        *,
        session_id: str,
        started_at: datetime,
        completed_at: datetime,
    ) -> AttemptRecord:
        resp = self.client.post(
            f"/quizzes/{quiz_id}/attempts",
            json={
                "answers": dict(answers),
                "score_percent": result.score_percent,
                "passed": result.passed,
                "session_id": session_id,
                "started_at": started_at.isoformat(),
                "completed_at": completed_at.isoformat(),
            },
        )
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            # a refused attempt would be refused again; timeouts and rate limits are not refusals
            if resp.is_client_error and resp.status_code not in RETRYABLE_CLIENT_ERRORS:
                raise RecordError("result not saved", cause=e) from e
            raise
        return AttemptRecord.model_validate(resp.json())

    def close(self) -> None:
        self.client.close()
