from datetime import UTC, datetime

import pytest

from errors import InvalidTransitionError, QuizValidationError, RecordError
from helpers import FOUR_QUESTIONS, FakeClock
from quiz_session import QuizSession, SessionState
from quizzes import Quiz, questions_from_json
from recorder import SaveStatus
from schemas.attempts import AttemptOut


class FakeRecorder:
    def __init__(self, failures=0):
        self.failures = failures
        self.calls = []

    def record_attempt(self, quiz_id, answers, result, *, session_id, started_at, completed_at):
        self.calls.append(
            {
                "quiz_id": quiz_id,
                "answers": dict(answers),
                "result": result,
                "session_id": session_id,
                "started_at": started_at,
                "completed_at": completed_at,
            }
        )
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("storage unavailable")
        return AttemptOut(
            id=len(self.calls),
            quiz_id=quiz_id,
            user_id="u1",
            session_id=session_id,
            answers=dict(answers),
            correct=result.correct_count,
            total=result.total,
            score=result.score_percent,
            is_passed=result.passed,
        )


def make_quiz(time_limit=None, passing_score=70, questions=FOUR_QUESTIONS):
    return Quiz(
        id=7,
        title="Warm-up",
        questions=questions_from_json(questions),
        time_limit=time_limit,
        passing_score=passing_score,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def session(recorder, clock):
    return QuizSession(recorder, clock=clock, now=lambda: datetime(2026, 1, 1, tzinfo=UTC))


def test_new_session_is_selecting(session):
    assert session.state is SessionState.SELECTING
    assert session.quiz is None
    assert session.save_status is SaveStatus.NOT_SUBMITTED


def test_start_initializes_attempt(session):
    session.start(make_quiz(time_limit=60))
    assert session.state is SessionState.IN_PROGRESS
    assert session.answers == {}
    assert session.current_index == 0
    assert session.current_question.id == "q1"
    assert session.remaining_seconds == 60
    assert session.session_id


def test_start_without_time_limit_has_no_countdown(session):
    session.start(make_quiz())
    assert session.remaining_seconds is None


def test_start_rejects_empty_quiz(session):
    with pytest.raises(QuizValidationError):
        session.start(make_quiz(questions=[]))
    assert session.state is SessionState.SELECTING


def test_start_while_in_progress_is_rejected(session):
    session.start(make_quiz())
    with pytest.raises(InvalidTransitionError):
        session.start(make_quiz())


def test_select_answer_upserts_without_moving(session):
    session.start(make_quiz())
    session.select_answer("q2", 0)
    session.select_answer("q2", 1)
    assert session.answers == {"q2": 1}
    assert session.current_index == 0


def test_select_answer_out_of_range_is_rejected(session):
    session.start(make_quiz())
    session.select_answer("q1", 0)
    with pytest.raises(QuizValidationError):
        session.select_answer("q1", 5)
    with pytest.raises(QuizValidationError):
        session.select_answer("q1", -1)
    assert session.answers == {"q1": 0}


def test_select_answer_unknown_question_is_rejected(session):
    session.start(make_quiz())
    with pytest.raises(QuizValidationError):
        session.select_answer("q99", 0)
    assert session.answers == {}


def test_select_answer_before_start_is_a_transition_error(session):
    with pytest.raises(InvalidTransitionError):
        session.select_answer("q1", 0)


def test_answers_view_is_a_copy(session):
    session.start(make_quiz())
    session.answers["q1"] = 0
    assert session.answers == {}


def test_advance_clamps_at_both_ends(session):
    session.start(make_quiz())
    assert session.advance("prev") == 0
    for _ in range(10):
        session.advance("next")
    assert session.current_index == 3
    assert session.advance("prev") == 2


def test_advance_rejects_unknown_direction(session):
    session.start(make_quiz())
    with pytest.raises(QuizValidationError):
        session.advance("sideways")


def test_jump_to(session):
    session.start(make_quiz())
    assert session.jump_to(3) == 3
    with pytest.raises(QuizValidationError):
        session.jump_to(4)
    with pytest.raises(QuizValidationError):
        session.jump_to(-1)
    assert session.current_index == 3


def test_navigation_after_completion_is_a_transition_error(session):
    session.start(make_quiz())
    session.submit()
    with pytest.raises(InvalidTransitionError):
        session.advance("next")
    with pytest.raises(InvalidTransitionError):
        session.jump_to(0)
    with pytest.raises(InvalidTransitionError):
        session.select_answer("q1", 0)


def test_submit_all_correct(session, recorder):
    session.start(make_quiz())
    for qid, idx in {"q1": 0, "q2": 1, "q3": 2, "q4": 3}.items():
        session.select_answer(qid, idx)
    r = session.submit()
    assert r.score_percent == 100 and r.passed
    assert session.state is SessionState.COMPLETED
    assert session.completion_reason == "submitted"
    assert session.save_status is SaveStatus.SAVED
    assert session.record.score == 100
    assert len(recorder.calls) == 1
    call = recorder.calls[0]
    assert call["quiz_id"] == 7
    assert call["session_id"] == session.session_id
    assert call["answers"] == {"q1": 0, "q2": 1, "q3": 2, "q4": 3}


def test_submit_twice_records_once(session, recorder):
    session.start(make_quiz())
    session.select_answer("q1", 0)
    first = session.submit()
    second = session.submit()
    assert first == second
    assert first.score_percent == 25
    assert len(recorder.calls) == 1


def test_submit_before_start_is_a_transition_error(session, recorder):
    with pytest.raises(InvalidTransitionError):
        session.submit()
    assert recorder.calls == []


def test_unanswered_questions_count_as_incorrect(session):
    session.start(make_quiz())
    session.select_answer("q1", 0)
    session.select_answer("q2", 1)
    r = session.submit()
    assert (r.correct_count, r.score_percent, r.passed) == (2, 50, False)


def test_timer_expiry_with_no_answers_still_records(session, recorder, clock):
    session.start(make_quiz(time_limit=30))
    clock.advance(29.5)
    assert session.tick() is None
    assert session.remaining_seconds == 1
    clock.advance(0.5)
    r = session.tick()
    assert r is not None
    assert (r.score_percent, r.passed) == (0, False)
    assert session.state is SessionState.COMPLETED
    assert session.completion_reason == "expired"
    assert session.remaining_seconds == 0
    assert len(recorder.calls) == 1


def test_submit_after_expiry_is_a_no_op(session, recorder, clock):
    session.start(make_quiz(time_limit=10))
    session.select_answer("q1", 0)
    clock.advance(11)
    expired = session.tick()
    assert session.submit() == expired
    assert session.tick() is None
    assert session.expire() == expired
    assert len(recorder.calls) == 1


def test_tick_after_submit_is_a_no_op(session, recorder, clock):
    session.start(make_quiz(time_limit=10))
    session.submit()
    clock.advance(60)
    assert session.tick() is None
    assert session.completion_reason == "submitted"
    assert len(recorder.calls) == 1


def test_countdown_stops_at_completion(session, clock):
    session.start(make_quiz(time_limit=100))
    clock.advance(40)
    session.submit()
    clock.advance(30)
    assert session.remaining_seconds == 60


def test_expire_event_finishes_untimed_attempt(session, recorder):
    session.start(make_quiz())
    session.select_answer("q4", 3)
    r = session.expire()
    assert r.correct_count == 1
    assert session.completion_reason == "expired"
    assert len(recorder.calls) == 1


def test_reset_while_in_progress_never_records(session, recorder, clock):
    session.start(make_quiz(time_limit=10))
    session.select_answer("q1", 0)
    session.reset()
    assert session.state is SessionState.SELECTING
    assert session.quiz is None
    assert session.answers == {}
    assert session.remaining_seconds is None
    clock.advance(60)
    assert session.tick() is None
    assert session.expire() is None
    assert recorder.calls == []


def test_reset_from_any_state(session):
    session.reset()
    assert session.state is SessionState.SELECTING
    session.start(make_quiz())
    session.submit()
    session.reset()
    assert session.state is SessionState.SELECTING
    assert session.result is None


def test_retake_after_completion_gets_a_fresh_attempt(session, recorder):
    session.start(make_quiz())
    session.select_answer("q1", 0)
    session.submit()
    first_id = session.session_id

    session.start(make_quiz())
    assert session.session_id != first_id
    assert session.answers == {}
    assert session.result is None
    session.submit()
    assert [c["session_id"] for c in recorder.calls] == [first_id, session.session_id]


def test_recorder_failure_is_retried_once(clock):
    recorder = FakeRecorder(failures=1)
    session = QuizSession(recorder, clock=clock)
    session.start(make_quiz())
    session.submit()
    assert len(recorder.calls) == 2
    assert recorder.calls[0]["session_id"] == recorder.calls[1]["session_id"]
    assert session.save_status is SaveStatus.SAVED


def test_recorder_failure_keeps_local_score_and_flags_unsaved(clock):
    recorder = FakeRecorder(failures=5)
    session = QuizSession(recorder, clock=clock)
    session.start(make_quiz())
    session.select_answer("q1", 0)
    r = session.submit()
    assert r.score_percent == 25
    assert session.state is SessionState.COMPLETED
    assert session.save_status is SaveStatus.FAILED
    assert session.save_error == "result not saved"
    assert session.record is None
    assert len(recorder.calls) == 2

    # a later submit does not retry again
    session.submit()
    assert len(recorder.calls) == 2


def test_sessions_do_not_share_timers_or_answers(recorder):
    clock_a, clock_b = FakeClock(), FakeClock()
    a = QuizSession(recorder, clock=clock_a)
    b = QuizSession(recorder, clock=clock_b)
    a.start(make_quiz(time_limit=10))
    b.start(make_quiz(time_limit=10))
    a.select_answer("q1", 0)
    clock_a.advance(20)
    a.tick()
    b.tick()
    assert a.state is SessionState.COMPLETED
    assert b.state is SessionState.IN_PROGRESS
    assert b.answers == {}
    assert b.remaining_seconds == 10


class RefusingRecorder(FakeRecorder):
    def record_attempt(self, quiz_id, answers, result, **kwargs):
        self.calls.append({"quiz_id": quiz_id})
        raise RecordError("result not saved", cause=ValueError("refused"))


def test_refused_attempt_is_flagged_without_retry(clock):
    recorder = RefusingRecorder()
    session = QuizSession(recorder, clock=clock)
    session.start(make_quiz())
    session.select_answer("q1", 0)
    assert session.submit().score_percent == 25
    assert session.save_status is SaveStatus.FAILED
    assert session.save_error == "result not saved"
    assert len(recorder.calls) == 1
