from fastapi.testclient import TestClient

from helpers import FakeClock
from main import app
from sessions import store

client = TestClient(app)


def _start(quiz_id, user):
    r = client.post("/quiz-sessions", json={"quiz_id": quiz_id}, headers=user)
    assert r.status_code == 201, r.text
    return r.json()


def _attempts(quiz_id, user):
    return client.get(f"/quizzes/{quiz_id}/attempts", headers=user).json()


def test_start_session_hides_answer_key(course_with_quiz, user):
    quiz = course_with_quiz(time_limit_seconds=300)["quiz"]
    s = _start(quiz["id"], user)
    assert s["state"] == "in_progress"
    assert s["current_index"] == 0
    assert s["question_count"] == 4
    assert s["remaining_seconds"] == 300
    assert s["save_status"] == "not_submitted"
    assert s["current_question"] == {
        "id": "q1",
        "prompt": "2 + 2 = ?",
        "options": ["4", "3", "5", "22"],
    }


def test_start_unknown_quiz(user):
    r = client.post("/quiz-sessions", json={"quiz_id": 424242}, headers=user)
    assert r.status_code == 404


def test_full_attempt_through_the_api(course_with_quiz, user):
    quiz = course_with_quiz()["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    base = f"/quiz-sessions/{sid}"

    for qid, idx in (("q1", 0), ("q2", 1), ("q3", 2)):
        body = {"question_id": qid, "option_index": idx}
        r = client.put(f"{base}/answers", json=body, headers=user)
        assert r.status_code == 200
        client.post(f"{base}/navigate", json={"direction": "next"}, headers=user)

    r = client.post(f"{base}/navigate", json={"index": 3}, headers=user)
    assert r.json()["current_question"]["id"] == "q4"

    r = client.post(f"{base}/submit", headers=user)
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "completed"
    assert body["completion_reason"] == "submitted"
    assert body["result"] == {"correct_count": 3, "total": 4, "score_percent": 75, "passed": True}
    assert body["save_status"] == "saved"
    assert isinstance(body["attempt_id"], int)

    # second submit is a no-op
    again = client.post(f"{base}/submit", headers=user).json()
    assert again["attempt_id"] == body["attempt_id"]
    attempts = _attempts(quiz["id"], user)
    assert len(attempts) == 1
    assert attempts[0]["score"] == 75
    assert attempts[0]["session_id"] == sid


def test_out_of_range_answer_is_422_and_leaves_answers(course_with_quiz, user):
    quiz = course_with_quiz()["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    base = f"/quiz-sessions/{sid}"
    client.put(f"{base}/answers", json={"question_id": "q1", "option_index": 0}, headers=user)

    r = client.put(f"{base}/answers", json={"question_id": "q1", "option_index": 5}, headers=user)
    assert r.status_code == 422
    assert client.get(base, headers=user).json()["answers"] == {"q1": 0}


def test_navigate_needs_exactly_one_target(course_with_quiz, user):
    quiz = course_with_quiz()["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    url = f"/quiz-sessions/{sid}/navigate"
    assert client.post(url, json={}, headers=user).status_code == 422
    assert client.post(url, json={"direction": "next", "index": 1}, headers=user).status_code == 422
    assert client.post(url, json={"index": 9}, headers=user).status_code == 422


def test_answering_after_completion_is_409(course_with_quiz, user):
    quiz = course_with_quiz()["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    client.post(f"/quiz-sessions/{sid}/submit", headers=user)
    r = client.put(
        f"/quiz-sessions/{sid}/answers", json={"question_id": "q1", "option_index": 0}, headers=user
    )
    assert r.status_code == 409


def test_expired_session_is_submitted_on_next_request(course_with_quiz, user):
    clock = FakeClock()
    store.clock = clock
    quiz = course_with_quiz(time_limit_seconds=60)["quiz"]
    sid = _start(quiz["id"], user)["session_id"]

    clock.advance(61)
    # the late answer loses to the timer
    r = client.put(
        f"/quiz-sessions/{sid}/answers", json={"question_id": "q1", "option_index": 0}, headers=user
    )
    assert r.status_code == 409

    body = client.get(f"/quiz-sessions/{sid}", headers=user).json()
    assert body["state"] == "completed"
    assert body["completion_reason"] == "expired"
    assert body["result"]["score_percent"] == 0
    assert body["save_status"] == "saved"
    assert len(_attempts(quiz["id"], user)) == 1


def test_abandoned_session_records_nothing(course_with_quiz, user):
    quiz = course_with_quiz()["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    client.put(
        f"/quiz-sessions/{sid}/answers", json={"question_id": "q1", "option_index": 0}, headers=user
    )
    assert client.delete(f"/quiz-sessions/{sid}", headers=user).status_code == 200
    assert client.get(f"/quiz-sessions/{sid}", headers=user).status_code == 404
    assert _attempts(quiz["id"], user) == []


def test_sessions_are_private(course_with_quiz, user):
    quiz = course_with_quiz()["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    other = {"x-user-id": "not-the-owner"}
    assert client.get(f"/quiz-sessions/{sid}", headers=other).status_code == 404
    assert client.post(f"/quiz-sessions/{sid}/submit", headers=other).status_code == 404
    assert client.delete(f"/quiz-sessions/{sid}", headers=other).status_code == 404


def test_parallel_sessions_are_independent(course_with_quiz, user):
    data_a = course_with_quiz()
    data_b = course_with_quiz()
    a = _start(data_a["quiz"]["id"], user)["session_id"]
    b = _start(data_b["quiz"]["id"], user)["session_id"]
    answer = {"question_id": "q1", "option_index": 0}
    client.put(f"/quiz-sessions/{a}/answers", json=answer, headers=user)
    client.post(f"/quiz-sessions/{a}/submit", headers=user)

    body_b = client.get(f"/quiz-sessions/{b}", headers=user).json()
    assert body_b["state"] == "in_progress"
    assert body_b["answers"] == {}


def test_full_store_records_expired_attempt_before_dropping_it(course_with_quiz, user):
    clock = FakeClock()
    store.clock = clock
    store.max_sessions = 1
    quiz = course_with_quiz(time_limit_seconds=30)["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    answer = {"question_id": "q1", "option_index": 0}
    client.put(f"/quiz-sessions/{sid}/answers", json=answer, headers=user)

    clock.advance(60)
    _start(quiz["id"], {"x-user-id": "second-learner"})

    attempts = _attempts(quiz["id"], user)
    assert len(attempts) == 1
    assert attempts[0]["session_id"] == sid
    assert attempts[0]["score"] == 25


def test_full_store_never_drops_a_running_attempt(course_with_quiz, user):
    store.max_sessions = 1
    quiz = course_with_quiz(time_limit_seconds=300)["quiz"]
    sid = _start(quiz["id"], user)["session_id"]

    r = client.post("/quiz-sessions", json={"quiz_id": quiz["id"]}, headers={"x-user-id": "late"})
    assert r.status_code == 429
    assert client.get(f"/quiz-sessions/{sid}", headers=user).json()["state"] == "in_progress"


def test_full_store_reuses_finished_slots(course_with_quiz, user):
    store.max_sessions = 1
    quiz = course_with_quiz()["quiz"]
    sid = _start(quiz["id"], user)["session_id"]
    client.post(f"/quiz-sessions/{sid}/submit", headers=user)

    _start(quiz["id"], user)
    assert client.get(f"/quiz-sessions/{sid}", headers=user).status_code == 404
    assert len(_attempts(quiz["id"], user)) == 1


def test_open_sessions_are_capped_per_user(course_with_quiz, user):
    clock = FakeClock()
    store.clock = clock
    store.max_per_user = 2
    quiz = course_with_quiz(time_limit_seconds=30)["quiz"]
    _start(quiz["id"], user)
    _start(quiz["id"], user)
    r = client.post("/quiz-sessions", json={"quiz_id": quiz["id"]}, headers=user)
    assert r.status_code == 429

    # once the first two run out they are recorded and no longer count
    clock.advance(31)
    _start(quiz["id"], user)
    assert len(_attempts(quiz["id"], user)) == 2
