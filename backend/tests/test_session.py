import threading
import time

import httpx
import pytest

from quizdeck.client.api import ApiError, QuizdeckClient
from quizdeck.client.session import AttemptSession, SessionState, SubmitReason


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSubmit:
    def __init__(self, failures: int = 0, delay: float = 0.0):
        self.bodies: list[dict] = []
        self.failures = failures
        self.delay = delay
        self._lock = threading.Lock()

    def __call__(self, body: dict) -> dict:
        with self._lock:
            self.bodies.append(body)
            calls = len(self.bodies)
        if self.delay:
            time.sleep(self.delay)
        if calls <= self.failures:
            raise ApiError(None, "network error: connection refused")
        return {"id": f"attempt-{calls}", "forced_submit": body["forced_submit"]}


def _quiz(n: int = 3, minutes: int = 1) -> dict:
    return {
        "id": "q1",
        "title": "Sample",
        "time_limit": minutes,
        "questions": [
            {"index": i, "question_text": f"Q{i}?", "options": ["a", "b", "c"], "points": 1} for i in range(n)
        ],
    }


def _session(submit, clock=None, **kwargs) -> AttemptSession:
    return AttemptSession(_quiz(**kwargs), submit, clock=clock or FakeClock(), use_timer=False)


def test_countdown_starts_on_first_selection():
    clock = FakeClock()
    s = _session(RecordingSubmit(), clock)

    assert s.state == SessionState.not_started
    clock.advance(30)
    assert s.remaining == 60

    s.select(1)
    assert s.state == SessionState.in_progress
    clock.advance(20)
    assert s.remaining == 40
    assert s.time_spent == 20


def test_select_validates_indexes():
    s = _session(RecordingSubmit())
    with pytest.raises(ValueError):
        s.select(3)
    with pytest.raises(IndexError):
        s.select(0, index=7)
    assert s.state == SessionState.not_started


def test_navigation():
    s = _session(RecordingSubmit())
    assert s.previous() is False
    assert s.next() is True
    assert s.next() is True
    assert s.next() is False
    assert s.current_index == 2
    s.go_to(0)
    assert s.current_index == 0
    with pytest.raises(IndexError):
        s.go_to(3)


def test_timeout_submits_partial_answers_once():
    clock = FakeClock()
    submit = RecordingSubmit()
    s = _session(submit, clock)

    s.select(2)
    clock.advance(59)
    assert s.check_deadline() is None

    clock.advance(2)
    result = s.check_deadline()
    assert result == {"id": "attempt-1", "forced_submit": True}
    assert s.state == SessionState.done
    assert s.submit_reason == SubmitReason.timeout
    assert s.forced_submit is True

    assert len(submit.bodies) == 1
    body = submit.bodies[0]
    assert body["forced_submit"] is True
    assert body["time_spent"] == 60
    assert [a["selected_option"] for a in body["answers"]] == [2, -1, -1]

    assert s.check_deadline() is None
    assert s.focus_lost() is None
    assert len(submit.bodies) == 1


def test_blur_then_hidden_submits_once():
    submit = RecordingSubmit()
    s = _session(submit)
    s.select(0)

    assert s.focus_lost("blur") is not None
    assert s.focus_lost("visibilitychange") is None
    assert len(submit.bodies) == 1
    assert submit.bodies[0]["forced_submit"] is True
    assert s.submit_reason == SubmitReason.focus_lost


def test_focus_lost_before_start_is_ignored():
    submit = RecordingSubmit()
    s = _session(submit)
    assert s.focus_lost() is None
    assert s.state == SessionState.not_started
    assert submit.bodies == []


def test_manual_submit_requires_confirmation():
    submit = RecordingSubmit()
    s = _session(submit)
    s.select(1)

    assert s.confirm_submit() is None
    assert submit.bodies == []

    confirmation = s.request_submit()
    assert confirmation.answered == 1
    assert confirmation.total == 3
    assert confirmation.prompt == "You haven't answered all questions. Are you sure you want to submit?"

    s.cancel_submit()
    assert s.confirm_submit() is None
    assert s.state == SessionState.in_progress

    s.select(0, index=1)
    s.select(0, index=2)
    confirmation = s.request_submit()
    assert confirmation.all_answered
    assert confirmation.prompt == "Are you sure you want to submit your answers?"

    assert s.confirm_submit() is not None
    assert submit.bodies[0]["forced_submit"] is False
    assert s.submit_reason == SubmitReason.manual


def test_timeout_during_confirmation_wins():
    clock = FakeClock()
    submit = RecordingSubmit()
    s = _session(submit, clock)
    s.select(1)
    s.request_submit()

    clock.advance(120)
    assert s.check_deadline() is not None
    assert s.confirm_submit() is None
    assert len(submit.bodies) == 1
    assert submit.bodies[0]["forced_submit"] is True


def test_selection_after_submit_is_ignored():
    submit = RecordingSubmit()
    s = _session(submit)
    s.select(1)
    s.focus_lost()
    s.select(2, index=1)
    assert s.answers == [1, None, None]


def test_concurrent_triggers_submit_exactly_once():
    clock = FakeClock()
    submit = RecordingSubmit(delay=0.05)
    s = _session(submit, clock)
    s.select(0)
    s.request_submit()
    clock.advance(3600)

    barrier = threading.Barrier(6)

    def run(fn):
        barrier.wait()
        fn()

    triggers = [s.check_deadline, s.focus_lost, s.confirm_submit, s.check_deadline, s.focus_lost, s.confirm_submit]
    threads = [threading.Thread(target=run, args=(fn,)) for fn in triggers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(submit.bodies) == 1
    assert s.state == SessionState.done


def test_failed_submission_pauses_and_can_be_retried():
    clock = FakeClock()
    errors = []
    submit = RecordingSubmit(failures=1)
    s = AttemptSession(_quiz(), submit, clock=clock, use_timer=False, on_error=errors.append)
    s.select(1)
    clock.advance(10)

    assert s.focus_lost() is None
    assert s.state == SessionState.in_progress
    assert s.paused is True
    assert isinstance(s.error, ApiError)
    assert len(errors) == 1

    # The countdown is frozen while paused and a timeout cannot fire.
    clock.advance(300)
    assert s.remaining == 50
    assert s.check_deadline() is None

    s.resume()
    assert s.paused is False
    assert s.error is None
    clock.advance(5)
    assert s.remaining == 45

    s.request_submit()
    assert s.confirm_submit() == {"id": "attempt-2", "forced_submit": False}
    assert len(submit.bodies) == 2
    assert s.state == SessionState.done


def test_transport_errors_are_handled_like_api_errors():
    def boom(body):
        raise httpx.ConnectError("refused")

    s = _session(boom)
    s.select(0)
    assert s.focus_lost() is None
    assert isinstance(s.error, httpx.ConnectError)
    assert s.state == SessionState.in_progress


def test_unexpected_submit_error_returns_session_to_in_progress():
    calls = []

    def flaky(body):
        calls.append(body)
        if len(calls) == 1:
            raise ValueError("unexpected payload")
        return {"id": "attempt-2", "forced_submit": body["forced_submit"]}

    errors = []
    s = AttemptSession(_quiz(), flaky, clock=FakeClock(), use_timer=False, on_error=errors.append)
    s.select(0)

    assert s.focus_lost() is None
    assert s.state == SessionState.in_progress
    assert s.paused is True
    assert isinstance(s.error, ValueError)
    assert len(errors) == 1

    assert s.focus_lost() == {"id": "attempt-2", "forced_submit": True}
    assert s.state == SessionState.done
    assert len(calls) == 2


def test_malformed_success_body_raises_api_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(201, text="<html>oops</html>"))
    api = QuizdeckClient(http=httpx.Client(base_url="http://quizdeck.test", transport=transport))

    with pytest.raises(ApiError) as exc:
        api.submit_attempt("0123456789abcdef01234567", {"answers": []})
    assert exc.value.status_code == 201
    assert exc.value.message == "malformed response from server"

    s = _session(lambda body: api.submit_attempt("0123456789abcdef01234567", body))
    s.select(0)
    assert s.focus_lost() is None
    assert isinstance(s.error, ApiError)
    assert s.state == SessionState.in_progress


def test_cancel_submit_waits_for_session_lock():
    s = _session(RecordingSubmit())
    s.select(0)
    s.request_submit()

    with s._lock:
        t = threading.Thread(target=s.cancel_submit)
        t.start()
        t.join(timeout=0.1)
        assert t.is_alive()
        assert s.awaiting_confirmation is True

    t.join(timeout=2.0)
    assert not t.is_alive()
    assert s.awaiting_confirmation is False


def test_timer_thread_forces_submission():
    done = threading.Event()
    submit = RecordingSubmit()
    quiz = _quiz(n=1)
    clock = FakeClock()
    s = AttemptSession(
        quiz,
        submit,
        clock=clock,
        tick_seconds=0.01,
        on_submitted=lambda result, reason: done.set(),
    )
    s.select(0)
    clock.advance(61)

    assert done.wait(timeout=2.0)
    assert s.submit_reason == SubmitReason.timeout
    assert len(submit.bodies) == 1


def test_empty_quiz_is_rejected():
    with pytest.raises(ValueError):
        AttemptSession({"id": "q", "time_limit": 1, "questions": []}, RecordingSubmit())


def test_session_against_api(client, owner, taker, create_quiz):
    quiz_id = create_quiz(owner, time_limit=1)["id"]
    token = taker["headers"]["Authorization"].split(" ", 1)[1]
    api = QuizdeckClient(token=token, http=client)

    quiz = api.get_quiz(quiz_id)
    clock = FakeClock()
    s = AttemptSession(quiz, lambda body: api.submit_attempt(quiz_id, body), clock=clock, use_timer=False)

    s.select(1)
    clock.advance(90)
    result = s.check_deadline()

    assert result["forced_submit"] is True
    assert result["score"] == 1
    assert result["total_points"] == 2
    assert result["time_spent"] == 60

    mine = api.list_my_attempts(quiz_id)
    assert mine["total"] == 1
    assert mine["items"][0]["id"] == result["id"]

    detail = api.get_attempt(result["id"])
    assert [q["correct_answer"] for q in detail["questions"]] == [1, 0]


def test_api_errors_carry_status_and_message(client, owner, create_quiz):
    quiz_id = create_quiz(owner)["id"]
    token = owner["headers"]["Authorization"].split(" ", 1)[1]
    api = QuizdeckClient(token=token, http=client)

    with pytest.raises(ApiError) as exc:
        api.submit_attempt(quiz_id, {"answers": [], "time_spent": 0})
    assert exc.value.status_code == 403
    assert exc.value.message == "you cannot take your own quiz"
    assert exc.value.payload["error_code"] == "forbidden"
