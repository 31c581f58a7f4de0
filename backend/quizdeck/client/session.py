"""Timed attempt session.

One object per quiz attempt. It owns the countdown, the selected answers and
the single submission that leaves the client, whichever of timeout, focus
loss or an explicit submit gets there first.

Focus-loss detection is an advisory integrity signal only. Anyone can answer
from a second device or simply not report the event, so it must never be
treated as a security control.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from quizdeck.client.api import ApiError


log = logging.getLogger(__name__)

UNANSWERED = -1


class SessionState(str, enum.Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    submitting = "submitting"
    done = "done"


class SubmitReason(str, enum.Enum):
    manual = "manual"
    timeout = "timeout"
    focus_lost = "focus_lost"


@dataclass(frozen=True)
class SubmitConfirmation:
    answered: int
    total: int

    @property
    def all_answered(self) -> bool:
        return self.answered == self.total

    @property
    def prompt(self) -> str:
        if self.all_answered:
            return "Are you sure you want to submit your answers?"
        return "You haven't answered all questions. Are you sure you want to submit?"


class AttemptSession:
    def __init__(
        self,
        quiz: dict,
        submit: Callable[[dict], dict],
        *,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float = 1.0,
        use_timer: bool = True,
        on_submitted: Callable[[dict, SubmitReason], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ):
        questions = list(quiz.get("questions") or [])
        if not questions:
            raise ValueError("quiz has no questions")

        self.quiz = quiz
        self.questions = questions
        self.time_limit_seconds = int(quiz.get("time_limit") or 0) * 60

        self._submit_fn = submit
        self._clock = clock
        self._tick_seconds = float(tick_seconds)
        self._use_timer = use_timer
        self._on_submitted = on_submitted
        self._on_error = on_error

        self._lock = threading.RLock()
        self._timer: threading.Timer | None = None
        self._state = SessionState.not_started
        self._deadline: float | None = None
        self._paused_remaining: float | None = None
        self._awaiting_confirmation = False

        self.answers: list[int | None] = [None] * len(questions)
        self.current_index = 0
        self.result: dict | None = None
        self.error: Exception | None = None
        self.forced_submit = False
        self.submit_reason: SubmitReason | None = None

    # -- state -------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def awaiting_confirmation(self) -> bool:
        return self._awaiting_confirmation

    @property
    def paused(self) -> bool:
        return self._state == SessionState.in_progress and self._paused_remaining is not None

    @property
    def remaining(self) -> float:
        with self._lock:
            if self._state == SessionState.not_started:
                return float(self.time_limit_seconds)
            if self._paused_remaining is not None:
                return self._paused_remaining
            if self._deadline is None:
                return 0.0
            return max(0.0, self._deadline - self._clock())

    @property
    def time_spent(self) -> int:
        spent = self.time_limit_seconds - self.remaining
        return int(min(self.time_limit_seconds, max(0, round(spent))))

    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)

    # -- navigation & answering -------------------------------------------

    def go_to(self, index: int) -> None:
        if not 0 <= index < len(self.questions):
            raise IndexError(f"question {index} out of range")
        self.current_index = index

    def next(self) -> bool:
        if self.current_index + 1 < len(self.questions):
            self.current_index += 1
            return True
        return False

    def previous(self) -> bool:
        if self.current_index > 0:
            self.current_index -= 1
            return True
        return False

    def select(self, option: int, *, index: int | None = None) -> None:
        """Record an answer. The first selection starts the countdown."""
        idx = self.current_index if index is None else int(index)
        if not 0 <= idx < len(self.questions):
            raise IndexError(f"question {idx} out of range")
        options = self.questions[idx].get("options") or []
        if not 0 <= int(option) < len(options):
            raise ValueError(f"option {option} out of range")

        with self._lock:
            if self._state in (SessionState.submitting, SessionState.done):
                return
            if self._state == SessionState.not_started:
                self._start()
            self.answers[idx] = int(option)

    def _start(self) -> None:
        self._state = SessionState.in_progress
        self._deadline = self._clock() + self.time_limit_seconds
        log.debug("attempt session started: quiz_id=%s limit=%ss", self.quiz.get("id"), self.time_limit_seconds)
        self._arm_timer()

    # -- countdown ---------------------------------------------------------

    def _arm_timer(self) -> None:
        if not self._use_timer:
            return
        t = threading.Timer(self._tick_seconds, self._on_tick)
        t.daemon = True
        self._timer = t
        t.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self) -> None:
        if self.check_deadline() is None and self._state == SessionState.in_progress and not self.paused:
            self._arm_timer()

    def check_deadline(self) -> dict | None:
        """Force a submission when the countdown has run out."""
        with self._lock:
            if self._state != SessionState.in_progress or self._paused_remaining is not None:
                return None
            if self.remaining > 0:
                return None
        return self._submit(forced=True, reason=SubmitReason.timeout)

    def resume(self) -> None:
        """Restart a countdown paused by a failed submission."""
        with self._lock:
            if self._state != SessionState.in_progress or self._paused_remaining is None:
                return
            self._deadline = self._clock() + self._paused_remaining
            self._paused_remaining = None
            self.error = None
            self._arm_timer()

    # -- submission triggers ----------------------------------------------

    def focus_lost(self, source: str = "blur") -> dict | None:
        """Host UI reports the tab was hidden or the window lost focus."""
        with self._lock:
            if self._state != SessionState.in_progress:
                return None
        log.info("attempt session lost focus: quiz_id=%s source=%s", self.quiz.get("id"), source)
        return self._submit(forced=True, reason=SubmitReason.focus_lost)

    def request_submit(self) -> SubmitConfirmation | None:
        with self._lock:
            if self._state in (SessionState.submitting, SessionState.done):
                return None
            if self._state == SessionState.not_started:
                self._start()
            self._awaiting_confirmation = True
            return SubmitConfirmation(answered=self.answered_count(), total=len(self.questions))

    def cancel_submit(self) -> None:
        with self._lock:
            self._awaiting_confirmation = False

    def confirm_submit(self) -> dict | None:
        with self._lock:
            if not self._awaiting_confirmation:
                return None
            self._awaiting_confirmation = False
        return self._submit(forced=False, reason=SubmitReason.manual)

    # -- the one network call ---------------------------------------------

    def payload(self, *, forced: bool) -> dict[str, Any]:
        return {
            "answers": [
                {"question_index": i, "selected_option": UNANSWERED if a is None else int(a)}
                for i, a in enumerate(self.answers)
            ],
            "time_spent": self.time_spent,
            "forced_submit": bool(forced),
        }

    def _submit(self, *, forced: bool, reason: SubmitReason) -> dict | None:
        with self._lock:
            # Check-and-set: whichever trigger gets here first owns the submission.
            if self._state != SessionState.in_progress:
                return None
            self._state = SessionState.submitting
            self._awaiting_confirmation = False
            self._cancel_timer()
            body = self.payload(forced=forced)
            remaining = self.remaining
            self._paused_remaining = remaining

        try:
            result = self._submit_fn(body)
        except (ApiError, httpx.HTTPError) as e:
            log.warning("attempt submission failed: quiz_id=%s reason=%s error=%s", self.quiz.get("id"), reason.value, e)
            self._submission_failed(e)
            return None
        except Exception as e:
            log.exception("attempt submission crashed: quiz_id=%s reason=%s", self.quiz.get("id"), reason.value)
            self._submission_failed(e)
            return None

        with self._lock:
            self._state = SessionState.done
            self._paused_remaining = remaining
            self.result = result
            self.forced_submit = bool(forced)
            self.submit_reason = reason
            self.error = None

        if self._on_submitted is not None:
            self._on_submitted(result, reason)
        return result

    def _submission_failed(self, error: Exception) -> None:
        # Back to in_progress with the countdown still paused; retry or resume() from here.
        with self._lock:
            self._state = SessionState.in_progress
            self.error = error
        if self._on_error is not None:
            self._on_error(error)
