"""
feedback_dispatcher.py - Throttled relay of active corrections to the advisory channel.

States: LOCKED (start-up cooldown) -> IDLE -> SPEAKING -> IDLE ...

Nothing here sleeps or starts timers. Every delay is a timestamp compared
against the injected clock on the next flush(), which the frame loop calls
once per tick. Channel callbacks can arrive on other threads; they are
parked in a thread-safe inbox and only applied inside flush().
"""
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Iterable, List, Optional, Tuple
import logging
import queue
import time

from ..pose_detection.keypoints import BodyPart
from .voice_feedback import AdvisoryChannel, AdvisoryPrompt, ChannelListener

logger = logging.getLogger("FeedbackDispatcher")
if not logger.hasHandlers():
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class DispatcherState(Enum):
    LOCKED = "locked"
    IDLE = "idle"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class FeedbackRequest:
    exercise: str
    incorrect_parts: Tuple[BodyPart, ...]
    feedback_messages: Tuple[str, ...]
    enqueued_at: float

    @classmethod
    def create(cls, exercise: str, incorrect_parts: Iterable[BodyPart],
               feedback_messages: Iterable[str], enqueued_at: float) -> "FeedbackRequest":
        parts = tuple(sorted(set(incorrect_parts), key=lambda p: p.value))
        return cls(exercise, parts, tuple(feedback_messages), enqueued_at)

    @property
    def key(self) -> Tuple[str, ...]:
        """Requests with the same sorted message set are equivalent."""
        return tuple(sorted(self.feedback_messages))


# --- Prompt Templates ---

def _readable(name: str) -> str:
    return name.replace("_", " ")


def create_system_prompt(exercise: str, incorrect_parts: Iterable[BodyPart], feedback: List[str]) -> str:
    exercise_name = _readable(exercise)
    exercise_name = exercise_name[:1].upper() + exercise_name[1:]
    mistakes = "\n".join(f"- {msg}" for msg in feedback)
    focus = ", ".join(_readable(part.value) for part in incorrect_parts)
    return (
        f"You are a yoga and fitness instructor helping a student with their {exercise_name} pose.\n"
        "You're providing real-time feedback on their form through voice guidance.\n"
        "\n"
        "The student is currently making the following mistakes:\n"
        f"{mistakes}\n"
        "\n"
        f"Focus areas: {focus}\n"
        "\n"
        "Important instructions:\n"
        "1. Be encouraging but direct about form corrections\n"
        "2. Use clear, simple instructions\n"
        "3. Keep responses brief (under 10 seconds)\n"
        "4. Avoid asking questions - just provide guidance\n"
        "5. Speak as if you're watching them right now\n"
        "6. Don't introduce yourself or use pleasantries - get straight to the feedback\n"
        "\n"
        "Your goal is to help them correct their form immediately with clear, actionable guidance."
    )


def create_first_message(exercise: str, feedback: List[str]) -> str:
    # The first feedback item is the primary correction
    primary = feedback[0] if feedback else f"Adjust your {_readable(exercise)} pose"
    message = primary.strip()
    return message[:1].upper() + message[1:]


def build_advisory_prompt(request: FeedbackRequest) -> AdvisoryPrompt:
    feedback = list(request.feedback_messages)
    return AdvisoryPrompt(
        system_prompt=create_system_prompt(request.exercise, request.incorrect_parts, feedback),
        first_message=create_first_message(request.exercise, feedback),
    )


class _SessionListener(ChannelListener):
    """Forwards channel events for one session into the dispatcher inbox."""

    def __init__(self, inbox: "queue.Queue", session_id: int):
        self._inbox = inbox
        self._session_id = session_id

    def on_connect(self) -> None:
        self._inbox.put((self._session_id, "connect", None))

    def on_disconnect(self) -> None:
        self._inbox.put((self._session_id, "disconnect", None))

    def on_error(self, error: BaseException) -> None:
        self._inbox.put((self._session_id, "error", error))

    def on_mode_change(self, mode: str) -> None:
        self._inbox.put((self._session_id, "mode", mode))


class FeedbackDispatcher:
    """Queues feedback requests and relays them to an advisory channel one session at a time."""

    def __init__(
        self,
        channel: AdvisoryChannel,
        clock: Optional[Callable[[], float]] = None,
        initial_lock_ms: float = 10000,
        session_cooldown_ms: float = 5000,
        settle_delay_ms: float = 1000,
        error_backoff_ms: float = 3000,
    ):
        """
        Args:
            channel: Spoken feedback sink
            clock: Monotonic clock returning milliseconds; defaults to time.monotonic
            initial_lock_ms: Start-up period during which all requests are rejected
            session_cooldown_ms: Minimum time between dispatches
            settle_delay_ms: Pause after a session ends before the next queued one starts
            error_backoff_ms: Pause after a channel failure before the queue resumes
        """
        self.channel = channel
        self._clock = clock or monotonic_ms
        self.session_cooldown_ms = session_cooldown_ms
        self.settle_delay_ms = settle_delay_ms
        self.error_backoff_ms = error_backoff_ms

        self._unlock_at = self._clock() + initial_lock_ms
        self._queue: Deque[FeedbackRequest] = deque()
        self._inbox: "queue.Queue" = queue.Queue()
        self._current: Optional[FeedbackRequest] = None
        self._session_id = 0
        self._last_dispatch_ms: Optional[float] = None
        self._resume_at = 0.0
        self._last_seen_ms: Optional[float] = None  # timestamp of the latest queue/flush
        self._status = "Inactive"

    # --- Introspection ---

    def state(self, now_ms: Optional[float] = None) -> DispatcherState:
        if self._current is not None:
            return DispatcherState.SPEAKING
        now = self._clock() if now_ms is None else now_ms
        if now < self._unlock_at:
            return DispatcherState.LOCKED
        return DispatcherState.IDLE

    @property
    def status(self) -> str:
        """Human-readable channel status for the UI indicator."""
        seen = self._clock() if self._last_seen_ms is None else self._last_seen_ms
        if self._current is None and self._status == "Inactive" and seen < self._unlock_at:
            return "Locked"
        return self._status

    @property
    def pending(self) -> Tuple[FeedbackRequest, ...]:
        return tuple(self._queue)

    @property
    def current_request(self) -> Optional[FeedbackRequest]:
        return self._current

    @property
    def last_dispatch_ms(self) -> Optional[float]:
        return self._last_dispatch_ms

    # --- Operations ---

    def queue(self, request: FeedbackRequest, now_ms: Optional[float] = None) -> bool:
        """
        Offer a feedback request.

        Returns:
            True if the request was queued, False if rejected by the start-up
            lock, the session cooldown, or an equivalent pending request
        """
        now = self._now(now_ms)
        self._drain_inbox(now)

        if now < self._unlock_at:
            logger.debug("Still in start-up cooldown, not queuing feedback")
            return False
        if self._last_dispatch_ms is not None and now - self._last_dispatch_ms < self.session_cooldown_ms:
            return False
        key = request.key
        if (self._current is not None and self._current.key == key) or any(item.key == key for item in self._queue):
            return False

        self._queue.append(request)
        if self._current is None:
            self.flush(now)
        return True

    def flush(self, now_ms: Optional[float] = None) -> None:
        """Apply channel events and start the next queued session if the channel is free."""
        now = self._now(now_ms)
        self._drain_inbox(now)
        if self._current is not None or not self._queue:
            return
        if now < self._unlock_at or now < self._resume_at:
            return
        self._start_session(self._queue.popleft(), now)

    def cancel(self) -> None:
        """Drop every queued request and end the active session without draining."""
        self._queue.clear()
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                break
        if self._current is not None:
            try:
                self.channel.end_session()
            except Exception as e:
                logger.error(f"Error ending voice feedback session: {e}")
        # invalidates events still in flight from the old session
        self._session_id += 1
        self._current = None
        self._status = "Inactive"

    # --- Internals ---

    def _now(self, now_ms: Optional[float]) -> float:
        now = self._clock() if now_ms is None else now_ms
        self._last_seen_ms = now
        return now

    def _start_session(self, request: FeedbackRequest, now: float) -> None:
        prompt = build_advisory_prompt(request)
        self._session_id += 1
        self._current = request
        self._last_dispatch_ms = now
        logger.info(f"Starting voice feedback session: {prompt.first_message}")
        logger.debug(f"System prompt:\n{prompt.system_prompt}")
        try:
            self.channel.start_session(prompt, _SessionListener(self._inbox, self._session_id))
        except Exception as e:
            logger.error(f"Failed to start voice feedback session: {e}")
            self._finish_session(now, failed=True)

    def _finish_session(self, now: float, failed: bool) -> None:
        self._current = None
        self._last_dispatch_ms = now
        if failed:
            self._resume_at = now + self.error_backoff_ms
            self._status = "Error"
        else:
            self._resume_at = now + self.settle_delay_ms
            self._status = "Inactive"

    def _drain_inbox(self, now: float) -> None:
        while True:
            try:
                session_id, kind, payload = self._inbox.get_nowait()
            except queue.Empty:
                return
            if session_id != self._session_id or self._current is None:
                continue  # stale event from a cancelled or finished session
            if kind == "connect":
                logger.info("Voice feedback connected")
                self._status = "Speaking"
            elif kind == "mode":
                self._status = "Speaking" if payload == "speaking" else "Listening"
            elif kind == "disconnect":
                logger.info("Voice feedback disconnected")
                self._finish_session(now, failed=False)
            elif kind == "error":
                logger.error(f"Voice feedback error: {payload}")
                self._finish_session(now, failed=True)
