from dataclasses import replace
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple
import logging
import time

from .exercise_analysis.base_analyzer import PoseEvaluator, ViolationSet
from .exercise_analysis.config_utils import EngineConfig, load_reference_catalog
from .exercise_analysis.reference_poses import ReferenceCatalog, ReferencePose
from .feedback.error_persistence import ErrorPersistenceEngine, PoseCorrectness
from .feedback.feedback_dispatcher import FeedbackDispatcher, FeedbackRequest, monotonic_ms
from .feedback.voice_feedback import AdvisoryChannel
from .pose_detection.base_detector import BaseKeypointSource
from .pose_detection.keypoints import BodyPart, Keypoint, normalize_keypoints
from .snapshot import build_snapshot

logger = logging.getLogger("FormCoach")
if not logger.hasHandlers():
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


class FormCoachSession:
    """One coaching session: evaluator, error persistence and feedback dispatch for a single subject."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        catalog: Optional[ReferenceCatalog] = None,
        channel: Optional[AdvisoryChannel] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Engine options; defaults to EngineConfig()
            catalog: Reference poses; the bundled catalog is loaded if omitted
            channel: Spoken feedback sink; voice feedback is disabled if None
            clock: Monotonic clock in milliseconds

        Raises:
            UnknownReferencePoseError: if the configured exercise/view has no reference pose
        """
        self.config = config or EngineConfig()
        self.catalog = catalog or load_reference_catalog()
        self._clock = clock or monotonic_ms

        self._reference_pose = self.catalog.get(self.config.exercise, self.config.view_angle)
        self.evaluator = PoseEvaluator(self.catalog, self.config.confidence_threshold)
        self.persistence = ErrorPersistenceEngine(self._reference_pose, self.config.persistence_duration_ms)

        self.channel = channel
        self.dispatcher = None
        if channel is not None:
            self.dispatcher = FeedbackDispatcher(
                channel,
                clock=self._clock,
                initial_lock_ms=self.config.initial_lock_ms,
                session_cooldown_ms=self.config.session_cooldown_ms,
                settle_delay_ms=self.config.settle_delay_ms,
                error_backoff_ms=self.config.error_backoff_ms,
            )

        self.is_running = False
        self.frame_count = 0
        self.last_keypoints: Optional[Dict[BodyPart, Keypoint]] = None
        self.last_violations: Optional[ViolationSet] = None
        self.last_frame_ms: Optional[float] = None
        self._reported_parts: frozenset = frozenset()

    # --- Properties ---

    @property
    def exercise(self) -> str:
        return self.config.exercise

    @property
    def view_angle(self) -> str:
        return self.config.view_angle

    @property
    def reference_pose(self) -> ReferencePose:
        return self._reference_pose

    @property
    def correctness(self) -> PoseCorrectness:
        return self.persistence.correctness

    # --- Lifecycle ---

    def start(self) -> None:
        self.is_running = True
        logger.info(f"Detection started: {self.exercise} ({self.view_angle} view)")

    def stop(self) -> None:
        """Stop detection, discarding error tracks and queued feedback immediately."""
        self.is_running = False
        self.persistence.reset()
        self._reported_parts = frozenset()
        if self.dispatcher is not None:
            self.dispatcher.cancel()
        logger.info("Detection stopped")

    def close(self) -> None:
        self.stop()
        if self.channel is not None:
            self.channel.close()

    # --- Settings ---

    def set_persistence_duration(self, duration_ms: float) -> None:
        self.persistence.persistence_duration_ms = duration_ms
        self.config = replace(self.config, persistence_duration_ms=duration_ms)
        self._reported_parts = frozenset()

    def set_exercise(self, exercise: str, view_angle: Optional[str] = None) -> None:
        view_angle = view_angle or self.view_angle
        pose = self.catalog.get(exercise, view_angle)
        self._reference_pose = pose
        self.config = replace(self.config, exercise=exercise, view_angle=view_angle)
        self.persistence.set_reference_pose(pose)
        self._reported_parts = frozenset()
        if self.dispatcher is not None:
            self.dispatcher.cancel()
        logger.info(f"Exercise set to {exercise} ({view_angle} view)")

    # --- Frame processing ---

    def process_frame(self, raw_keypoints: Sequence[Sequence[float]], now_ms: Optional[float] = None) -> PoseCorrectness:
        """
        Process a single frame of model output.

        Args:
            raw_keypoints: 17 (y, x, confidence) triples in model order
            now_ms: Frame timestamp in milliseconds; sampled from the clock if omitted

        Returns:
            The debounced PoseCorrectness after this frame
        """
        if not self.is_running:
            return self.correctness
        now = self._clock() if now_ms is None else now_ms

        try:
            keypoints = normalize_keypoints(raw_keypoints)
        except ValueError as e:
            logger.warning(f"Skipping malformed frame: {e}")
            self._flush_feedback(now)
            return self.correctness

        violations = self.evaluator.evaluate_pose(keypoints, self._reference_pose)
        try:
            correctness = self.persistence.update(violations, now)
        except ValueError as e:
            logger.warning(f"Skipping out-of-order frame: {e}")
            self._flush_feedback(now)
            return self.correctness

        self.frame_count += 1
        self.last_frame_ms = now
        self.last_keypoints = keypoints
        self.last_violations = violations

        self._offer_feedback(correctness, now)
        self._flush_feedback(now)
        return correctness

    def run(self, source: BaseKeypointSource, frame_interval_ms: Optional[float] = None) -> Iterator[Tuple[int, PoseCorrectness]]:
        """
        Feed every frame of a source through the session.

        Args:
            source: Keypoint source to drain
            frame_interval_ms: If set, frames are stamped start + index * interval
                instead of reading the clock, which replays recordings at their
                capture rate regardless of processing speed

        Yields:
            (frame index, PoseCorrectness) for every frame
        """
        if not self.is_running:
            self.start()
        start = self._clock()
        for index, frame in enumerate(source):
            if not self.is_running:
                break
            now = start + index * frame_interval_ms if frame_interval_ms else None
            yield index, self.process_frame(frame, now)

    def wait_for_feedback(self, timeout_ms: float, poll_interval_ms: float = 50,
                          sleep: Callable[[float], None] = time.sleep) -> bool:
        """
        Keep flushing the dispatcher until every accepted request has been spoken.

        Replayed frames carry synthetic timestamps that run ahead of the clock,
        so the dispatcher timeline continues from the last frame timestamp by
        the clock time elapsed since this call.

        Args:
            timeout_ms: Give up after this much clock time
            poll_interval_ms: Pause between flushes
            sleep: Blocking pause, in seconds

        Returns:
            True once the channel is idle with nothing queued, False on timeout
        """
        if self.dispatcher is None:
            return True
        started = self._clock()
        base = self.last_frame_ms if self.last_frame_ms is not None else started
        while True:
            elapsed = self._clock() - started
            self.dispatcher.flush(base + elapsed)
            if self.dispatcher.current_request is None and not self.dispatcher.pending:
                return True
            if elapsed >= timeout_ms:
                logger.warning(f"Spoken feedback still pending after {timeout_ms} ms, giving up")
                return False
            sleep(poll_interval_ms / 1000.0)

    def export_snapshot(self, frame_width: int, frame_height: int, timestamp: Optional[float] = None) -> dict:
        if self.last_keypoints is None:
            raise RuntimeError("No frame has been processed yet")
        return build_snapshot(self.last_keypoints, self.correctness, self.exercise, self.view_angle,
                              frame_width, frame_height, timestamp)

    def _offer_feedback(self, correctness: PoseCorrectness, now: float) -> None:
        active = frozenset(correctness.incorrect_parts)
        if not active:
            self._reported_parts = frozenset()
            return
        if self.dispatcher is None or active == self._reported_parts:
            return
        request = FeedbackRequest.create(self.exercise, active, correctness.feedback, now)
        if self.dispatcher.queue(request, now):
            self._reported_parts = active

    def _flush_feedback(self, now: float) -> None:
        if self.dispatcher is not None:
            self.dispatcher.flush(now)
