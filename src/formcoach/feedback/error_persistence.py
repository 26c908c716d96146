"""
error_persistence.py - Temporal debouncing of per-frame violations.

Each body part is tracked independently:

    absent --(violates)--> observed --(still violating after the dwell time)--> active
       ^                      |                                                   |
       +------------------ any clean frame ---------------------------------------+

Entering an error state is slow (it must persist for the dwell time) while
leaving it is immediate, so a single noisy frame never flips the verdict and a
corrected pose is acknowledged on the very next frame.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Set

import logging

from ..exercise_analysis.base_analyzer import ViolationSet
from ..exercise_analysis.config_utils import validate_persistence_duration
from ..exercise_analysis.reference_poses import ReferencePose
from ..pose_detection.keypoints import BodyPart, KEYPOINT_ORDER

DEFAULT_PERSISTENCE_MS = 2000

logger = logging.getLogger("ErrorPersistence")
if not logger.hasHandlers():
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


@dataclass
class ErrorTrack:
    """Continuous violation history of one body part."""
    part: BodyPart
    start_time: float  # ms
    observed_frame_count: int = 1
    active: bool = False


@dataclass
class PoseCorrectness:
    """Debounced verdict, read by rendering and the feedback dispatcher."""
    is_correct: bool = True
    incorrect_parts: Set[BodyPart] = field(default_factory=set)
    feedback: List[str] = field(default_factory=list)


class ErrorPersistenceEngine:
    """Promotes instantaneous violations to active ones after a dwell time."""

    def __init__(self, reference_pose: ReferencePose, persistence_duration_ms: float = DEFAULT_PERSISTENCE_MS):
        """
        Args:
            reference_pose: Pose whose correction messages are reported for active parts
            persistence_duration_ms: Continuous violation time before a part becomes active
        """
        self.reference_pose = reference_pose
        self._persistence_duration_ms = validate_persistence_duration(persistence_duration_ms)
        self._tracks: Dict[BodyPart, ErrorTrack] = {}
        self._last_update_ms = None
        self._correctness = PoseCorrectness()

    @property
    def persistence_duration_ms(self) -> float:
        return self._persistence_duration_ms

    @persistence_duration_ms.setter
    def persistence_duration_ms(self, value: float) -> None:
        self._persistence_duration_ms = validate_persistence_duration(value)
        # timers measured against the old duration are meaningless now
        self.reset()
        logger.info(f"Persistence duration set to {value} ms, error tracks cleared")

    @property
    def tracks(self) -> Mapping[BodyPart, ErrorTrack]:
        return MappingProxyType(self._tracks)

    @property
    def correctness(self) -> PoseCorrectness:
        return self._correctness

    def set_reference_pose(self, reference_pose: ReferencePose) -> None:
        self.reference_pose = reference_pose
        self.reset()

    def reset(self) -> None:
        """Discard all tracks and return to a correct verdict."""
        self._tracks.clear()
        self._last_update_ms = None
        self._correctness = PoseCorrectness()

    def update(self, violations: ViolationSet, now_ms: float) -> PoseCorrectness:
        """
        Apply one frame's violations.

        Args:
            violations: Instantaneous violations of the frame
            now_ms: Monotonic frame timestamp in milliseconds

        Returns:
            The debounced PoseCorrectness after this frame

        Raises:
            ValueError: if now_ms is earlier than the previous frame's timestamp
        """
        if self._last_update_ms is not None and now_ms < self._last_update_ms:
            raise ValueError(f"Frame timestamp went backwards ({now_ms} < {self._last_update_ms})")
        self._last_update_ms = now_ms

        current = violations.incorrect_parts

        for part in list(self._tracks):
            if part not in current:
                track = self._tracks.pop(part)
                if track.active:
                    logger.debug(f"[PERSIST] {part.value} corrected")

        for part in current:
            track = self._tracks.get(part)
            if track is None:
                self._tracks[part] = ErrorTrack(part=part, start_time=now_ms)
                continue
            track.observed_frame_count += 1
            if not track.active and now_ms - track.start_time >= self._persistence_duration_ms:
                track.active = True
                logger.debug(f"[PERSIST] {part.value} active after {track.observed_frame_count} frames")

        self._correctness = self._build_correctness()
        return self._correctness

    def _build_correctness(self) -> PoseCorrectness:
        active = [part for part in KEYPOINT_ORDER if part in self._tracks and self._tracks[part].active]
        if not active:
            return PoseCorrectness()

        feedback: List[str] = []
        for part in active:
            message = self.reference_pose.message_for(part)
            if message and message not in feedback:
                feedback.append(message)
        general = self.reference_pose.general_message
        if general and general not in feedback:
            feedback.append(general)
        return PoseCorrectness(is_correct=False, incorrect_parts=set(active), feedback=feedback)
