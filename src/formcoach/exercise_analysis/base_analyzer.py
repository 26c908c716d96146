from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import logging
import numpy as np

from ..pose_detection.keypoints import BodyPart, Keypoint
from .pose_utils import angle_between, is_aligned, is_aligned_regression
from .reference_poses import (
    AlignmentConstraint,
    AlignmentMethod,
    AngleConstraint,
    ReferenceCatalog,
    ReferencePose,
)

DEFAULT_CONFIDENCE_THRESHOLD = 0.3

# --- Logger Setup ---
logger = logging.getLogger("PoseEvaluator")
if not logger.hasHandlers():
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


@dataclass
class ViolationSet:
    """Instantaneous result of checking one frame against a reference pose."""
    incorrect_parts: Set[BodyPart] = field(default_factory=set)
    feedback: List[str] = field(default_factory=list)  # deduplicated, insertion order
    angles: Dict[BodyPart, float] = field(default_factory=dict)  # measured joint angles

    @property
    def is_correct(self) -> bool:
        return not self.incorrect_parts

    def add_feedback(self, message: Optional[str]) -> None:
        if message and message not in self.feedback:
            self.feedback.append(message)


class PoseEvaluator:
    """Checks single frames against the reference pose catalog."""

    def __init__(self, catalog: ReferenceCatalog, confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD):
        """
        Args:
            catalog: Reference poses to validate against
            confidence_threshold: Keypoints at or below this confidence are treated as missing
        """
        self.catalog = catalog
        self.confidence_threshold = confidence_threshold

    def evaluate(self, keypoints: Dict[BodyPart, Keypoint], exercise: str, view_angle: str) -> ViolationSet:
        """
        Evaluate one frame.

        Args:
            keypoints: Normalized keypoints keyed by body part
            exercise: Exercise name, e.g. "plank"
            view_angle: "front" or "side"

        Returns:
            ViolationSet with the parts violating a constraint in this frame

        Raises:
            UnknownReferencePoseError: if the catalog has no pose for (exercise, view_angle)
        """
        pose = self.catalog.get(exercise, view_angle)
        return self.evaluate_pose(keypoints, pose)

    def evaluate_pose(self, keypoints: Dict[BodyPart, Keypoint], pose: ReferencePose) -> ViolationSet:
        result = ViolationSet()

        for constraint in pose.alignments:
            if self._alignment_violated(keypoints, pose, constraint):
                result.incorrect_parts.update(constraint.parts)
                result.add_feedback(pose.general_message)

        for constraint in pose.angles:
            measured = self._measure_angle(keypoints, constraint)
            if measured is None:
                continue
            result.angles[constraint.joint] = measured
            if abs(measured - constraint.target_degrees) > constraint.tolerance_degrees:
                result.incorrect_parts.add(constraint.joint)
                result.add_feedback(pose.message_for(constraint.joint))

        if result.angles:
            logger.debug("[EVAL] %s/%s angles: %s", pose.exercise, pose.view_angle,
                         {part.value: round(value, 1) for part, value in result.angles.items()})
        return result

    def _visible_points(self, keypoints: Dict[BodyPart, Keypoint], parts) -> Optional[List[Tuple[float, float]]]:
        """Return (x, y) for every part, or None if any of them is missing or below threshold."""
        points = []
        for part in parts:
            kp = keypoints.get(part)
            if kp is None or kp.confidence <= self.confidence_threshold:
                return None
            points.append((kp.x, kp.y))
        return points

    def _alignment_violated(self, keypoints: Dict[BodyPart, Keypoint], pose: ReferencePose,
                            constraint: AlignmentConstraint) -> bool:
        points = self._visible_points(keypoints, constraint.parts)
        if points is None or len(points) < 3:
            return False

        check = is_aligned_regression if pose.alignment_method is AlignmentMethod.REGRESSION else is_aligned
        if check(points, constraint.tolerance):
            return False
        if pose.recheck_factor and check(points, constraint.tolerance * pose.recheck_factor):
            logger.debug("[EVAL] %s passed perspective re-check", [p.value for p in constraint.parts])
            return False
        return True

    def _measure_angle(self, keypoints: Dict[BodyPart, Keypoint], constraint: AngleConstraint) -> Optional[float]:
        points = self._visible_points(keypoints, constraint.parts)
        if points is None:
            return None
        a, b, c = points
        measured = angle_between(a, b, c)
        if np.isnan(measured):
            logger.debug("[EVAL] degenerate limb at %s, skipping angle check", constraint.joint.value)
            return None
        return measured
