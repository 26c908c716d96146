"""
keypoints.py - Body part identifiers and conversion of raw model output into named keypoints.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence

import numpy as np


class BodyPart(Enum):
    """The 17 keypoints emitted by the pose model, in model output order."""
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


KEYPOINT_ORDER: List[BodyPart] = list(BodyPart)
NUM_KEYPOINTS = len(KEYPOINT_ORDER)


@dataclass(frozen=True)
class Keypoint:
    """One tracked landmark; coordinates and confidence are normalized to [0, 1]."""
    name: BodyPart
    x: float
    y: float
    confidence: float


def parse_body_part(name: str) -> BodyPart:
    """Look up a body part by its snake_case name, raising ValueError if unknown."""
    try:
        return BodyPart(name)
    except ValueError:
        raise ValueError(f"Unknown body part: {name!r}") from None


def normalize_keypoints(raw: Sequence[Sequence[float]]) -> Dict[BodyPart, Keypoint]:
    """
    Convert one frame of model output into a name-keyed keypoint mapping.

    Args:
        raw: 17 (y, x, confidence) triples in model order. The model's
            batched output of shape (1, 1, 17, 3) is accepted as well.

    Returns:
        Dictionary of BodyPart -> Keypoint containing every body part

    Raises:
        ValueError: if the frame does not hold exactly 17 numeric triples in [0, 1]
    """
    try:
        arr = np.asarray(raw, dtype=float)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Malformed keypoint frame: {e}") from e
    if arr.ndim > 2:
        arr = arr.reshape(-1, arr.shape[-1])
    if arr.ndim != 2 or arr.shape != (NUM_KEYPOINTS, 3):
        raise ValueError(
            f"Expected {NUM_KEYPOINTS} (y, x, confidence) triples, got shape {arr.shape}"
        )
    if not np.all(np.isfinite(arr)):
        raise ValueError("Keypoint frame contains non-finite values")
    out_of_range = (arr < 0.0) | (arr > 1.0)
    if out_of_range.any():
        row = int(np.argwhere(out_of_range)[0][0])
        raise ValueError(f"Keypoint {KEYPOINT_ORDER[row].value} has values outside [0, 1]: {arr[row].tolist()}")

    keypoints = {}
    for part, (y, x, score) in zip(KEYPOINT_ORDER, arr):
        keypoints[part] = Keypoint(name=part, x=float(x), y=float(y), confidence=float(score))
    return keypoints


def keypoints_to_landmarks(keypoints: Dict[BodyPart, Keypoint]) -> Dict[str, List[float]]:
    """Flatten keypoints into the {name: [x, y, confidence]} dict used for export and logging."""
    return {
        part.value: [kp.x, kp.y, kp.confidence]
        for part, kp in keypoints.items()
    }
