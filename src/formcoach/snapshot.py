"""
snapshot.py - JSON export of a single analysed frame.
"""
import json
import time
from typing import Any, Dict, Optional

from .feedback.error_persistence import PoseCorrectness
from .pose_detection.keypoints import BodyPart, Keypoint, KEYPOINT_ORDER


def build_snapshot(
    keypoints: Dict[BodyPart, Keypoint],
    correctness: PoseCorrectness,
    exercise: str,
    view_angle: str,
    frame_width: int,
    frame_height: int,
    timestamp: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Build the flat export object for one frame.

    Args:
        keypoints: Normalized keypoints of the frame
        correctness: Debounced verdict at that frame
        exercise: Exercise being performed
        view_angle: Camera view angle
        frame_width: Frame width in pixels, used for pixel coordinates
        frame_height: Frame height in pixels
        timestamp: Wall-clock seconds; defaults to now

    Returns:
        JSON-serializable dictionary
    """
    if frame_width <= 0 or frame_height <= 0:
        raise ValueError("Frame dimensions must be positive")
    entries = []
    for part in KEYPOINT_ORDER:
        kp = keypoints.get(part)
        if kp is None:
            continue
        entries.append({
            "name": part.value,
            "x": round(kp.x, 4),
            "y": round(kp.y, 4),
            "pixelX": round(kp.x * frame_width, 1),
            "pixelY": round(kp.y * frame_height, 1),
            "confidence": round(kp.confidence, 4),
            "isCorrect": part not in correctness.incorrect_parts,
        })
    return {
        "exercise": exercise,
        "viewAngle": view_angle,
        "timestamp": time.time() if timestamp is None else timestamp,
        "frameWidth": frame_width,
        "frameHeight": frame_height,
        "isCorrect": correctness.is_correct,
        "feedback": list(correctness.feedback),
        "keypoints": entries,
    }


def write_snapshot(path: str, snapshot: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2)
