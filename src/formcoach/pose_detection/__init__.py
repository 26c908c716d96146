"""
Keypoint input: body part identifiers, the frame normalizer and keypoint sources.
"""

from .keypoints import BodyPart, Keypoint, KEYPOINT_ORDER, normalize_keypoints, keypoints_to_landmarks
from .base_detector import BaseKeypointSource
from .recorded_source import RecordedKeypointSource

__all__ = [
    'BodyPart',
    'Keypoint',
    'KEYPOINT_ORDER',
    'normalize_keypoints',
    'keypoints_to_landmarks',
    'BaseKeypointSource',
    'RecordedKeypointSource',
]
