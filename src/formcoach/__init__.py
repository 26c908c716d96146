"""
formcoach - debounced exercise form feedback from 2-D body keypoints.
"""

from .errors import ConfigurationError, UnknownReferencePoseError
from .exercise_analysis import EngineConfig, PoseEvaluator, ViolationSet, load_engine_config, load_reference_catalog
from .feedback import ErrorPersistenceEngine, FeedbackDispatcher, FeedbackRequest, PoseCorrectness
from .pose_detection import BodyPart, Keypoint, normalize_keypoints
from .trainer import FormCoachSession

__version__ = "0.1.0"

__all__ = [
    'ConfigurationError',
    'UnknownReferencePoseError',
    'EngineConfig',
    'PoseEvaluator',
    'ViolationSet',
    'load_engine_config',
    'load_reference_catalog',
    'ErrorPersistenceEngine',
    'FeedbackDispatcher',
    'FeedbackRequest',
    'PoseCorrectness',
    'BodyPart',
    'Keypoint',
    'normalize_keypoints',
    'FormCoachSession',
]
