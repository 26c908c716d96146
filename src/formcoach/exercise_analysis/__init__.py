"""
Exercise analysis package: geometry validators, the reference pose catalog and the pose evaluator.
"""

from .base_analyzer import PoseEvaluator, ViolationSet, DEFAULT_CONFIDENCE_THRESHOLD
from .config_utils import EngineConfig, load_engine_config, load_reference_catalog
from .reference_poses import (
    AlignmentConstraint,
    AlignmentMethod,
    AngleConstraint,
    ReferenceCatalog,
    ReferencePose,
)

__all__ = [
    'PoseEvaluator',
    'ViolationSet',
    'DEFAULT_CONFIDENCE_THRESHOLD',
    'EngineConfig',
    'load_engine_config',
    'load_reference_catalog',
    'AlignmentConstraint',
    'AlignmentMethod',
    'AngleConstraint',
    'ReferenceCatalog',
    'ReferencePose',
]
