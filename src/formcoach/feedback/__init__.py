"""
Feedback package: temporal debouncing of violations and the spoken advisory channel.
"""

from .error_persistence import ErrorPersistenceEngine, ErrorTrack, PoseCorrectness
from .feedback_dispatcher import (
    DispatcherState,
    FeedbackDispatcher,
    FeedbackRequest,
    build_advisory_prompt,
    create_first_message,
    create_system_prompt,
    monotonic_ms,
)
from .voice_feedback import AdvisoryChannel, AdvisoryPrompt, ChannelListener, SpeechChannel

__all__ = [
    'ErrorPersistenceEngine',
    'ErrorTrack',
    'PoseCorrectness',
    'DispatcherState',
    'FeedbackDispatcher',
    'FeedbackRequest',
    'build_advisory_prompt',
    'create_first_message',
    'create_system_prompt',
    'monotonic_ms',
    'AdvisoryChannel',
    'AdvisoryPrompt',
    'ChannelListener',
    'SpeechChannel',
]
