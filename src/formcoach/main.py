import argparse
import json
import logging
import sys
import traceback

from .errors import ConfigurationError
from .exercise_analysis.config_utils import load_engine_config
from .feedback.voice_feedback import SpeechChannel
from .pose_detection.recorded_source import RecordedKeypointSource
from .snapshot import write_snapshot
from .trainer import FormCoachSession

LOGGER_NAMES = ("PoseEvaluator", "ErrorPersistence", "FeedbackDispatcher", "VoiceFeedback", "FormCoach")

# Upper bound on waiting for queued feedback to be spoken after a replay
FEEDBACK_DRAIN_TIMEOUT_MS = 30000


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay recorded keypoints through the form coach")
    parser.add_argument("--recording", type=str, required=True, help="JSON Lines file of keypoint frames")
    parser.add_argument("--exercise", type=str, default=None, help="Exercise (plank, chaturanga, downward_dog)")
    parser.add_argument("--view", type=str, default=None, choices=["front", "side"], help="Camera view angle")
    parser.add_argument("--config", type=str, default=None, help="JSON engine config file")
    parser.add_argument("--persistence-ms", type=int, default=None,
                        help="Dwell time before a violation is reported (1000-5000)")
    parser.add_argument("--fps", type=float, default=30.0, help="Capture rate of the recording")
    parser.add_argument("--export", type=str, default=None, help="Write a JSON snapshot of the last frame here")
    parser.add_argument("--frame-width", type=int, default=640, help="Frame width in pixels for the export")
    parser.add_argument("--frame-height", type=int, default=480, help="Frame height in pixels for the export")
    parser.add_argument("--no-voice", action="store_true", help="Disable spoken feedback")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _describe(correctness) -> str:
    if correctness.is_correct:
        return "Form: Correct"
    parts = ", ".join(sorted(p.value for p in correctness.incorrect_parts))
    return f"Form: Incorrect ({parts}) - {correctness.feedback[0] if correctness.feedback else ''}"


def main(argv=None) -> int:
    """Main entry point for replaying a keypoint recording."""
    args = build_parser().parse_args(argv)
    if args.fps <= 0:
        print("Error: --fps must be positive")
        return 2
    if args.verbose:
        for name in LOGGER_NAMES:
            logging.getLogger(name).setLevel(logging.DEBUG)

    try:
        config = load_engine_config(args.config).with_overrides(
            exercise=args.exercise,
            view_angle=args.view,
            persistence_duration_ms=args.persistence_ms,
        )
        channel = None if args.no_voice else SpeechChannel(rate=config.speech_rate, volume=config.speech_volume)
        session = FormCoachSession(config, channel=channel)
    except (ConfigurationError, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}")
        return 2

    try:
        with RecordedKeypointSource(args.recording) as source:
            previous = None
            for index, correctness in session.run(source, frame_interval_ms=1000.0 / args.fps):
                description = _describe(correctness)
                if description != previous:
                    print(f"[frame {index}] {description}")
                    previous = description
            session.wait_for_feedback(FEEDBACK_DRAIN_TIMEOUT_MS)
        if args.export:
            write_snapshot(args.export, session.export_snapshot(args.frame_width, args.frame_height))
            print(f"Snapshot written to {args.export}")
    except (OSError, ValueError, RuntimeError) as e:
        print(f"Error replaying recording: {e}")
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}")
        traceback.print_exc()
        return 1
    finally:
        session.close()

    print(f"Replay complete. Processed {session.frame_count} frames.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
