import argparse
import logging
import os
import sys

from .exercise_analysis.config_utils import load_analysis_settings, load_exercise_templates
from .exercise_analysis.exercise_config import InvalidExerciseConfigError, config_from_template, load_exercise_config
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PhysioCoach - real-time physiotherapy exercise coach")
    parser.add_argument('--mode', type=str, choices=['camera', 'video'], default='camera', help='Run mode: camera (default) or video')
    parser.add_argument('--video', type=str, help='Path to the video file to analyze (required if mode=video)')
    parser.add_argument('--camera', type=int, default=0, help='Camera device ID')
    parser.add_argument('--config', type=str, help='Exercise configuration JSON (recommendation service output)')
    parser.add_argument(
        '--template',
        type=str,
        choices=[t["key"] for t in load_exercise_templates()],
        help='Use a built-in exercise template instead of a configuration file'
    )
    parser.add_argument('--settings', type=str, help='Analysis settings JSON overriding the packaged defaults')
    parser.add_argument('--no-voice', action='store_true', help='Disable spoken feedback')
    parser.add_argument('--log-level', type=str, default='INFO', help='Logging level (default: INFO)')
    return parser


def main(argv=None) -> int:
    """Main entry point for PhysioCoach."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.mode == 'video':
        if not args.video:
            logger.error("--video is required when mode is 'video'")
            return 2
        if not os.path.isfile(args.video):
            logger.error(f"Video file not found: {args.video}")
            return 2

    try:
        settings = load_analysis_settings(args.settings)
        config = config_from_template(args.template) if args.template else load_exercise_config(args.config)
    except (OSError, InvalidExerciseConfigError) as e:
        logger.error(f"Could not load configuration: {e}")
        return 2

    from .feedback.voice_feedback import VoiceFeedback
    from .trainer import PhysioCoachTrainer

    try:
        trainer = PhysioCoachTrainer(
            config=config,
            settings=settings,
            voice_feedback=VoiceFeedback(enabled=not args.no_voice),
        )
        if args.mode == 'video':
            trainer.run_video(args.video)
        else:
            trainer.start(camera_id=args.camera)
    except RuntimeError as e:
        logger.error(f"Error running trainer: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
