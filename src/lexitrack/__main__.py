"""Command line entry point for lexitrack."""
import argparse
import json
import logging
import sys
from typing import List, Optional

from lexitrack.clock import SystemClock
from lexitrack.config import ensure_directories, settings
from lexitrack.errors import LexitrackError
from lexitrack.logging_config import setup_logging
from lexitrack.models.progress_models import DifficultyRating, WordProgress
from lexitrack.monitoring import start_monitoring
from lexitrack.services.progress_store import create_store
from lexitrack.services.progress_updater import ProgressUpdater
from lexitrack.services.review_scheduler import time_until_review
from lexitrack.services.study_selector import StudySelector

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lexitrack", description="Spaced-repetition vocabulary progress")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    review = commands.add_parser("review", help="Record a review of a word")
    review.add_argument("word_id")
    review.add_argument("difficulty", choices=[rating.value for rating in DifficultyRating])
    review.add_argument("--word", default=None, help="Surface form shown to the learner")

    commands.add_parser("due", help="List words due for review")

    queue = commands.add_parser("queue", help="Show the recommended study queue")
    queue.add_argument("--capacity", type=int, default=settings.study.queue_capacity)

    commands.add_parser("progress", help="Show overall progress percentage")

    weak = commands.add_parser("weak", help="List the weakest words")
    weak.add_argument("--limit", type=int, default=settings.study.weak_words_limit)

    commands.add_parser("stats", help="Show progress statistics")

    reset = commands.add_parser("reset", help="Erase all progress")
    reset.add_argument("--yes", action="store_true", help="Confirm the reset")

    export = commands.add_parser("export", help="Write progress to a JSON file")
    export.add_argument("path")

    import_ = commands.add_parser("import", help="Replace progress with a JSON file")
    import_.add_argument("path")

    return parser


def format_word(progress: WordProgress, now) -> str:
    countdown = time_until_review(progress.next_review, now) if progress.next_review else None
    due = countdown.description if countdown else "-"
    return (
        f"{progress.word_id:<20} {progress.word:<20} {progress.status.value:<10} "
        f"score={progress.recognition_score:<3} confidence={progress.confidence_level} next: {due}"
    )


def run(args: argparse.Namespace) -> int:
    clock = SystemClock()
    store = create_store(settings.storage)
    updater = ProgressUpdater(store, clock)
    selector = StudySelector(store)
    now = clock.now()

    if args.command == "review":
        progress = updater.record_review(args.word_id, args.word, args.difficulty, now)
        print(format_word(progress, now))
    elif args.command == "due":
        for progress in selector.words_due_for_review(now):
            print(format_word(progress, now))
    elif args.command == "queue":
        for progress in selector.recommended_study_queue(now, args.capacity):
            print(format_word(progress, now))
    elif args.command == "progress":
        print(f"{selector.overall_progress()}%")
    elif args.command == "weak":
        for progress in selector.weak_words(args.limit):
            print(f"{format_word(progress, now)} incorrect={progress.incorrect_count}/{progress.review_count}")
    elif args.command == "stats":
        report = selector.progress_stats(now)
        print(f"Words: {report.total_words} ({report.stats.total_words_studied} studied)")
        print(f"Reviews: {report.stats.total_reviews}")
        print(f"Streak: {report.stats.current_streak} day(s)")
        print(f"Due now: {report.due_for_review}")
        print(f"Progress: {report.overall_progress}%")
        for status, count in report.status_counts.items():
            print(f"  {status}: {count}")
    elif args.command == "reset":
        if not args.yes:
            print("Refusing to reset without --yes", file=sys.stderr)
            return 1
        updater.reset()
        print("Progress reset")
    elif args.command == "export":
        with open(args.path, "w", encoding="utf-8") as f:
            json.dump(store.export_data(), f, indent=2, ensure_ascii=False)
        print(f"Exported to {args.path}")
    elif args.command == "import":
        with open(args.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        store.import_data(data)
        print(f"Imported {len(data.get('words', {}))} words from {args.path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    ensure_directories()
    setup_logging(level=args.log_level)

    if settings.monitoring.metrics_port:
        start_monitoring(settings.monitoring.metrics_port)
        logger.info("Metrics exporter listening on port %d", settings.monitoring.metrics_port)

    try:
        return run(args)
    except LexitrackError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
