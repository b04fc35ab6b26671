"""Command line for inspecting and feeding a local mastery database.

    plugg-mastery attempt --account a1 --skill algebra --correct --time-ms 4200
    plugg-mastery review --account a1 --skill vocab-1 --incorrect
    plugg-mastery weak --account a1
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from loguru import logger

from .config import MasteryConfig
from .engine import MasteryEngine
from .errors import InvalidInputError, PersistenceError, PolicyConfigError
from .models import Attempt
from .store import SQLiteStore


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


def _add_account(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--account", required=True, help="Account id")


def _add_skill(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--skill", required=True, help="Skill id")


def _add_outcome(parser: argparse.ArgumentParser) -> None:
    outcome = parser.add_mutually_exclusive_group(required=True)
    outcome.add_argument("--correct", dest="correct", action="store_true")
    outcome.add_argument("--incorrect", dest="correct", action="store_false")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mastery tracking and review scheduling")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--policy-file", type=Path, default=None, help="YAML scheduling policy table")
    parser.add_argument("--log-level", default=None, help="Log level (DEBUG, INFO, ...)")
    commands = parser.add_subparsers(dest="command", required=True)

    attempt = commands.add_parser("attempt", help="Record a practice attempt")
    _add_account(attempt)
    _add_skill(attempt)
    _add_outcome(attempt)
    attempt.add_argument("--time-ms", type=float, default=10_000.0, help="Response time in milliseconds")
    attempt.add_argument("--subject", default=None, help="Also schedule a review if the subject uses spaced repetition")

    level = commands.add_parser("level", help="Show mastery level and percentage")
    _add_account(level)
    _add_skill(level)

    review = commands.add_parser("review", help="Record a spaced repetition review outcome")
    _add_account(review)
    _add_skill(review)
    _add_outcome(review)

    policy = commands.add_parser("policy", help="Show the scheduling policy for a skill")
    _add_skill(policy)
    policy.add_argument("--subject", required=True, help="Subject id")

    due = commands.add_parser("due", help="List reviews that are due")
    _add_account(due)

    weak = commands.add_parser("weak", help="List the weakest skills")
    _add_account(weak)
    weak.add_argument("--limit", type=int, default=3)

    summary = commands.add_parser("summary", help="Accuracy, streak and review statistics")
    _add_account(summary)
    return parser.parse_args(argv)


def _build_engine(args: argparse.Namespace) -> MasteryEngine:
    config = MasteryConfig.from_env()
    if args.db is not None:
        config = replace(config, db_path=args.db)
    if args.policy_file is not None:
        config = replace(config, policy_file=args.policy_file)
    if args.log_level is not None:
        config = replace(config, log_level=args.log_level.upper())
    configure_logging(config.log_level)

    store = SQLiteStore(config.db_path)
    store.init_db()
    return MasteryEngine(store, config)


def _run(engine: MasteryEngine, args: argparse.Namespace) -> None:
    if args.command == "attempt":
        attempt = Attempt(
            account_id=args.account,
            skill_id=args.skill,
            is_correct=args.correct,
            time_spent_ms=args.time_ms,
        )
        if args.subject:
            outcome = engine.record_review(attempt, args.subject)
            state, review = outcome.state, outcome.review
        else:
            state, review = engine.process_attempt(attempt), None
        print(
            f"{state.skill_id}: p={state.probability:.3f} attempts={state.attempts} "
            f"correct={state.correct_attempts} mastered={'yes' if state.is_mastered else 'no'}"
        )
        if review is not None:
            print(f"next review in {review.interval_hours:.1f}h (repetitions={review.repetitions})")
    elif args.command == "level":
        level = engine.get_mastery_level(args.skill, args.account)
        percentage = engine.get_mastery_percentage(args.skill, args.account)
        print(f"{args.skill}: {level} ({percentage}%)")
    elif args.command == "review":
        item = engine.schedule_spaced_repetition(args.skill, args.account, args.correct)
        print(
            f"{item.skill_id}: interval={item.interval_hours:.1f}h repetitions={item.repetitions} "
            f"ease={item.ease_factor:.2f} next={item.next_review_at.isoformat(timespec='minutes')}"
        )
    elif args.command == "policy":
        print(engine.policy.policy_for(args.skill, args.subject))
    elif args.command == "due":
        items = engine.scheduler.due_items(args.account)
        if not items:
            print("Nothing due")
        for item in items:
            print(f"{item.skill_id}\tdue {item.next_review_at.isoformat(timespec='minutes')}")
    elif args.command == "weak":
        weak_skills = engine.weak_skills(args.account, limit=args.limit)
        if not weak_skills:
            print("No weak skills")
        for weak in weak_skills:
            print(
                f"{weak.skill_id}\tscore={weak.weakness_score:.2f} ({weak.level}) "
                f"recent errors={weak.recent_errors}"
            )
    elif args.command == "summary":
        summary = engine.accuracy(args.account)
        stats = engine.scheduler.stats(args.account)
        print(
            f"accuracy {summary.accuracy:.0%} over {summary.total_attempts} attempts, "
            f"{summary.skills_mastered}/{summary.skills_tracked} skills mastered"
        )
        print(f"study streak: {engine.study_streak(args.account)} days")
        print(f"reviews: {stats.due_items} due, {stats.due_soon_items} due soon, {stats.total_items} total")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        engine = _build_engine(args)
        _run(engine, args)
    except (InvalidInputError, PolicyConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except PersistenceError as exc:
        print(f"storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
