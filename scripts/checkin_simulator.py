#!/usr/bin/env python3
"""
Check-in Simulator for MindTrack.

Posts mood check-ins and questionnaire submissions to a running MindTrack API
as a second session of the same user, so other sessions receive push events.

Usage:
    python scripts/checkin_simulator.py --token alice --once --mood 6 --note "Slept well"
    python scripts/checkin_simulator.py --token alice --assessment phq --answers 1,1,2,1,0,1,1,1,0
    python scripts/checkin_simulator.py --token alice --scenario random --count 5 --interval 3
"""

import sys
import asyncio
import random
import argparse
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Allow running from a checkout without installing the package
SRC = Path(__file__).resolve().parent.parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from assessment_engine.errors import NetworkError, ValidationError  # noqa: E402
from assessment_engine.models import MOOD_MAX, MOOD_MIN, AssessmentType  # noqa: E402
from assessment_engine.questionnaires import (  # noqa: E402
    get_questionnaire,
    mood_label,
    questionnaire_for_slug,
)
from session_sync.remote import HttpRemoteAPI, RemoteAPI  # noqa: E402


# Load environment variables
load_dotenv()

SAMPLE_NOTES = [
    "Good day overall",
    "Feeling okay",
    "Tired after work",
    "Went for a walk",
    None,
]


def parse_answers(text: str, assessment_type: AssessmentType) -> List[int]:
    """Parse a comma separated answer list such as ``1,0,2``."""
    questionnaire = get_questionnaire(assessment_type)
    try:
        answers = [int(part) for part in text.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"answers must be integers, got {text!r}")
    if len(answers) != questionnaire.item_count:
        raise argparse.ArgumentTypeError(
            f"{questionnaire.name} needs {questionnaire.item_count} answers, got {len(answers)}"
        )
    return answers


def random_mood() -> int:
    return random.randint(MOOD_MIN, MOOD_MAX)


async def send_mood(remote: RemoteAPI, mood_value: int, note: Optional[str] = None) -> None:
    submission = await remote.submit_mood(mood_value, note)
    print(
        f"[MOOD] {mood_value} ({mood_label(mood_value)}) recorded as {submission.entry.id} - "
        f"streak {submission.streak.current_streak} (longest {submission.streak.longest_streak})"
    )


async def send_assessment(
    remote: RemoteAPI, assessment_type: AssessmentType, answers: List[int]
) -> None:
    result = await remote.submit_assessment(assessment_type, answers)
    questionnaire = get_questionnaire(assessment_type)
    print(
        f"[ASSESSMENT] {questionnaire.name}: {result.total_score}/{questionnaire.max_score} "
        f"({result.severity_label})"
    )


async def run_random_scenario(remote: RemoteAPI, interval: float, count: Optional[int]) -> int:
    """Send random mood check-ins; returns how many were sent."""
    sent = 0
    while count is None or sent < count:
        await send_mood(remote, random_mood(), random.choice(SAMPLE_NOTES))
        sent += 1
        if count is None or sent < count:
            await asyncio.sleep(interval)
    return sent


async def run(args: argparse.Namespace, remote: RemoteAPI) -> None:
    if args.assessment:
        questionnaire = questionnaire_for_slug(args.assessment)
        answers = parse_answers(args.answers, questionnaire.type)
        await send_assessment(remote, questionnaire.type, answers)
    elif args.once:
        await send_mood(remote, args.mood, args.note)
    else:
        await run_random_scenario(remote, args.interval, args.count)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check-in Simulator for MindTrack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single mood check-in
  python scripts/checkin_simulator.py --token alice --once --mood 6

  # PHQ-9 submission
  python scripts/checkin_simulator.py --token alice --assessment phq --answers 1,1,2,1,0,1,1,1,0

  # Random check-ins, limited count
  python scripts/checkin_simulator.py --token alice --scenario random --count 5 --interval 5
        """,
    )

    parser.add_argument(
        "--api-url",
        help="API root (default: MINDTRACK_API_URL or http://localhost:3000/api)",
    )
    parser.add_argument(
        "--token",
        required=True,
        help="Bearer credential of the user to check in as",
    )
    parser.add_argument(
        "--scenario",
        choices=["random"],
        default="random",
        help="Scenario to run (default: random)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Send a single mood check-in and exit",
    )
    parser.add_argument(
        "--mood",
        type=int,
        choices=range(MOOD_MIN, MOOD_MAX + 1),
        help="Mood value for --once (1-7)",
    )
    parser.add_argument(
        "--note",
        help="Optional note for --once",
    )
    parser.add_argument(
        "--assessment",
        choices=["phq", "gad"],
        help="Submit a questionnaire instead of a mood",
    )
    parser.add_argument(
        "--answers",
        help="Comma separated answers for --assessment",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=10.0,
        help="Interval between check-ins in seconds (default: 10)",
    )
    parser.add_argument(
        "--count",
        type=int,
        help="Number of check-ins to send (default: unlimited)",
    )
    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Validate arguments
    if args.once and args.mood is None:
        parser.error("--once requires --mood")
    if args.assessment and not args.answers:
        parser.error("--assessment requires --answers")
    if args.assessment:
        try:
            parse_answers(args.answers, questionnaire_for_slug(args.assessment).type)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))

    print("=" * 60)
    print("MindTrack Check-in Simulator")
    print("=" * 60)

    async def _main():
        async with HttpRemoteAPI(base_url=args.api_url, token_provider=lambda: args.token) as remote:
            await run(args, remote)

    try:
        asyncio.run(_main())
        print("\n[INFO] Simulation complete")
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted by user")
    except (NetworkError, ValidationError) as e:
        print(f"\n[ERROR] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
