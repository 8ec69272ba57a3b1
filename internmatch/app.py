import argparse
import asyncio
import json
from pathlib import Path

from . import __version__
from .config import load_config
from .env import load_env
from .errors import MatchingError, ValidationError
from .logger import get_logger
from .schema import parse_date_range, validate_candidate_profile
from .service import RecommendationService
from .storage import JsonProfileStore, SqlEventStore

DEFAULT_STORE = "data/store.json"
DEFAULT_DB = "data/events.db"


def _read_json(path_str: str):
    input_path = Path(path_str)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_service(args: argparse.Namespace) -> RecommendationService:
    config = load_config()
    profiles = JsonProfileStore(Path(args.store))
    events = SqlEventStore(Path(args.db)) if getattr(args, "db", None) else None
    return RecommendationService(profiles, events=events, config=config)


def cmd_recommend(args: argparse.Namespace) -> None:
    service = build_service(args)
    if args.profile:
        target = _read_json(args.profile)
    elif args.candidate_id:
        target = args.candidate_id
    else:
        raise SystemExit("Either --candidate-id or --profile is required")
    recs = asyncio.run(service.generate_recommendations(target, args.limit, args.refresh))
    _print_json(recs.to_dict())


def cmd_similar(args: argparse.Namespace) -> None:
    service = build_service(args)
    results = asyncio.run(service.get_similar_candidates(args.internship_id, args.limit))
    _print_json({"internship_id": args.internship_id, "count": len(results), "results": [r.to_dict() for r in results]})


def cmd_batch(args: argparse.Namespace) -> None:
    service = build_service(args)
    ids = [i.strip() for i in args.ids.split(",") if i.strip()]
    report = asyncio.run(service.batch_recommendations(ids, args.limit))
    _print_json(report.to_dict())


def cmd_report(args: argparse.Namespace) -> None:
    service = build_service(args)
    date_range = parse_date_range(args.date_from, args.date_to)
    _print_json(asyncio.run(service.performance_report(date_range)))


def cmd_record_event(args: argparse.Namespace) -> None:
    service = build_service(args)
    event = asyncio.run(service.record_recommendation_event(_read_json(args.input)))
    print(f"Recorded {event.outcome} event: {event.candidate_id} -> {event.internship_id}")


def cmd_validate(args: argparse.Namespace) -> None:
    errors = validate_candidate_profile(_read_json(args.input))
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def main(argv=None):
    # Load .env if present (INTERNMATCH_* settings)
    load_env()
    parser = argparse.ArgumentParser(prog="internmatch", description="Internship recommendation engine")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    rec = subparsers.add_parser("recommend", help="Rank internships for a stored candidate or a profile JSON")
    rec.add_argument("--candidate-id", help="Stored candidate id")
    rec.add_argument("--profile", help="Path to an ad-hoc candidate profile JSON")
    rec.add_argument("--limit", type=int, default=5, help="Number of results (1-20, default 5)")
    rec.add_argument("--refresh", action="store_true", help="Bypass cached results")
    rec.add_argument("--store", default=DEFAULT_STORE, help=f"Path to profile store (default: {DEFAULT_STORE})")
    rec.set_defaults(func=cmd_recommend)

    sim = subparsers.add_parser("similar", help="Rank stored candidates for an internship")
    sim.add_argument("--internship-id", required=True, help="Internship id")
    sim.add_argument("--limit", type=int, default=10, help="Number of results (1-20, default 10)")
    sim.add_argument("--store", default=DEFAULT_STORE, help=f"Path to profile store (default: {DEFAULT_STORE})")
    sim.set_defaults(func=cmd_similar)

    bat = subparsers.add_parser("batch", help="Generate recommendations for many candidates")
    bat.add_argument("--ids", required=True, help="Comma-separated candidate ids (max 50)")
    bat.add_argument("--limit", type=int, default=5, help="Number of results per candidate")
    bat.add_argument("--store", default=DEFAULT_STORE, help=f"Path to profile store (default: {DEFAULT_STORE})")
    bat.set_defaults(func=cmd_batch)

    rep = subparsers.add_parser("report", help="Aggregate recommendation outcomes over a date range")
    rep.add_argument("--from", dest="date_from", help="Range start (ISO 8601)")
    rep.add_argument("--to", dest="date_to", help="Range end (ISO 8601)")
    rep.add_argument("--db", default=DEFAULT_DB, help=f"Path to events database (default: {DEFAULT_DB})")
    rep.add_argument("--store", default=DEFAULT_STORE, help=f"Path to profile store (default: {DEFAULT_STORE})")
    rep.set_defaults(func=cmd_report)

    evt = subparsers.add_parser("record-event", help="Record a recommendation outcome event from JSON")
    evt.add_argument("--input", required=True, help="Path to event JSON")
    evt.add_argument("--db", default=DEFAULT_DB, help=f"Path to events database (default: {DEFAULT_DB})")
    evt.add_argument("--store", default=DEFAULT_STORE, help=f"Path to profile store (default: {DEFAULT_STORE})")
    evt.set_defaults(func=cmd_record_event)

    val = subparsers.add_parser("validate", help="Validate a candidate profile JSON")
    val.add_argument("--input", required=True, help="Path to profile JSON")
    val.set_defaults(func=cmd_validate)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        try:
            args.func(args)
        except ValidationError as e:
            get_logger().warning("Invalid input", errors=e.errors)
            raise SystemExit(f"Invalid input: {e}")
        except MatchingError as e:
            raise SystemExit(str(e))
        return

    parser.print_help()


if __name__ == "__main__":
    main()
