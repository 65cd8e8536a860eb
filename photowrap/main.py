"""Command line entry point.

Deck and run data go to stdout as JSON; logging goes to stderr.

Usage:
    photowrap run PHOTO_DIR [--range this-year|last-year|last-30-days] [--start DATE --end DATE]
    photowrap show RUN_ID [--include-hidden]
    photowrap runs
    photowrap hide PLACE_ID
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from dateutil.parser import ParserError, parse as parse_date

from photowrap.config import DATABASE_PATH, INCLUDE_MOST_EXPLORED_CARD, LOCATION_BATCH_SIZE
from photowrap.database import Database
from photowrap.geocoding import NominatimGeocoder
from photowrap.library import FolderPhotoLibrary
from photowrap.models import CardModel, PhotoAccess, TimeRange, WrappedRun, payload_to_dict
from photowrap.pipeline import run_wrapped
from photowrap.time_ranges import format_date, get_time_range_options
from photowrap.error_handling import NoAssetsFoundError, PhotoWrapError, logger, redirect_console

GENERIC_FAILURE_MESSAGE = "Failed to process photos. Please try again."

RANGE_CHOICES = {
    "this-year": "This year",
    "last-year": "Last year",
    "last-30-days": "Last 30 days",
}

def _emit(obj: Any):
    sys.stdout.write(json.dumps(obj, indent=2, default=str) + "\n")
    sys.stdout.flush()

def run_to_dict(run: WrappedRun) -> Dict[str, Any]:
    return {
        "id": run.id,
        "time_range_start": run.time_range_start.isoformat(),
        "time_range_end": run.time_range_end.isoformat(),
        "total_assets": run.total_assets,
        "location_assets": run.location_assets,
        "location_coverage_pct": run.location_coverage_pct,
        "access_privileges": run.access_privileges.value,
        "algorithm_version": run.algorithm_version,
        "created_at": run.created_at.isoformat() if run.created_at else None,
    }

def card_to_dict(card: CardModel) -> Dict[str, Any]:
    return {
        "id": card.id,
        "type": card.type.value,
        "render_order": card.render_order,
        "payload": payload_to_dict(card.payload),
    }

def parse_cli_date(value: str) -> datetime:
    """Parse a date argument into naive local time, the form library timestamps use."""
    parsed = parse_date(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed

def resolve_time_range(args: argparse.Namespace, now: Optional[datetime] = None) -> TimeRange:
    if args.start or args.end:
        if not (args.start and args.end):
            raise PhotoWrapError("--start and --end must be given together")
        try:
            start, end = parse_cli_date(args.start), parse_cli_date(args.end)
        except (ParserError, OverflowError) as e:
            raise PhotoWrapError(f"Invalid date: {e}") from e
        if end <= start:
            raise PhotoWrapError("--end must be after --start")
        return TimeRange(start=start, end=end, label=f"{args.start} to {args.end}")

    label = RANGE_CHOICES[args.range]
    return next(option for option in get_time_range_options(now) if option.label == label)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photowrap",
        description="Recap where and when you took your photos.",
    )
    parser.add_argument("--db", default=DATABASE_PATH, help="Path to the sqlite database")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_p = subparsers.add_parser("run", help="Build a wrapped deck for a photo folder")
    run_p.add_argument("photo_dir", type=Path, help="Directory containing photos")
    run_p.add_argument("--range", choices=sorted(RANGE_CHOICES), default="this-year")
    run_p.add_argument("--start", help="Start of a custom range (inclusive)")
    run_p.add_argument("--end", help="End of a custom range (exclusive)")
    run_p.add_argument("--access", choices=[a.value for a in PhotoAccess], default=PhotoAccess.ALL.value)
    run_p.add_argument("--batch-size", type=int, default=LOCATION_BATCH_SIZE)
    run_p.add_argument("--no-geocode", action="store_true", help="Skip reverse geocoding of places")
    run_p.add_argument("--most-explored", action="store_true", default=INCLUDE_MOST_EXPLORED_CARD,
                       help="Add the most explored month card")

    show_p = subparsers.add_parser("show", help="Print a stored run")
    show_p.add_argument("run_id")
    show_p.add_argument("--include-hidden", action="store_true")

    subparsers.add_parser("runs", help="List stored runs")

    hide_p = subparsers.add_parser("hide", help="Hide a place from its run")
    hide_p.add_argument("place_id")

    return parser

def _handle_run(args: argparse.Namespace, db: Database):
    time_range = args.time_range
    logger.info(f"{time_range.label}: {format_date(time_range.start)} to {format_date(time_range.end)}")

    def on_progress(stage: str, detail: str, processed: int, total: int):
        logger.info(f"[{stage}] {detail}")

    outcome = run_wrapped(
        FolderPhotoLibrary(args.photo_dir),
        db,
        time_range,
        geocoder=None if args.no_geocode else NominatimGeocoder(),
        access_privileges=PhotoAccess(args.access),
        batch_size=args.batch_size,
        include_most_explored=args.most_explored,
        on_progress=on_progress,
    )
    _emit({
        "run": run_to_dict(outcome.run),
        "places": [p.to_dict() for p in outcome.places],
        "cards": [card_to_dict(c) for c in outcome.cards],
    })

def _handle_show(args: argparse.Namespace, db: Database):
    run = db.get_wrapped_run(args.run_id)
    if run is None:
        raise PhotoWrapError(f"No run with id {args.run_id}")
    _emit({
        "run": run_to_dict(run),
        "places": [p.to_dict() for p in db.get_place_clusters(run.id, include_hidden=args.include_hidden)],
        "cards": [card_to_dict(c) for c in db.get_card_models(run.id)],
    })

def _handle_runs(args: argparse.Namespace, db: Database):
    _emit([run_to_dict(run) for run in db.list_wrapped_runs()])

def _handle_hide(args: argparse.Namespace, db: Database):
    db.hide_place(args.place_id)
    _emit({"hidden": args.place_id})

HANDLERS = {
    "run": _handle_run,
    "show": _handle_show,
    "runs": _handle_runs,
    "hide": _handle_hide,
}

def main(argv=None) -> int:
    redirect_console(sys.stderr)
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "run":
        try:
            args.time_range = resolve_time_range(args)
        except PhotoWrapError as e:
            parser.error(str(e))
    db = Database(args.db)

    try:
        HANDLERS[args.command](args, db)
    except NoAssetsFoundError as e:
        sys.stderr.write(f"{e}\n")
        return 1
    except PhotoWrapError as e:
        if args.command == "run":
            sys.stderr.write(f"{GENERIC_FAILURE_MESSAGE}\n")
        else:
            sys.stderr.write(f"Error: {e}\n")
        return 1
    except Exception:
        logger.exception("Unexpected failure")
        sys.stderr.write(f"{GENERIC_FAILURE_MESSAGE}\n")
        return 1
    finally:
        db.close()

    return 0

if __name__ == "__main__":
    sys.exit(main())
