"""Wrapped pipeline: scan, locate, cluster, label, aggregate, assemble, persist."""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from photowrap.app_insights import AppInsights, app_insights
from photowrap.clustering import compute_best_places
from photowrap.config import INCLUDE_MOST_EXPLORED_CARD, LOCATION_BATCH_SIZE, PAGE_SIZE
from photowrap.database import Database
from photowrap.deck import build_card_deck
from photowrap.geocoding import Geocoder, enrich_labels
from photowrap.location import LocationExtractor
from photowrap.models import (
    CardModel,
    LocationResult,
    PhotoAccess,
    PlaceCluster,
    TimeRange,
    WrappedRun,
)
from photowrap.scanner import PhotoLibrary, scan_photos
from photowrap.temporal import compute_most_explored_month, compute_time_stats
from photowrap.error_handling import NoAssetsFoundError, handle_error, logger

# (stage, detail, processed, total)
ProgressCallback = Callable[[str, str, int, int], None]

@dataclass(frozen=True)
class PipelineOutcome:
    run: WrappedRun
    places: List[PlaceCluster]
    cards: List[CardModel]
    location: LocationResult

def new_run_id(now: datetime) -> str:
    return f"run_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:8]}"

def run_wrapped(
    library: PhotoLibrary,
    db: Database,
    time_range: TimeRange,
    *,
    geocoder: Optional[Geocoder] = None,
    access_privileges: PhotoAccess = PhotoAccess.ALL,
    page_size: int = PAGE_SIZE,
    batch_size: int = LOCATION_BATCH_SIZE,
    include_most_explored: bool = INCLUDE_MOST_EXPLORED_CARD,
    on_progress: Optional[ProgressCallback] = None,
    telemetry: AppInsights = app_insights,
    run_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PipelineOutcome:
    """Run every stage in order and persist the run, its places and its cards.

    Raises NoAssetsFoundError, before anything is written, when the time
    range holds no photos. Any other failure is logged and propagated; the
    caller restarts the whole run.
    """

    def emit(stage: str, detail: str, processed: int = 0, total: int = 0):
        if on_progress is not None:
            on_progress(stage, detail, processed, total)

    started = time.monotonic()
    now = now or datetime.now()

    try:
        db.open()

        # Stage 1: scan
        emit("scan", "Scanning your photos...")
        scan = scan_photos(library, time_range, page_size)
        if scan.total_count == 0:
            raise NoAssetsFoundError()
        emit("scan", f"{scan.total_count:,} photos found", scan.total_count, scan.total_count)
        telemetry.track_assets_scanned(scan.total_count)

        run = WrappedRun(
            id=run_id or new_run_id(now),
            time_range_start=time_range.start,
            time_range_end=time_range.end,
            total_assets=scan.total_count,
            access_privileges=access_privileges,
            created_at=now,
        )

        # Stage 2: locate and cluster
        emit("places", "Finding your favorite places...", 0, scan.total_count)

        def on_batch(processed: int, total: int):
            emit("places", f"{processed}/{total}", processed, total)

        extractor = LocationExtractor(library, batch_size=batch_size)
        location = extractor.extract([a.asset_id for a in scan.assets], on_progress=on_batch)
        places = compute_best_places(location.points, run.id)
        telemetry.track_assets_located(len(location.points))
        telemetry.track_places_created(len(places))

        run.location_assets = len(location.points)
        run.location_coverage_pct = run.location_assets / run.total_assets * 100
        db.save_wrapped_run(run)
        for place in places:
            db.save_place_cluster(place)

        # Stage 3: label the top places
        emit("geocode", "Naming your places...")
        if geocoder is not None:
            enrich_labels(places, geocoder, db)
        else:
            logger.info("No geocoder configured, keeping placeholder labels")

        # Stage 4: time statistics and the deck
        time_stats = compute_time_stats(scan.assets)
        most_explored = compute_most_explored_month(location.points) if include_most_explored else None

        cards = build_card_deck(
            run.id,
            time_range.end,
            run.total_assets,
            run.location_coverage_pct,
            places,
            time_stats,
            most_explored,
        )
        for card in cards:
            db.save_card_model(card)

        emit("complete", "Your wrapped is ready")
    except NoAssetsFoundError:
        logger.warning(f"No photos found between {time_range.start} and {time_range.end}")
        raise
    except Exception as e:
        telemetry.track_exception(e)
        handle_error(e, "wrapped pipeline")

    elapsed = time.monotonic() - started
    telemetry.track_processing_time(elapsed)
    telemetry.track_event("wrapped_run_completed", {
        "run_id": run.id,
        "total_assets": run.total_assets,
        "location_assets": run.location_assets,
        "places": len(places),
        "cards": len(cards),
    })
    logger.info(
        f"Run {run.id} completed in {elapsed:.1f}s: {run.total_assets} photos, "
        f"{run.location_assets} located, {len(places)} places, {len(cards)} cards"
    )

    return PipelineOutcome(run=run, places=places, cards=cards, location=location)
