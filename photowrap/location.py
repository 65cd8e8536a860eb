import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Mapping, Optional

from photowrap.config import LOCATION_BATCH_SIZE, MAX_LOCATION_BATCH_SIZE, MIN_LOCATION_BATCH_SIZE
from photowrap.models import GeoPoint, LocationResult
from photowrap.scanner import AssetInfo, PhotoLibrary
from photowrap.error_handling import logger

ProgressCallback = Callable[[int, int], None]

# Outcomes of a single lookup
_OK = "ok"
_MISSING = "missing"
_INVALID = "invalid"
_FAILED = "failed"

def parse_coordinate(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None when it is not one.

    Some libraries hand coordinates back as strings, so those are parsed too.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    elif isinstance(value, (int, float)):
        value = float(value)
    else:
        return None

    return value if math.isfinite(value) else None

def point_from_info(info: AssetInfo) -> Optional[GeoPoint]:
    location = info.location
    if not isinstance(location, Mapping) or not location:
        return None

    latitude = parse_coordinate(location.get("latitude"))
    longitude = parse_coordinate(location.get("longitude"))
    if latitude is None or longitude is None:
        return None

    return GeoPoint(
        asset_id=info.asset_id,
        latitude=latitude,
        longitude=longitude,
        creation_time=info.creation_time,
    )

class LocationExtractor:
    """Resolve GPS coordinates for assets in sequential, concurrently-fetched batches."""

    def __init__(self, library: PhotoLibrary, batch_size: int = LOCATION_BATCH_SIZE):
        if not MIN_LOCATION_BATCH_SIZE <= batch_size <= MAX_LOCATION_BATCH_SIZE:
            raise ValueError(
                f"batch_size must be between {MIN_LOCATION_BATCH_SIZE} and {MAX_LOCATION_BATCH_SIZE}, got {batch_size}"
            )
        self.library = library
        self.batch_size = batch_size

    def _lookup(self, asset_id: str):
        try:
            info = self.library.get_asset_info(asset_id)
        except Exception as e:
            logger.debug(f"Asset info lookup failed for {asset_id}: {e}")
            return _FAILED, None

        if not info.location:
            return _MISSING, None

        point = point_from_info(info)
        if point is None:
            logger.debug(f"Discarding unusable coordinates for {asset_id}: {info.location}")
            return _INVALID, None

        return _OK, point

    def extract(self, asset_ids: List[str], on_progress: Optional[ProgressCallback] = None) -> LocationResult:
        result = LocationResult()
        total = len(asset_ids)
        processed = 0

        for start in range(0, total, self.batch_size):
            batch = asset_ids[start:start + self.batch_size]

            # The whole batch resolves before the next one starts
            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                outcomes = list(executor.map(self._lookup, batch))

            for status, point in outcomes:
                if status == _OK:
                    result.points.append(point)
                elif status == _MISSING:
                    result.missing += 1
                elif status == _INVALID:
                    result.invalid += 1
                else:
                    result.failed += 1

            processed += len(batch)
            if on_progress is not None:
                on_progress(processed, total)

        coverage = round(len(result.points) / total * 100) if total else 0
        logger.info(f"Location extraction: {len(result.points)} of {total} photos located ({coverage}%)")
        logger.info(
            f"Breakdown: {result.missing} without location, {result.invalid} invalid coordinates, "
            f"{result.failed} errors"
        )
        return result
