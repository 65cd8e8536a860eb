"""Temporal aggregation: peak day, peak month, time of day, most explored month.

Buckets are plain dicts, so they iterate in the order each key was first
seen. A later bucket only takes the lead with a strictly greater count, which
means the earliest-seen bucket wins any tie.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Hashable, List, Optional, Set, Tuple, TypeVar

from photowrap.clustering import grid_cell_key, local_date, local_time
from photowrap.models import AssetRef, GeoPoint
from photowrap.time_ranges import format_month, time_of_day_label

K = TypeVar("K", bound=Hashable)

@dataclass
class Bucket:
    count: int = 0
    asset_ids: List[str] = field(default_factory=list)

@dataclass(frozen=True)
class PeakDay:
    date: date
    count: int
    asset_ids: List[str]

@dataclass(frozen=True)
class PeakMonth:
    month: str
    count: int
    asset_ids: List[str]

@dataclass(frozen=True)
class TimeOfDay:
    window: str
    hour: int
    asset_ids: List[str]

@dataclass(frozen=True)
class MostExploredMonth:
    month: str
    distinct_places: int
    asset_ids: List[str]

@dataclass
class TimeStats:
    peak_day: Optional[PeakDay] = None
    peak_month: Optional[PeakMonth] = None
    time_of_day: Optional[TimeOfDay] = None
    distinct_days: int = 0
    all_asset_ids: List[str] = field(default_factory=list)

def _leader(buckets: Dict[K, Bucket]) -> Optional[Tuple[K, Bucket]]:
    best = None
    for key, bucket in buckets.items():
        if best is None or bucket.count > best[1].count:
            best = (key, bucket)
    return best

def _add(buckets: Dict[K, Bucket], key: K, asset_id: str):
    bucket = buckets.get(key)
    if bucket is None:
        bucket = buckets[key] = Bucket()
    bucket.count += 1
    bucket.asset_ids.append(asset_id)

def compute_time_stats(assets: List[AssetRef]) -> TimeStats:
    days: Dict[date, Bucket] = {}
    months: Dict[Tuple[int, int], Bucket] = {}
    hours: Dict[int, Bucket] = {}
    all_asset_ids = []

    for asset in assets:
        moment = local_time(asset.creation_time)
        all_asset_ids.append(asset.asset_id)

        _add(days, moment.date(), asset.asset_id)
        _add(months, (moment.year, moment.month), asset.asset_id)
        _add(hours, moment.hour, asset.asset_id)

    stats = TimeStats(distinct_days=len(days), all_asset_ids=all_asset_ids)

    peak = _leader(days)
    if peak:
        day, bucket = peak
        stats.peak_day = PeakDay(date=day, count=bucket.count, asset_ids=bucket.asset_ids)

    peak = _leader(months)
    if peak:
        (year, month), bucket = peak
        stats.peak_month = PeakMonth(month=format_month(year, month), count=bucket.count, asset_ids=bucket.asset_ids)

    peak = _leader(hours)
    if peak:
        hour, bucket = peak
        stats.time_of_day = TimeOfDay(window=time_of_day_label(hour), hour=hour, asset_ids=bucket.asset_ids)

    return stats

def compute_most_explored_month(points: List[GeoPoint]) -> Optional[MostExploredMonth]:
    """Month with the most distinct grid cells among located photos."""
    if not points:
        return None

    cells: Dict[Tuple[int, int], Set[Tuple[int, int]]] = {}
    asset_ids: Dict[Tuple[int, int], List[str]] = {}

    for point in points:
        day = local_date(point.creation_time)
        key = (day.year, day.month)
        cells.setdefault(key, set()).add(grid_cell_key(point.latitude, point.longitude))
        asset_ids.setdefault(key, []).append(point.asset_id)

    best = None
    for key, visited in cells.items():
        if best is None or len(visited) > len(cells[best]):
            best = key

    year, month = best
    return MostExploredMonth(
        month=format_month(year, month),
        distinct_places=len(cells[best]),
        asset_ids=asset_ids[best],
    )
