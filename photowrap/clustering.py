import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Set, Tuple

from photowrap.config import (
    CELL_SIZE_METERS,
    METERS_PER_DEGREE,
    MIN_PHOTOS_PER_PLACE,
    POLAR_COS_THRESHOLD,
    REPRESENTATIVES_PER_PLACE,
    TOP_PLACES,
    UNKNOWN_PLACE_LABEL,
)
from photowrap.models import GeoPoint, LabelConfidence, PlaceCluster, PlaceSource
from photowrap.error_handling import ClusteringError, logger

CellKey = Tuple[int, int]

def local_date(moment: datetime) -> date:
    """Calendar date of ``moment`` in the local timezone.

    Naive datetimes are already local; aware ones are converted.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date()

def local_time(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone()
    return moment

def grid_cell_key(latitude: float, longitude: float) -> CellKey:
    lat_step = CELL_SIZE_METERS / METERS_PER_DEGREE
    cos_lat = math.cos(latitude * math.pi / 180)
    # Near the poles the longitude step blows up; reuse the latitude step
    lon_step = CELL_SIZE_METERS / (METERS_PER_DEGREE * cos_lat) if cos_lat >= POLAR_COS_THRESHOLD else lat_step

    return math.floor(latitude / lat_step), math.floor(longitude / lon_step)

def select_representatives(asset_ids: List[str], k: int) -> List[str]:
    """Pick ``k`` ids spread evenly across ``asset_ids``, keeping their order."""
    n = len(asset_ids)
    if n <= k:
        return list(asset_ids)
    if k <= 0:
        return []
    if k == 1:
        return [asset_ids[0]]

    return [asset_ids[(i * (n - 1)) // (k - 1)] for i in range(k)]

@dataclass
class GridCell:
    """Running statistics for one grid cell."""
    asset_ids: List[str] = field(default_factory=list)
    days: Set[date] = field(default_factory=set)
    centroid_lat: float = 0.0
    centroid_lon: float = 0.0

    def add(self, point: GeoPoint):
        self.asset_ids.append(point.asset_id)
        self.days.add(local_date(point.creation_time))

        # Incremental mean, in insertion order
        count = len(self.asset_ids)
        self.centroid_lat = (self.centroid_lat * (count - 1) + point.latitude) / count
        self.centroid_lon = (self.centroid_lon * (count - 1) + point.longitude) / count

    @property
    def photo_count(self) -> int:
        return len(self.asset_ids)

def accumulate_cells(points: List[GeoPoint]) -> Dict[CellKey, GridCell]:
    cells: Dict[CellKey, GridCell] = {}

    for point in points:
        if not (math.isfinite(point.latitude) and math.isfinite(point.longitude)):
            continue

        key = grid_cell_key(point.latitude, point.longitude)
        cell = cells.get(key)
        if cell is None:
            cell = cells[key] = GridCell()
        cell.add(point)

    return cells

def grid_cluster(points: List[GeoPoint], run_id: str) -> List[PlaceCluster]:
    cells = accumulate_cells(points)

    clusters = []
    cluster_index = 0
    for cell in cells.values():
        if cell.photo_count < MIN_PHOTOS_PER_PLACE:
            continue

        clusters.append(PlaceCluster(
            id=f"{run_id}_cluster_{cluster_index}",
            run_id=run_id,
            centroid_lat=cell.centroid_lat,
            centroid_lon=cell.centroid_lon,
            photo_count=cell.photo_count,
            distinct_days_count=len(cell.days),
            label=UNKNOWN_PLACE_LABEL,
            label_confidence=LabelConfidence.LOW,
            representative_asset_ids=select_representatives(cell.asset_ids, REPRESENTATIVES_PER_PLACE),
            is_hidden=False,
            source=PlaceSource.GRIDCLUSTER,
        ))
        cluster_index += 1

    # Stable sort: equal counts keep the order their cells were first seen
    clusters.sort(key=lambda c: c.photo_count, reverse=True)
    top = clusters[:TOP_PLACES]

    logger.info(f"Grid clustering completed: {len(points)} points -> {len(cells)} cells -> {len(top)} places")
    return top

def compute_best_places(points: List[GeoPoint], run_id: str) -> List[PlaceCluster]:
    if not run_id:
        raise ClusteringError("A run id is required to create place clusters")

    if len(points) < MIN_PHOTOS_PER_PLACE:
        logger.warning(f"Only {len(points)} located photos, not enough to form a place")
        return []

    return grid_cluster(points, run_id)
