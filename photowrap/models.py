from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum

from photowrap.config import ALGORITHM_VERSION, UNKNOWN_PLACE_LABEL

class MediaType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"

class PhotoAccess(str, Enum):
    ALL = "all"
    LIMITED = "limited"
    NONE = "none"

class LabelConfidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class PlaceSource(str, Enum):
    MOMENT = "moment"
    GRIDCLUSTER = "gridcluster"

class CardType(str, Enum):
    TITLE = "title"
    TRUST = "trust"
    TOP_PLACE_1 = "topPlace1"
    TOP_PLACES_2_3 = "topPlaces23"
    PEAK_DAY = "peakDay"
    PEAK_MONTH = "peakMonth"
    MOST_EXPLORED_MONTH = "mostExploredMonth"
    TIME_OF_DAY = "timeOfDay"
    DISTINCT_PLACES = "distinctPlaces"
    COLLAGE = "collage"

@dataclass(frozen=True)
class TimeRange:
    """Half-open time window [start, end)."""
    start: datetime
    end: datetime
    label: str = ""

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

@dataclass(frozen=True)
class AssetRef:
    """A photo library asset reduced to what the pipeline needs."""
    asset_id: str
    creation_time: datetime
    media_type: MediaType = MediaType.PHOTO

@dataclass(frozen=True)
class GeoPoint:
    """An asset with a resolved, finite GPS coordinate."""
    asset_id: str
    latitude: float
    longitude: float
    creation_time: datetime

@dataclass
class LocationResult:
    """Located points plus counters for every asset that was discarded."""
    points: List[GeoPoint] = field(default_factory=list)
    missing: int = 0
    invalid: int = 0
    failed: int = 0

    @property
    def discarded(self) -> int:
        return self.missing + self.invalid + self.failed

@dataclass
class PlaceCluster:
    """A group of photos that fall into the same spatial grid cell."""
    id: str
    run_id: str
    centroid_lat: Optional[float] = None
    centroid_lon: Optional[float] = None
    photo_count: int = 0
    distinct_days_count: int = 0
    label: str = UNKNOWN_PLACE_LABEL
    label_confidence: LabelConfidence = LabelConfidence.LOW
    representative_asset_ids: List[str] = field(default_factory=list)
    is_hidden: bool = False
    source: PlaceSource = PlaceSource.GRIDCLUSTER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "run_id": self.run_id,
            "centroid_lat": self.centroid_lat,
            "centroid_lon": self.centroid_lon,
            "photo_count": self.photo_count,
            "distinct_days_count": self.distinct_days_count,
            "label": self.label,
            "label_confidence": self.label_confidence.value,
            "representative_asset_ids": list(self.representative_asset_ids),
            "is_hidden": self.is_hidden,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaceCluster":
        return cls(
            id=data["id"],
            run_id=data["run_id"],
            centroid_lat=data.get("centroid_lat"),
            centroid_lon=data.get("centroid_lon"),
            photo_count=data["photo_count"],
            distinct_days_count=data["distinct_days_count"],
            label=data["label"],
            label_confidence=LabelConfidence(data["label_confidence"]),
            representative_asset_ids=list(data["representative_asset_ids"]),
            is_hidden=bool(data["is_hidden"]),
            source=PlaceSource(data["source"]),
        )

@dataclass
class WrappedRun:
    """One execution of the pipeline over a fixed time range."""
    id: str
    time_range_start: datetime
    time_range_end: datetime
    total_assets: int = 0
    location_assets: int = 0
    location_coverage_pct: float = 0.0
    access_privileges: PhotoAccess = PhotoAccess.ALL
    filters_hash: str = ""
    algorithm_version: str = ALGORITHM_VERSION
    created_at: Optional[datetime] = None

# Card payloads: one record per card type

@dataclass(frozen=True)
class TitlePayload:
    year: int

@dataclass(frozen=True)
class TrustPayload:
    total_photos: int
    coverage_pct: int
    asset_ids: List[str]

@dataclass(frozen=True)
class TopPlacePayload:
    place: PlaceCluster

@dataclass(frozen=True)
class TopPlacesPayload:
    place2: PlaceCluster
    place3: PlaceCluster

@dataclass(frozen=True)
class PeakDayPayload:
    date: date
    count: int
    asset_ids: List[str]

@dataclass(frozen=True)
class PeakMonthPayload:
    month: str
    count: int
    asset_ids: List[str]

@dataclass(frozen=True)
class MostExploredMonthPayload:
    month: str
    distinct_places: int
    asset_ids: List[str]

@dataclass(frozen=True)
class TimeOfDayPayload:
    window: str
    hour: int
    asset_ids: List[str]

@dataclass(frozen=True)
class DistinctPlacesPayload:
    count: int
    asset_ids: List[str]

@dataclass(frozen=True)
class CollagePayload:
    asset_ids: List[str]

CardPayload = Union[
    TitlePayload,
    TrustPayload,
    TopPlacePayload,
    TopPlacesPayload,
    PeakDayPayload,
    PeakMonthPayload,
    MostExploredMonthPayload,
    TimeOfDayPayload,
    DistinctPlacesPayload,
    CollagePayload,
]

PAYLOAD_TYPES = {
    CardType.TITLE: TitlePayload,
    CardType.TRUST: TrustPayload,
    CardType.TOP_PLACE_1: TopPlacePayload,
    CardType.TOP_PLACES_2_3: TopPlacesPayload,
    CardType.PEAK_DAY: PeakDayPayload,
    CardType.PEAK_MONTH: PeakMonthPayload,
    CardType.MOST_EXPLORED_MONTH: MostExploredMonthPayload,
    CardType.TIME_OF_DAY: TimeOfDayPayload,
    CardType.DISTINCT_PLACES: DistinctPlacesPayload,
    CardType.COLLAGE: CollagePayload,
}

@dataclass(frozen=True)
class CardModel:
    """One typed, ordered unit of the output deck."""
    id: str
    run_id: str
    type: CardType
    payload: CardPayload
    render_order: int

    def __post_init__(self):
        expected = PAYLOAD_TYPES[self.type]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.type.value} card expects {expected.__name__}, got {type(self.payload).__name__}"
            )

def payload_to_dict(payload: CardPayload) -> Dict[str, Any]:
    """Flatten a card payload into a JSON-serializable map."""
    data = {}
    for f in fields(payload):
        value = getattr(payload, f.name)
        if isinstance(value, PlaceCluster):
            value = value.to_dict()
        elif isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, list):
            value = list(value)
        data[f.name] = value
    return data

def payload_from_dict(card_type: CardType, data: Dict[str, Any]) -> CardPayload:
    """Rebuild the payload record for ``card_type`` from its serialized map."""
    payload_cls = PAYLOAD_TYPES[card_type]
    kwargs = {}
    for f in fields(payload_cls):
        value = data[f.name]
        if f.type is PlaceCluster:
            value = PlaceCluster.from_dict(value)
        elif f.type is date:
            value = date.fromisoformat(value)
        kwargs[f.name] = value
    return payload_cls(**kwargs)
