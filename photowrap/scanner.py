"""Asset scanning: page through the photo library for a time window."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from photowrap.config import PAGE_SIZE
from photowrap.models import AssetRef, MediaType, TimeRange
from photowrap.error_handling import logger

@dataclass
class AssetPage:
    assets: List[AssetRef] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False

@dataclass
class AssetInfo:
    """Per-asset metadata. ``location`` values may be numbers or numeric strings."""
    asset_id: str
    creation_time: datetime
    location: Optional[Dict[str, Any]] = None

class PhotoLibrary(Protocol):
    def list_assets(self, time_range: TimeRange, page_size: int, cursor: Optional[str]) -> AssetPage:
        ...

    def get_asset_info(self, asset_id: str) -> AssetInfo:
        ...

@dataclass
class ScanResult:
    assets: List[AssetRef]
    total_count: int

def scan_photos(library: PhotoLibrary, time_range: TimeRange, page_size: int = PAGE_SIZE) -> ScanResult:
    """Collect every photo in ``time_range``, oldest first.

    A window without photos yields ``total_count == 0``; deciding what to do
    about that is up to the caller.
    """
    assets: List[AssetRef] = []
    cursor = None
    pages = 0

    while True:
        page = library.list_assets(time_range, page_size, cursor)
        pages += 1

        for asset in page.assets:
            if asset.media_type != MediaType.PHOTO:
                continue
            assets.append(AssetRef(
                asset_id=asset.asset_id,
                creation_time=asset.creation_time,
                media_type=MediaType.PHOTO,
            ))

        if not page.has_more:
            break
        cursor = page.next_cursor

    assets.sort(key=lambda a: a.creation_time)
    logger.info(f"Scanned {len(assets)} photos in {pages} page(s)")

    return ScanResult(assets=assets, total_count=len(assets))
