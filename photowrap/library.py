"""Photo library backed by a folder of image files, read through Pillow EXIF."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import GPSTAGS, TAGS

from photowrap.config import PHOTO_EXTENSIONS, VIDEO_EXTENSIONS
from photowrap.models import AssetRef, MediaType, TimeRange
from photowrap.scanner import AssetInfo, AssetPage
from photowrap.error_handling import PhotoLibraryError, logger

EXIF_IFD = 0x8769
GPS_IFD = 0x8825
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

@dataclass(frozen=True)
class _Entry:
    asset_id: str
    path: Path
    creation_time: datetime
    media_type: MediaType

def _decode(value) -> str:
    return value.decode('utf-8').strip('\x00 ') if isinstance(value, bytes) else str(value).strip('\x00 ')

def _dms_to_decimal(dms, ref) -> float:
    degrees = float(dms[0]) + float(dms[1]) / 60 + float(dms[2]) / 3600
    return -degrees if _decode(ref).upper() in ('S', 'W') else degrees

def read_capture_time(exif) -> Optional[datetime]:
    """DateTimeOriginal from the Exif IFD, falling back to the base DateTime tag."""
    candidates = []
    exif_ifd = exif.get_ifd(EXIF_IFD)
    for tag_id, value in exif_ifd.items():
        if TAGS.get(tag_id) == "DateTimeOriginal":
            candidates.insert(0, value)
        elif TAGS.get(tag_id) == "DateTime":
            candidates.append(value)
    for tag_id, value in exif.items():
        if TAGS.get(tag_id) == "DateTime":
            candidates.append(value)

    for value in candidates:
        try:
            return datetime.strptime(_decode(value), EXIF_DATE_FORMAT)
        except ValueError:
            continue
    return None

def read_gps_location(exif) -> Optional[Dict[str, float]]:
    gps_ifd = exif.get_ifd(GPS_IFD)
    if not gps_ifd:
        return None

    gps_data = {GPSTAGS.get(tag_id, tag_id): value for tag_id, value in gps_ifd.items()}
    if 'GPSLatitude' not in gps_data or 'GPSLongitude' not in gps_data:
        return None

    return {
        'latitude': _dms_to_decimal(gps_data['GPSLatitude'], gps_data.get('GPSLatitudeRef', 'N')),
        'longitude': _dms_to_decimal(gps_data['GPSLongitude'], gps_data.get('GPSLongitudeRef', 'E')),
    }

class FolderPhotoLibrary:
    """Treat every image below ``root`` as a library asset.

    Asset ids are paths relative to ``root``. Cursors are integer offsets into
    the creation-time ordered photo list of the requested range.
    """

    def __init__(self, root: Path, recursive: bool = True):
        self.root = Path(root)
        self.recursive = recursive
        self._entries: Optional[Dict[str, _Entry]] = None

    def _media_type(self, path: Path) -> Optional[MediaType]:
        suffix = path.suffix.lower()
        if suffix in PHOTO_EXTENSIONS:
            return MediaType.PHOTO
        if suffix in VIDEO_EXTENSIONS:
            return MediaType.VIDEO
        return None

    def _capture_time(self, path: Path, media_type: MediaType) -> datetime:
        if media_type == MediaType.PHOTO:
            try:
                with Image.open(path) as image:
                    captured = read_capture_time(image.getexif())
                if captured:
                    return captured
            except (OSError, UnidentifiedImageError) as e:
                logger.debug(f"Could not read EXIF date from {path}: {e}")
        return datetime.fromtimestamp(path.stat().st_mtime)

    def _index(self) -> Dict[str, _Entry]:
        if self._entries is None:
            if not self.root.is_dir():
                raise PhotoLibraryError(f"Photo directory does not exist: {self.root}")

            pattern = '**/*' if self.recursive else '*'
            entries = {}
            for path in sorted(self.root.glob(pattern)):
                if not path.is_file():
                    continue
                media_type = self._media_type(path)
                if media_type is None:
                    continue
                asset_id = path.relative_to(self.root).as_posix()
                entries[asset_id] = _Entry(asset_id, path, self._capture_time(path, media_type), media_type)

            logger.info(f"Indexed {len(entries)} media files in {self.root}")
            self._entries = entries
        return self._entries

    def list_assets(self, time_range: TimeRange, page_size: int, cursor: Optional[str]) -> AssetPage:
        photos: List[_Entry] = sorted(
            (e for e in self._index().values()
             if e.media_type == MediaType.PHOTO and time_range.contains(e.creation_time)),
            key=lambda e: e.creation_time,
        )

        offset = int(cursor) if cursor else 0
        end = offset + page_size
        page = [AssetRef(e.asset_id, e.creation_time, e.media_type) for e in photos[offset:end]]
        has_more = end < len(photos)

        return AssetPage(assets=page, next_cursor=str(end) if has_more else None, has_more=has_more)

    def get_asset_info(self, asset_id: str) -> AssetInfo:
        entry = self._index().get(asset_id)
        if entry is None:
            raise PhotoLibraryError(f"Unknown asset: {asset_id}")

        try:
            with Image.open(entry.path) as image:
                location = read_gps_location(image.getexif())
        except (OSError, UnidentifiedImageError) as e:
            raise PhotoLibraryError(f"Could not read {entry.path}: {e}") from e

        return AssetInfo(asset_id=asset_id, creation_time=entry.creation_time, location=location)
