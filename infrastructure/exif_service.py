"""Image geotag extraction from EXIF GPS data via Pillow.

HEIC/HEIF images are readable when the optional `pillow-heif` package is
installed. Reading never raises; callers get None when no usable geotag exists.
"""

from __future__ import annotations

from typing import Any

from PIL import Image
from loguru import logger

from core.models import LatLng
from core.services.interfaces import GeotagReader

try:  # pragma: no cover - optional dependency
    from pillow_heif import register_heif_opener  # type: ignore

    register_heif_opener()
    PIL_HEIF_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    PIL_HEIF_AVAILABLE = False

# EXIF pointer to the GPS IFD and the tags used inside it
GPS_IFD = 0x8825
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4


def _ratio(value: Any) -> float | None:
    """Convert an EXIF rational (IFDRational or (num, den) tuple) to float."""
    if isinstance(value, tuple) and len(value) == 2:
        numerator, denominator = value
        if not denominator:
            return None
        return numerator / denominator
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if result != result:  # NaN from a zero-denominator IFDRational
        return None
    return result


def _ref_text(ref: Any) -> str:
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    return str(ref or "").strip("\x00 ").upper()


def gps_to_degrees(value: Any, ref: Any) -> float | None:
    """Convert EXIF (degrees, minutes, seconds) plus N/S/E/W to signed degrees."""
    if not value or not ref:
        return None
    try:
        degrees = _ratio(value[0])
        minutes = _ratio(value[1])
        seconds = _ratio(value[2])
    except (IndexError, TypeError):
        return None
    if degrees is None or minutes is None or seconds is None:
        return None
    coord = degrees + minutes / 60.0 + seconds / 3600.0
    if _ref_text(ref) in ("S", "W"):
        coord *= -1.0
    return coord


def geotag_from_gps_ifd(gps: dict[int, Any]) -> LatLng | None:
    """Build a position from a GPS IFD mapping, or None if incomplete."""
    lat = gps_to_degrees(gps.get(GPS_LATITUDE), gps.get(GPS_LATITUDE_REF))
    lng = gps_to_degrees(gps.get(GPS_LONGITUDE), gps.get(GPS_LONGITUDE_REF))
    if lat is None or lng is None:
        return None
    return LatLng(lat, lng)


class ExifGeotagReader(GeotagReader):
    """Read the GPS position embedded in an image's EXIF data."""

    def read_geotag(self, path: str) -> LatLng | None:
        try:
            with Image.open(path) as im:
                exif = im.getexif()
                if not exif:
                    return None
                gps = exif.get_ifd(GPS_IFD)
        except (OSError, ValueError, TypeError, SyntaxError) as ex:
            logger.warning("EXIF load failed for {}: {}", path, ex)
            return None
        if not gps:
            return None
        return geotag_from_gps_ifd(dict(gps))
