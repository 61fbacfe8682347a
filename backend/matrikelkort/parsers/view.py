import math
from typing import Optional, Tuple

from ..settings import DEFAULT_ZOOM, default_center

MIN_ZOOM = 0
MAX_ZOOM = 28


def parse_zoom(value: Optional[str]) -> int:
    """Parse an initial zoom level such as '14'."""
    if value is None or not value.strip():
        return DEFAULT_ZOOM
    try:
        zoom = int(value.strip())
    except ValueError:
        raise ValueError(f"Invalid zoom level '{value}'") from None
    if not (MIN_ZOOM <= zoom <= MAX_ZOOM):
        raise ValueError(f"Zoom level must be between {MIN_ZOOM} and {MAX_ZOOM}")
    return zoom


def parse_center(value: Optional[str]) -> Tuple[float, float]:
    """Parse an initial map center given as 'lon,lat'."""
    if value is None or not value.strip():
        return default_center()

    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 2:
        raise ValueError("Center must be given as 'lon,lat'")
    try:
        lon, lat = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValueError(f"Invalid center '{value}'") from None

    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ValueError(f"Invalid center '{value}'")
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise ValueError("Center is outside longitude/latitude range")
    return lon, lat
