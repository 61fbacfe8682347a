from typing import Any, Dict, Iterable, List, Sequence

from shapely.geometry import MultiPoint

from .models import ResolvedParcel


class EmptyExtentError(ValueError):
    """Raised when an extent is requested but no coordinates were collected."""


def outer_ring(geometry: Dict[str, Any]) -> List[List[float]]:
    """Exterior ring of the first polygon of a MultiPolygon geometry."""
    return geometry['coordinates'][0][0]


class ExtentAccumulator:
    """Collects (x, y) positions in arrival order; duplicates are kept."""

    def __init__(self):
        self.coordinates: List[Sequence[float]] = []

    def __len__(self) -> int:
        return len(self.coordinates)

    def extend(self, coords: Iterable[Sequence[float]]) -> None:
        self.coordinates.extend(coords)

    def bounds(self) -> List[float]:
        """Return [minx, miny, maxx, maxy] over everything collected."""
        if not self.coordinates:
            raise EmptyExtentError("No coordinates collected; extent is undefined")
        points = MultiPoint([(c[0], c[1]) for c in self.coordinates])
        return list(points.bounds)


def build_extent(parcels: Sequence[ResolvedParcel]) -> List[float]:
    """Bounding rectangle of the outer ring of each parcel's first polygon."""
    accumulator = ExtentAccumulator()
    for parcel in parcels:
        accumulator.extend(outer_ring(parcel.geometry))
    return accumulator.bounds()
