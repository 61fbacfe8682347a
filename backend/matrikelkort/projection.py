from __future__ import annotations

import math
from numbers import Real
from typing import Any, Dict, List, Sequence

from pyproj import CRS, Transformer


class ProjectionError(ValueError):
    """Raised when coordinates cannot be transformed between the configured CRSs."""


def _is_position(value: Sequence[Any]) -> bool:
    return len(value) >= 2 and isinstance(value[0], Real) and isinstance(value[1], Real)


class Reprojector:
    """Transforms coordinates between the source (projected) and display (geographic) CRS.

    Both definitions are passed in explicitly; nothing is registered globally.
    Coordinates are always handled in x/y (easting/northing, lon/lat) order.
    """

    def __init__(self, source_crs: Any, display_crs: Any = "EPSG:4326"):
        self.source_crs = CRS.from_user_input(source_crs)
        self.display_crs = CRS.from_user_input(display_crs)
        self._forward = Transformer.from_crs(self.source_crs, self.display_crs, always_xy=True)
        self._inverse = Transformer.from_crs(self.display_crs, self.source_crs, always_xy=True)

    def to_display(self, coords: Sequence[Any]) -> List[Any]:
        """Source CRS -> display CRS, for a point or any nesting of points."""
        return self._apply(self._forward, coords)

    def to_source(self, coords: Sequence[Any]) -> List[Any]:
        """Display CRS -> source CRS, for a point or any nesting of points."""
        return self._apply(self._inverse, coords)

    def geometry_to_display(self, geometry: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'type': geometry['type'],
            'coordinates': self.to_display(geometry['coordinates']),
        }

    def _apply(self, transformer: Transformer, coords: Sequence[Any]) -> List[Any]:
        if not isinstance(coords, (list, tuple)):
            raise ProjectionError(f"Expected a coordinate sequence, got {type(coords).__name__}")
        if _is_position(coords):
            x, y = transformer.transform(coords[0], coords[1])
            if not (math.isfinite(x) and math.isfinite(y)):
                raise ProjectionError(f"Coordinate {list(coords[:2])} could not be transformed")
            # Extra ordinates (z, m) are carried through untouched
            return [x, y, *coords[2:]]
        return [self._apply(transformer, member) for member in coords]
