import re
from typing import Any, Dict, List, Optional, Protocol, Tuple

import folium
from folium.raster_layers import WmsTileLayer
from branca.element import MacroElement
from jinja2 import Template

from .models import FeatureCollection, FitRequest, MapView, VectorStyle
from .utils.logging import get_logger

logger = get_logger(__name__)

_RGBA_PATTERN = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9.]+)\s*)?\)$"
)


class MapRenderer(Protocol):
    """The map component parcels are handed to once they are resolved."""

    def fit_extent(self, extent: List[float], duration_ms: int) -> None:
        ...

    def add_feature_layer(self, features: FeatureCollection, style: VectorStyle) -> None:
        ...


class PayloadRenderer:
    """Captures the handoff so it can be returned to a browser client as JSON."""

    def __init__(self):
        self.fit: Optional[FitRequest] = None
        self.layers: List[Tuple[FeatureCollection, VectorStyle]] = []

    def fit_extent(self, extent: List[float], duration_ms: int) -> None:
        self.fit = FitRequest(extent=list(extent), durationMs=duration_ms)

    def add_feature_layer(self, features: FeatureCollection, style: VectorStyle) -> None:
        self.layers.append((features, style))


def split_rgba(value: str) -> Tuple[str, float]:
    """'rgba(255,255,0,0.5)' -> ('#ffff00', 0.5), the form Leaflet path options take."""
    match = _RGBA_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Unsupported colour '{value}'")
    red, green, blue = (min(255, int(match.group(i))) for i in (1, 2, 3))
    alpha = float(match.group(4)) if match.group(4) is not None else 1.0
    return f"#{red:02x}{green:02x}{blue:02x}", max(0.0, min(1.0, alpha))


def leaflet_style(style: VectorStyle) -> Dict[str, Any]:
    stroke, stroke_opacity = split_rgba(style.strokeColor)
    fill, fill_opacity = split_rgba(style.fillColor)
    return {
        'color': stroke,
        'opacity': stroke_opacity,
        'weight': style.strokeWidth,
        'fillColor': fill,
        'fillOpacity': fill_opacity,
    }


class FlyToBounds(MacroElement):
    """Animated camera move to a bounding box once the map has loaded."""

    _template = Template("""
        {% macro script(this, kwargs) %}
            {{ this._parent.get_name() }}.flyToBounds(
                {{ this.bounds|tojson }},
                {{ this.options|tojson }}
            );
        {% endmacro %}
    """)

    def __init__(self, bounds: List[List[float]], duration_ms: int):
        super().__init__()
        self._name = "FlyToBounds"
        self.bounds = bounds
        # Leaflet takes seconds
        self.options = {'duration': duration_ms / 1000.0}


class FoliumRenderer:
    """Renders the parcel overlay as a standalone Leaflet page."""

    def __init__(
        self,
        view: MapView,
        wms_url: Optional[str] = None,
        wms_layers: Optional[str] = None,
        token: str = "",
    ):
        lon, lat = view.center
        self.map = folium.Map(location=[lat, lon], zoom_start=view.zoom, tiles="OpenStreetMap")

        if wms_url and wms_layers:
            url = f"{wms_url}?token={token}" if token else wms_url
            WmsTileLayer(
                url=url,
                layers=wms_layers,
                fmt="image/png",
                transparent=True,
                name="Dataforsyningen",
                attr="Dataforsyningen",
                overlay=True,
                control=True,
            ).add_to(self.map)

    def fit_extent(self, extent: List[float], duration_ms: int) -> None:
        minx, miny, maxx, maxy = extent
        FlyToBounds([[miny, minx], [maxy, maxx]], duration_ms).add_to(self.map)

    def add_feature_layer(self, features: FeatureCollection, style: VectorStyle) -> None:
        if not features.features:
            folium.FeatureGroup(name="Matrikler").add_to(self.map)
            return

        path_style = leaflet_style(style)
        folium.GeoJson(
            data=features.model_dump(),
            name="Matrikler",
            style_function=lambda _feature: path_style,
        ).add_to(self.map)

    def render(self) -> str:
        return self.map.get_root().render()
