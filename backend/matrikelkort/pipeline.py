from dataclasses import dataclass, field
from typing import List, Optional

from .extent import EmptyExtentError, build_extent
from .features import PARCEL_STYLE, build_feature_collection
from .gsearch import GSearchClient, resolve_parcels
from .models import FeatureCollection, MalformedEntry, ParcelFailure, ParcelIdentifier, VectorStyle
from .parsers import parse_matrikel_list
from .projection import Reprojector
from .rendering import MapRenderer
from .settings import FIT_DURATION_MS
from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ParcelMap:
    features: FeatureCollection
    extent: Optional[List[float]] = None
    style: VectorStyle = PARCEL_STYLE
    malformed: List[MalformedEntry] = field(default_factory=list)
    failures: List[ParcelFailure] = field(default_factory=list)
    unmatched: List[ParcelIdentifier] = field(default_factory=list)


async def build_parcel_map(
    raw_matr: Optional[str],
    client: GSearchClient,
    reprojector: Reprojector,
    concurrency: int = 1,
) -> ParcelMap:
    """Parse an identifier list and resolve it into features plus a fit extent.

    Individual identifiers that are malformed, fail remotely or match nothing
    are reported on the result and left out of the overlay.
    """
    identifiers, malformed = parse_matrikel_list(raw_matr)
    for entry in malformed:
        logger.warning(
            "Skipping malformed parcel identifier",
            extra={'raw': entry.raw, 'error': entry.error}
        )

    resolution = await resolve_parcels(identifiers, client, reprojector, concurrency=concurrency)

    try:
        extent: Optional[List[float]] = build_extent(resolution.parcels)
    except EmptyExtentError:
        logger.info("No parcels resolved; leaving the map view unchanged")
        extent = None

    return ParcelMap(
        features=build_feature_collection(resolution.parcels),
        extent=extent,
        malformed=malformed,
        failures=resolution.failures,
        unmatched=resolution.unmatched,
    )


def render_parcel_map(parcel_map: ParcelMap, renderer: MapRenderer) -> None:
    """Hand a resolved parcel map to the map component."""
    if parcel_map.extent is not None:
        renderer.fit_extent(parcel_map.extent, FIT_DURATION_MS)
    renderer.add_feature_layer(parcel_map.features, parcel_map.style)
