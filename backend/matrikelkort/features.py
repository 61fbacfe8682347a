from typing import Sequence

from .models import Feature, FeatureCollection, FeatureProperties, ResolvedParcel, VectorStyle

# Red outline over a half transparent yellow fill
PARCEL_STYLE = VectorStyle(
    strokeColor="rgba(255,0,0,1)",
    strokeWidth=1.5,
    fillColor="rgba(255,255,0,0.5)",
)


def build_feature(parcel: ResolvedParcel) -> Feature:
    return Feature(
        geometry=parcel.geometry,
        properties=FeatureProperties(id=parcel.identifier.key),
    )


def build_feature_collection(parcels: Sequence[ResolvedParcel]) -> FeatureCollection:
    """Wrap resolved parcels as GeoJSON features, keeping their order."""
    return FeatureCollection(features=[build_feature(parcel) for parcel in parcels])
