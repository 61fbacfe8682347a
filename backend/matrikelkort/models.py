from typing import List, Optional, Dict, Any, Tuple
from pydantic import BaseModel, Field, field_validator, ConfigDict


class ParcelIdentifier(BaseModel):
    ejerlav: str
    matrikel: str
    raw: str

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> str:
        return f"{self.ejerlav}:{self.matrikel}"

class MalformedEntry(BaseModel):
    raw: str
    error: str

class ParseRequest(BaseModel):
    matr: str = Field("", max_length=4000)

class ParseResponse(BaseModel):
    valid: List[ParcelIdentifier]
    malformed: List[MalformedEntry]

class ResolvedParcel(BaseModel):
    identifier: ParcelIdentifier
    # GeoJSON MultiPolygon in the display CRS
    geometry: Dict[str, Any]

class ParcelFailure(BaseModel):
    identifier: ParcelIdentifier
    reason: str

class FeatureProperties(BaseModel):
    id: str

class Feature(BaseModel):
    type: str = "Feature"
    geometry: Dict[str, Any]
    properties: FeatureProperties

class FeatureCollection(BaseModel):
    type: str = "FeatureCollection"
    features: List[Feature]

class VectorStyle(BaseModel):
    strokeColor: str = "rgba(255,0,0,1)"
    strokeWidth: float = 1.5
    fillColor: str = "rgba(255,255,0,0.5)"

    model_config = ConfigDict(frozen=True)

    @field_validator("strokeWidth")
    @classmethod
    def validate_stroke_width(cls, value: float) -> float:
        if value < 0:
            raise ValueError("strokeWidth must be non-negative")
        return value

class FitRequest(BaseModel):
    extent: List[float]  # [minx, miny, maxx, maxy]
    durationMs: int

class MapView(BaseModel):
    zoom: int
    center: Tuple[float, float]  # (lon, lat)

class ParcelMapResponse(BaseModel):
    view: MapView
    features: FeatureCollection
    fit: Optional[FitRequest] = None
    style: VectorStyle
    malformed: List[MalformedEntry] = Field(default_factory=list)
    failures: List[ParcelFailure] = Field(default_factory=list)
    unmatched: List[ParcelIdentifier] = Field(default_factory=list)

class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    request_id: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: Optional[str] = None
