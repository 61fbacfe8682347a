import os
from typing import Tuple

from .utils.rate_limit import get_rate_limiter

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
VERSION = "1.0.0"

# Dataforsyningen credentials. Never log this value.
DATAFORSYNINGEN_TOKEN = os.getenv("DATAFORSYNINGEN_TOKEN", "")

GSEARCH_URL = os.getenv(
    "GSEARCH_URL", "https://api.dataforsyningen.dk/rest/gsearch/v1.0/matrikel"
)
GSEARCH_TIMEOUT = float(os.getenv("GSEARCH_TIMEOUT_S", "20"))
# 1 resolves identifiers strictly one after another
GSEARCH_CONCURRENCY = max(1, int(os.getenv("GSEARCH_CONCURRENCY", "1")))

# ETRS89 / UTM zone 32N, the projection gsearch returns geometry in
SOURCE_CRS = os.getenv("SOURCE_CRS", "+proj=utm +zone=32 +ellps=GRS80 +units=m +no_defs")
DISPLAY_CRS = os.getenv("DISPLAY_CRS", "EPSG:4326")

DEFAULT_ZOOM = int(os.getenv("DEFAULT_ZOOM", "10"))
DEFAULT_CENTER = os.getenv("DEFAULT_CENTER", "12.5536,55.6604")
FIT_DURATION_MS = 2500
MAX_PARCELS_PER_REQUEST = int(os.getenv("MAX_PARCELS_PER_REQUEST", "50"))

WMS_URL = os.getenv("WMS_URL", "https://api.dataforsyningen.dk/kommunikation")
WMS_LAYERS = os.getenv("WMS_LAYERS", "Kommunikation_basis,Vejnavne_stoerre,Vejnavne_mindre")

RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

rate_limiter = get_rate_limiter(
    max_requests=RATE_LIMIT_MAX_REQUESTS,
    window_seconds=RATE_LIMIT_WINDOW_SECONDS,
)


def default_center() -> Tuple[float, float]:
    lon, lat = (float(part) for part in DEFAULT_CENTER.split(",", 1))
    return lon, lat
