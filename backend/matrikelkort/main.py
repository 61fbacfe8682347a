import uuid
from datetime import datetime, timezone
from typing import Dict, Optional
from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, HTMLResponse
import uvicorn

from .models import (
    ParseRequest, ParseResponse, ParcelMapResponse, MapView,
    ErrorResponse, HealthResponse,
)
from .gsearch import GSearchClient
from .parsers import parse_matrikel_list, parse_center, parse_zoom
from .pipeline import ParcelMap, build_parcel_map, render_parcel_map
from .projection import Reprojector
from .rendering import FoliumRenderer, PayloadRenderer
from .utils.logging import setup_logging, get_logger
from .settings import (
    LOG_LEVEL,
    FRONTEND_ORIGIN,
    VERSION,
    DATAFORSYNINGEN_TOKEN,
    GSEARCH_URL,
    GSEARCH_TIMEOUT,
    GSEARCH_CONCURRENCY,
    SOURCE_CRS,
    DISPLAY_CRS,
    MAX_PARCELS_PER_REQUEST,
    WMS_URL,
    WMS_LAYERS,
    rate_limiter,
)

setup_logging(LOG_LEVEL)
logger = get_logger(__name__)

if not DATAFORSYNINGEN_TOKEN:
    logger.warning("DATAFORSYNINGEN_TOKEN is not set; gsearch requests will be rejected")

reprojector = Reprojector(SOURCE_CRS, DISPLAY_CRS)

app = FastAPI(
    title="Matrikelkort API",
    description="Danish cadastral parcel overlays",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

origins = [origin.strip() for origin in FRONTEND_ORIGIN.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log requests with timing and add request ID."""
    request_id = str(uuid.uuid4())[:8]
    start_time = datetime.now(timezone.utc)
    request.state.request_id = request_id

    logger.info(
        "Request started",
        extra={
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'client_ip': request.client.host if request.client else None
        }
    )

    try:
        response = await call_next(request)
    except Exception as e:
        duration = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        logger.error(
            "Request failed",
            extra={
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'duration_ms': round(duration, 2),
                'error': str(e)
            },
            exc_info=True
        )
        raise

    duration = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
    logger.info(
        "Request completed",
        extra={
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'status_code': response.status_code,
            'duration_ms': round(duration, 2)
        }
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), request_id=request_id).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if LOG_LEVEL == "DEBUG" else None,
            request_id=request_id
        ).model_dump()
    )


def _check_rate_limit(req: Request) -> Dict[str, str]:
    """Reject the request when over the limit, else return rate limit headers."""
    client_ip = req.client.host if req.client else "unknown"
    if not rate_limiter.is_allowed(client_ip):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
    stats = rate_limiter.get_stats(client_ip)
    return {
        "X-RateLimit-Limit": str(stats['max_requests']),
        "X-RateLimit-Remaining": str(stats['remaining']),
    }


def _parse_view(zoom: Optional[str], center: Optional[str]) -> MapView:
    try:
        return MapView(zoom=parse_zoom(zoom), center=parse_center(center))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


async def _resolve_matr(matr: Optional[str]) -> ParcelMap:
    identifiers, _ = parse_matrikel_list(matr)
    if len(identifiers) > MAX_PARCELS_PER_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"At most {MAX_PARCELS_PER_REQUEST} parcels can be requested at once"
        )

    async with GSearchClient(GSEARCH_URL, DATAFORSYNINGEN_TOKEN, timeout=GSEARCH_TIMEOUT) as client:
        return await build_parcel_map(matr, client, reprojector, concurrency=GSEARCH_CONCURRENCY)


@app.get("/healthz", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION
    )


@app.post("/api/parse", response_model=ParseResponse)
async def parse_identifiers(request: ParseRequest):
    """Validate an identifier list without querying gsearch."""
    valid, malformed = parse_matrikel_list(request.matr)
    logger.info(f"Parsed {len(valid)} valid, {len(malformed)} malformed identifiers")
    return ParseResponse(valid=valid, malformed=malformed)


@app.get("/api/parcels", response_model=ParcelMapResponse)
async def parcels(
    req: Request,
    response: Response,
    matr: Optional[str] = Query(None, max_length=4000),
    zoom: Optional[str] = None,
    center: Optional[str] = None,
):
    """Resolve parcels into a feature layer and the extent to fit the map to."""
    response.headers.update(_check_rate_limit(req))
    view = _parse_view(zoom, center)
    parcel_map = await _resolve_matr(matr)

    renderer = PayloadRenderer()
    render_parcel_map(parcel_map, renderer)
    features, style = renderer.layers[0]

    return ParcelMapResponse(
        view=view,
        features=features,
        fit=renderer.fit,
        style=style,
        malformed=parcel_map.malformed,
        failures=parcel_map.failures,
        unmatched=parcel_map.unmatched,
    )


@app.get("/map", response_class=HTMLResponse)
async def parcel_map_page(
    req: Request,
    matr: Optional[str] = Query(None, max_length=4000),
    zoom: Optional[str] = None,
    center: Optional[str] = None,
):
    """Standalone map page with the parcels drawn over the base map."""
    headers = _check_rate_limit(req)
    view = _parse_view(zoom, center)
    parcel_map = await _resolve_matr(matr)

    renderer = FoliumRenderer(
        view,
        wms_url=WMS_URL,
        wms_layers=WMS_LAYERS,
        token=DATAFORSYNINGEN_TOKEN,
    )
    render_parcel_map(parcel_map, renderer)
    return HTMLResponse(content=renderer.render(), headers=headers)


if __name__ == "__main__":
    uvicorn.run("matrikelkort.main:app", host="0.0.0.0", port=8000)
