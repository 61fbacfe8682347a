import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from .models import ParcelFailure, ParcelIdentifier, ResolvedParcel
from .projection import ProjectionError, Reprojector
from .utils.logging import get_logger

logger = get_logger(__name__)


class RemoteQueryError(Exception):
    """Raised when gsearch cannot be reached or answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParcelDataError(Exception):
    """Raised when a gsearch response cannot be turned into a parcel geometry."""


def _coerce_multipolygon(geometry: Any) -> Dict[str, Any]:
    if not isinstance(geometry, dict):
        raise ParcelDataError("Match has no 'geometri' object")

    coordinates = geometry.get('coordinates')
    if not isinstance(coordinates, list) or not coordinates:
        raise ParcelDataError("Match geometry has no coordinates")

    geometry_type = geometry.get('type', 'MultiPolygon')
    if geometry_type == 'Polygon':
        coordinates = [coordinates]
    elif geometry_type != 'MultiPolygon':
        raise ParcelDataError(f"Unsupported geometry type '{geometry_type}'")

    # polygon -> ring -> position, each level must be a non-empty array
    level = coordinates
    for _ in range(3):
        if not isinstance(level, list) or not level:
            raise ParcelDataError("Match geometry is not a polygon structure")
        level = level[0]
    if not isinstance(level, list) or len(level) < 2:
        raise ParcelDataError("Match geometry is not a polygon structure")

    return {'type': 'MultiPolygon', 'coordinates': coordinates}


def extract_geometry(payload: Any) -> Optional[Dict[str, Any]]:
    """Pull the first match's multipolygon out of a gsearch response.

    Returns None when the search matched nothing. Only the first match is
    used; gsearch ranks matches and no disambiguation is attempted.
    """
    if not isinstance(payload, list):
        raise ParcelDataError(f"Expected a JSON array, got {type(payload).__name__}")

    if not payload:
        return None

    match = payload[0]
    if not isinstance(match, dict):
        raise ParcelDataError("Match record is not an object")

    return _coerce_multipolygon(match.get('geometri'))


class GSearchClient:
    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 20,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout

    async def __aenter__(self):
        self.session = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.session.aclose()

    # Timeouts are not retried; a slow identifier costs one timeout, not three
    @retry(
        retry=(
            retry_if_exception_type(httpx.TransportError)
            & retry_if_not_exception_type(httpx.TimeoutException)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _get(self, params: Dict[str, str]) -> httpx.Response:
        return await self.session.get(self.url, params=params, headers={'token': self.token})

    async def search(self, identifier: ParcelIdentifier) -> Any:
        """Run one gsearch query and return the decoded JSON body."""
        escaped_ejerlav = identifier.ejerlav.replace("'", "''")
        params = {
            'q': identifier.matrikel,
            'filter': f"ejerlavskode='{escaped_ejerlav}'",
        }

        logger.info(
            "Querying gsearch",
            extra={'ejerlav': identifier.ejerlav, 'matrikel': identifier.matrikel}
        )

        try:
            response = await self._get(params)
        except httpx.TimeoutException as exc:
            raise RemoteQueryError(f"gsearch timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise RemoteQueryError(f"gsearch request failed: {exc}") from exc

        if not response.is_success:
            raise RemoteQueryError(
                f"gsearch returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ParcelDataError(f"gsearch returned invalid JSON: {exc}") from exc

    async def resolve(
        self,
        identifier: ParcelIdentifier,
        reprojector: Reprojector,
    ) -> Optional[ResolvedParcel]:
        """Resolve one identifier to its parcel geometry in the display CRS.

        Returns None when gsearch has no match. Raises RemoteQueryError or
        ParcelDataError; deciding whether those are fatal is up to the caller.
        """
        payload = await self.search(identifier)
        geometry = extract_geometry(payload)
        if len(payload) > 1:
            logger.debug(
                "Discarding additional matches",
                extra={'parcel': identifier.key, 'discarded': len(payload) - 1}
            )
        if geometry is None:
            return None

        try:
            display_geometry = reprojector.geometry_to_display(geometry)
        except ProjectionError as exc:
            raise ParcelDataError(str(exc)) from exc

        return ResolvedParcel(identifier=identifier, geometry=display_geometry)


@dataclass
class ResolutionResult:
    parcels: List[ResolvedParcel] = field(default_factory=list)
    failures: List[ParcelFailure] = field(default_factory=list)
    unmatched: List[ParcelIdentifier] = field(default_factory=list)


Outcome = Union[ResolvedParcel, ParcelFailure, None]


async def _resolve_one(
    client: GSearchClient,
    identifier: ParcelIdentifier,
    reprojector: Reprojector,
) -> Outcome:
    try:
        return await client.resolve(identifier, reprojector)
    except RemoteQueryError as exc:
        logger.warning(
            "Parcel lookup failed",
            extra={'parcel': identifier.key, 'error': str(exc), 'status_code': exc.status_code}
        )
        return ParcelFailure(identifier=identifier, reason=str(exc))
    except ParcelDataError as exc:
        logger.warning(
            "Parcel data unusable",
            extra={'parcel': identifier.key, 'error': str(exc)}
        )
        return ParcelFailure(identifier=identifier, reason=str(exc))


async def resolve_parcels(
    identifiers: Sequence[ParcelIdentifier],
    client: GSearchClient,
    reprojector: Reprojector,
    concurrency: int = 1,
) -> ResolutionResult:
    """Resolve identifiers, keeping results in input order.

    With concurrency 1 each query completes before the next starts. Higher
    values gather queries behind a semaphore; results are still collected
    by input position.
    """
    if concurrency <= 1:
        outcomes: List[Outcome] = []
        for identifier in identifiers:
            outcomes.append(await _resolve_one(client, identifier, reprojector))
    else:
        semaphore = asyncio.Semaphore(concurrency)

        async def bounded(identifier: ParcelIdentifier) -> Outcome:
            async with semaphore:
                return await _resolve_one(client, identifier, reprojector)

        # gather returns results in argument order regardless of completion order
        outcomes = list(await asyncio.gather(*(bounded(i) for i in identifiers)))

    result = ResolutionResult()
    for identifier, outcome in zip(identifiers, outcomes):
        if isinstance(outcome, ResolvedParcel):
            result.parcels.append(outcome)
        elif isinstance(outcome, ParcelFailure):
            result.failures.append(outcome)
        else:
            logger.info("No parcel matched", extra={'parcel': identifier.key})
            result.unmatched.append(identifier)

    logger.info(
        f"Resolved {len(result.parcels)} of {len(identifiers)} parcels",
        extra={'failures': len(result.failures), 'unmatched': len(result.unmatched)}
    )
    return result
