"""HTTP client for OSRM table requests used to fill distance gaps."""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

import httpx

from ...config import settings

# OSRM table URLs grow with every coordinate; chunk pairs stay under 2x this many.
DEFAULT_MAX_COORDINATES_PER_REQUEST = 80

METERS_PER_MILE = 1609.344

logger = logging.getLogger(__name__)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float = 60.0,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        max_coordinates_per_request: int = DEFAULT_MAX_COORDINATES_PER_REQUEST,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profile = profile or settings.osrm_profile
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.max_coordinates_per_request = max_coordinates_per_request
        self.timeout = timeout
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0), transport=self._transport)

    def _table_single_request(
        self,
        coordinates: Sequence[tuple[float, float]],
        sources: Sequence[int] | None = None,
        destinations: Sequence[int] | None = None,
    ) -> dict:
        """One OSRM table request; coordinates are (lat, lon)."""
        if len(coordinates) < 1:
            raise ValueError("At least one coordinate is required for OSRM table.")

        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        if sources is None:
            sources = list(range(len(coordinates)))
        if destinations is None:
            destinations = list(range(len(coordinates)))
        params = {
            "annotations": "duration,distance",
            "sources": ";".join(str(i) for i in sources),
            "destinations": ";".join(str(i) for i in destinations),
        }
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}"

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if "durations" not in data or "distances" not in data:
                        raise ValueError("OSRM response missing durations/distances.")
                    return data
                except httpx.HTTPStatusError as e:
                    if e.response.status_code == 414:
                        raise ValueError(
                            f"OSRM request URL too large ({len(coordinates)} coordinates). "
                            f"Try reducing max_coordinates_per_request (current: {self.max_coordinates_per_request})"
                        ) from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM request timed out after {self.max_retries} attempts: {e}")
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM request timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.ConnectError, httpx.NetworkError, OSError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Failed to connect to OSRM service at {self.base_url}: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()

    def table(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Distance (metres) and duration (seconds) matrices for ``coordinates``.

        Large coordinate lists are split into chunks and requested pairwise. Cells of
        a chunk that fails stay ``None``.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM table.")
        if len(coordinates) <= self.max_coordinates_per_request:
            return self._table_single_request(coordinates)

        n = len(coordinates)
        size = self.max_coordinates_per_request
        ranges = [(start, min(start + size, n)) for start in range(0, n, size)]
        durations: list[list[Optional[float]]] = [[None] * n for _ in range(n)]
        distances: list[list[Optional[float]]] = [[None] * n for _ in range(n)]
        failed = 0

        for src_start, src_end in ranges:
            for dst_start, dst_end in ranges:
                chunk = list(coordinates[src_start:src_end]) + list(coordinates[dst_start:dst_end])
                src_count = src_end - src_start
                try:
                    result = self._table_single_request(
                        chunk, list(range(src_count)), list(range(src_count, len(chunk)))
                    )
                except (httpx.HTTPError, ValueError, ConnectionError) as e:
                    failed += 1
                    logger.warning(f"Failed to get OSRM data for chunk [{src_start}:{src_end}] -> [{dst_start}:{dst_end}]: {e}")
                    continue
                for local_src, global_src in enumerate(range(src_start, src_end)):
                    for local_dst, global_dst in enumerate(range(dst_start, dst_end)):
                        durations[global_src][global_dst] = result["durations"][local_src][local_dst]
                        distances[global_src][global_dst] = result["distances"][local_src][local_dst]

        total = len(ranges) ** 2
        if failed == total:
            raise ConnectionError(f"All {total} OSRM chunk requests failed; check OSRM connectivity.")
        if failed:
            logger.warning(f"Partial failure: {failed}/{total} OSRM chunk requests failed")
        return {"durations": durations, "distances": distances}


def check_health(base_url: str | None = None) -> bool:
    """Probe OSRM with a minimal two-coordinate table request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/table/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"annotations": "duration"}, timeout=5.0)
        response.raise_for_status()
        data = response.json()
        return "durations" in data and isinstance(data.get("durations"), list)
    except httpx.HTTPError:
        return False
    except ValueError:
        return False
