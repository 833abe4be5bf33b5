"""Fill missing distance pairs from OSRM using address coordinates."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

import httpx

from ...models.domain import Address
from .matrix import DistanceMatrix
from .osrm_client import METERS_PER_MILE, OSRMClient

logger = logging.getLogger(__name__)


def fill_missing_distances(
    matrix: DistanceMatrix,
    location_ids: Iterable[str],
    addresses: Mapping[str, Address],
    client: OSRMClient,
) -> int:
    """Add OSRM edges for pairs of ``location_ids`` the matrix lacks.

    Locations without coordinates are skipped. Returns the number of edges added;
    unreachable cells stay missing.
    """
    missing = matrix.missing_pairs(location_ids)
    if not missing:
        return 0

    involved = list(dict.fromkeys(location for pair in missing for location in pair))
    located = [
        location
        for location in involved
        if location in addresses
        and addresses[location].latitude is not None
        and addresses[location].longitude is not None
    ]
    skipped = len(involved) - len(located)
    if skipped:
        logger.warning(f"{skipped} locations have no coordinates; their distance pairs stay missing")
    if len(located) < 2:
        return 0

    coordinates = [(addresses[location].latitude, addresses[location].longitude) for location in located]
    try:
        table = client.table(coordinates)
    except (httpx.HTTPError, ValueError, ConnectionError) as exc:
        logger.warning(f"Distance enrichment failed, {len(missing)} pairs stay missing: {exc}")
        return 0

    index = {location: position for position, location in enumerate(located)}
    added = 0
    unreachable = 0
    for from_id, to_id in missing:
        if from_id not in index or to_id not in index:
            continue
        meters = table["distances"][index[from_id]][index[to_id]]
        seconds = table["durations"][index[from_id]][index[to_id]]
        if meters is None or seconds is None:
            unreachable += 1
            continue
        matrix.add(from_id, to_id, meters / METERS_PER_MILE, seconds / 60.0)
        added += 1
    if unreachable:
        logger.warning(f"OSRM could not reach {unreachable} location pairs")
    logger.info(f"Filled {added} missing distance pairs from OSRM")
    return added
