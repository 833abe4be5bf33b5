"""Stop ordering for candidate routes.

Ambient-only stores are visited first so refrigerated compartments stay closed
until the cold-chain stores, each group ordered by nearest neighbour.
"""

from __future__ import annotations

import math
from typing import Sequence

from ...models.domain import Shipment, TemperatureCategory
from ..distances.matrix import DistanceOracle

_COLD_CHAIN = {TemperatureCategory.CHILLER, TemperatureCategory.FREEZER}


def _leg_miles(distances: DistanceOracle, from_id: str, to_id: str, warehouse_id: str) -> float:
    # depot legs are directional, store to store legs may use the reverse edge
    if from_id == warehouse_id or to_id == warehouse_id:
        edge = distances.lookup(from_id, to_id)
    else:
        edge = distances.lookup_either(from_id, to_id)
    return edge.distance_miles if edge is not None else math.inf


def nearest_neighbor(
    stores: Sequence[str],
    start: str,
    distances: DistanceOracle,
    warehouse_id: str,
) -> list[str]:
    """Greedy nearest-neighbour order; ties keep the earlier store.

    When every remaining distance is unknown the rest are appended as given.
    """
    if len(stores) < 2:
        return list(stores)
    ordered: list[str] = []
    remaining = list(stores)
    current = start
    while remaining:
        nearest_index = -1
        nearest_miles = math.inf
        for index, store in enumerate(remaining):
            miles = _leg_miles(distances, current, store, warehouse_id)
            if miles < nearest_miles:
                nearest_miles = miles
                nearest_index = index
        if nearest_index == -1:
            ordered.extend(remaining)
            break
        current = remaining.pop(nearest_index)
        ordered.append(current)
    return ordered


def sequence_stops(stops: Sequence[Shipment], warehouse_id: str, distances: DistanceOracle) -> list[Shipment]:
    """Order shipments by store visit, keeping each store's shipments together."""
    if len(stops) <= 1:
        return list(stops)

    by_store: dict[str, list[Shipment]] = {}
    for stop in stops:
        by_store.setdefault(stop.store_id, []).append(stop)

    ambient_only: list[str] = []
    cold_chain: list[str] = []
    for store, shipments in by_store.items():
        if any(shipment.category in _COLD_CHAIN for shipment in shipments):
            cold_chain.append(store)
        else:
            ambient_only.append(store)

    order: list[str] = []
    last_location = warehouse_id
    if ambient_only:
        order.extend(nearest_neighbor(ambient_only, warehouse_id, distances, warehouse_id))
        last_location = order[-1]
    if cold_chain:
        order.extend(nearest_neighbor(cold_chain, last_location, distances, warehouse_id))

    return [shipment for store in order for shipment in by_store[store]]


def store_sequence(stops: Sequence[Shipment]) -> list[str]:
    return list(dict.fromkeys(stop.store_id for stop in stops))
