"""Single-day duty-cycle simulation for an ordered stop sequence.

The simulation walks depot -> stop 1 -> ... -> stop n -> depot, accruing loading
time at the depot, driving time per leg, and unloading time per store. A break is
inserted before any leg that would carry on-duty time past the next break
boundary. The resulting total distance is the single mileage figure used for
both the mileage cap and route cost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

from ...models.domain import ProductDuration, Shipment
from ..distances.matrix import DistanceEdge, DistanceOracle
from .errors import MissingDistanceError

logger = logging.getLogger(__name__)


class DutyStatus(str, Enum):
    OK = "OK"
    DRIVING_VIOLATION = "DRIVING_VIOLATION"
    ON_DUTY_VIOLATION = "ON_DUTY_VIOLATION"


@dataclass(slots=True, frozen=True)
class DutyLimits:
    pallets_per_full_load: float = 26.0
    default_unload_minutes: float = 15.0
    break_after_on_duty_minutes: float = 480.0
    break_minutes: float = 30.0
    driving_limit_minutes: float = 660.0
    on_duty_limit_minutes: float = 840.0


@dataclass(slots=True, frozen=True)
class Leg:
    from_id: str
    to_id: str
    distance_miles: float
    duration_minutes: float


@dataclass(slots=True)
class DutyCycleResult:
    travel_minutes: float = 0.0
    stop_minutes: float = 0.0
    total_minutes: float = 0.0
    distance_miles: float = 0.0
    breaks: int = 0
    status: DutyStatus = DutyStatus.OK
    legs: list[Leg] = field(default_factory=list)
    missing_legs: list[tuple[str, str]] = field(default_factory=list)

    @property
    def is_compliant(self) -> bool:
        return self.status is DutyStatus.OK


def _duration_entry(
    durations: Mapping[tuple[str, str], ProductDuration], shipment: Shipment
) -> Optional[ProductDuration]:
    if shipment.product_type_id is None:
        return None
    return durations.get((shipment.store_id, shipment.product_type_id))


def simulate_duty_cycle(
    stops: Sequence[Shipment],
    warehouse_id: str,
    distances: DistanceOracle,
    durations: Mapping[tuple[str, str], ProductDuration],
    limits: DutyLimits | None = None,
) -> DutyCycleResult:
    """Simulate one departure from the depot serving ``stops`` in the given order.

    Raises:
        MissingDistanceError: the depot to first-store leg is unknown.
    """
    limits = limits or DutyLimits()
    result = DutyCycleResult()
    if not stops:
        return result

    for shipment in stops:
        entry = _duration_entry(durations, shipment)
        if entry and entry.loading_minutes:
            result.stop_minutes += (shipment.pallets / limits.pallets_per_full_load) * entry.loading_minutes
    on_duty = result.stop_minutes

    def drive(edge: DistanceEdge, from_id: str, to_id: str) -> None:
        nonlocal on_duty
        if on_duty + edge.duration_minutes > (result.breaks + 1) * limits.break_after_on_duty_minutes:
            on_duty += limits.break_minutes
            result.breaks += 1
        result.travel_minutes += edge.duration_minutes
        result.distance_miles += edge.distance_miles
        on_duty += edge.duration_minutes
        result.legs.append(Leg(from_id, to_id, edge.distance_miles, edge.duration_minutes))

    current = warehouse_id
    stores = list(dict.fromkeys(stop.store_id for stop in stops))
    for store in stores:
        if current == warehouse_id:
            edge = distances.lookup(current, store)
            if edge is None:
                raise MissingDistanceError(current, store)
        else:
            edge = distances.lookup_either(current, store)
        if edge is not None:
            drive(edge, current, store)
        else:
            result.missing_legs.append((current, store))

        unloading = 0.0
        for shipment in stops:
            if shipment.store_id != store:
                continue
            entry = _duration_entry(durations, shipment)
            if entry and entry.unloading_minutes:
                unloading += (shipment.pallets / limits.pallets_per_full_load) * entry.unloading_minutes
            else:
                unloading += limits.default_unload_minutes
        result.stop_minutes += unloading
        on_duty += unloading
        current = store

    # an unknown return leg is not driven; on multi-store routes it is reported as missing
    return_edge = distances.lookup(current, warehouse_id)
    if return_edge is not None:
        drive(return_edge, current, warehouse_id)
    elif len(stores) > 1:
        result.missing_legs.append((current, warehouse_id))

    result.total_minutes = on_duty
    if result.travel_minutes > limits.driving_limit_minutes:
        result.status = DutyStatus.DRIVING_VIOLATION
    if on_duty > limits.on_duty_limit_minutes:
        result.status = DutyStatus.ON_DUTY_VIOLATION

    logger.debug(
        f"Duty cycle: stops={len(stops)}, travel={result.travel_minutes:.0f}, stop={result.stop_minutes:.0f}, "
        f"total={result.total_minutes:.0f}, miles={result.distance_miles:.0f}, status={result.status.value}"
    )
    return result
