"""Insertion scoring: the constraint gate and marginal cost of adding a shipment to a route.

Every check short-circuits. A failed check returns a :class:`Rejection`, which is
an ordinary outcome callers use to try something else; it is never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from ...models.domain import Carrier, Route, Shipment
from ..distances.matrix import DistanceOracle
from .compatibility import is_temperature_compatible, route_capacity
from .context import PlanningContext
from .duty_cycle import DutyCycleResult, simulate_duty_cycle
from .sequencer import sequence_stops, store_sequence
from .timewindows import is_time_in_window

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    MAX_STOPS = "max_stops"
    TEMPERATURE = "temperature"
    DELIVERY_WINDOW = "delivery_window"
    CAPACITY = "capacity"
    MISSING_DISTANCE = "missing_distance"
    LEG_DISTANCE = "leg_distance"
    MILEAGE = "mileage"
    DUTY_CYCLE = "duty_cycle"


@dataclass(slots=True, frozen=True)
class Rejection:
    reason: RejectReason
    detail: str = ""


InsertionScore = Union[float, Rejection]


def is_rejected(score: InsertionScore) -> bool:
    return isinstance(score, Rejection)


def stop_leg_distances(ordered_stops: Sequence[Shipment], distances: DistanceOracle) -> Optional[list[float]]:
    """Miles of each store-to-store leg, or None when any leg is unknown.

    Depot legs are not included; the hard and preferred leg limits apply between stores.
    """
    stores = store_sequence(ordered_stops)
    legs: list[float] = []
    for from_id, to_id in zip(stores, stores[1:]):
        edge = distances.lookup_either(from_id, to_id)
        if edge is None:
            logger.debug(f"Missing distance data between {from_id} and {to_id}")
            return None
        legs.append(edge.distance_miles)
    return legs


def distance_penalty(leg_miles: Sequence[float], preferred_max: float) -> float:
    return sum((miles - preferred_max) ** 2 for miles in leg_miles if miles > preferred_max)


def route_cost(distance_miles: float, carrier: Carrier) -> float:
    return distance_miles * carrier.cost_per_mile + carrier.cost_per_route


def simulate_route(ordered_stops: Sequence[Shipment], context: PlanningContext) -> DutyCycleResult:
    return simulate_duty_cycle(
        ordered_stops,
        context.warehouse_id,
        context.distances,
        context.durations,
        context.duty_limits,
    )


def score_insertion(shipment: Shipment, route: Route, context: PlanningContext) -> InsertionScore:
    """Marginal cost of adding ``shipment`` to ``route``, lower is better.

    ``route`` may be empty. The route is not modified.
    """
    proposed = [*route.stops, shipment]
    stores = store_sequence(proposed)
    if len(stores) > context.max_stops_per_route:
        return Rejection(RejectReason.MAX_STOPS, f"{len(stores)} stores exceed the limit of {context.max_stops_per_route}.")

    if not is_temperature_compatible(
        proposed,
        allow_mixed_zones=context.allow_mixed_temperature_zones,
        small_ambient_threshold=context.small_ambient_pallet_override_threshold,
    ):
        return Rejection(RejectReason.TEMPERATURE, f"{shipment.category.value} freight cannot join this load.")

    window = context.delivery_window_for(shipment)
    if not is_time_in_window(route.time_slot, window):
        return Rejection(
            RejectReason.DELIVERY_WINDOW,
            f"Time slot {route.time_slot} is outside store {shipment.store_id}'s window ({window}).",
        )

    size, capacity = route_capacity(route.carrier, stores, route.time_slot, context.restrictions, context.night_window)
    if not capacity or route.total_pallets + shipment.pallets > capacity * context.overplan_factor:
        return Rejection(
            RejectReason.CAPACITY,
            f"{route.total_pallets + shipment.pallets:g} pallets exceed {size.value}' trailer capacity of {capacity:g}.",
        )

    current_order = sequence_stops(route.stops, context.warehouse_id, context.distances)
    proposed_order = sequence_stops(proposed, context.warehouse_id, context.distances)
    current_legs = stop_leg_distances(current_order, context.distances)
    proposed_legs = stop_leg_distances(proposed_order, context.distances)
    if current_legs is None or proposed_legs is None:
        return Rejection(RejectReason.MISSING_DISTANCE, f"Distance data missing around store {shipment.store_id}.")

    longest_leg = max(proposed_legs, default=0.0)
    if longest_leg > context.hard_max_leg_miles:
        return Rejection(
            RejectReason.LEG_DISTANCE,
            f"Leg of {longest_leg:g} miles exceeds the hard limit of {context.hard_max_leg_miles:g}.",
        )

    proposed_cycle = simulate_route(proposed_order, context)
    if proposed_cycle.missing_legs:
        from_id, to_id = proposed_cycle.missing_legs[0]
        return Rejection(RejectReason.MISSING_DISTANCE, f"Distance data missing from {from_id} to {to_id}.")
    if proposed_cycle.distance_miles > context.max_route_mileage:
        return Rejection(
            RejectReason.MILEAGE,
            f"Route of {proposed_cycle.distance_miles:g} miles exceeds max mileage of {context.max_route_mileage:g}.",
        )
    if context.enforce_duty_cycle and not proposed_cycle.is_compliant:
        return Rejection(RejectReason.DUTY_CYCLE, f"Route violates duty rules ({proposed_cycle.status.value}).")

    current_cycle = simulate_route(current_order, context)
    cost_delta = route_cost(proposed_cycle.distance_miles, route.carrier) - route_cost(
        current_cycle.distance_miles, route.carrier
    )
    penalty_delta = distance_penalty(proposed_legs, context.preferred_max_leg_miles) - distance_penalty(
        current_legs, context.preferred_max_leg_miles
    )
    return cost_delta + penalty_delta


def validate_route(route: Route, context: PlanningContext) -> Optional[Rejection]:
    """Check a complete route against every hard constraint; None when it holds."""
    stores = route.unique_stores()
    if len(stores) > context.max_stops_per_route:
        return Rejection(RejectReason.MAX_STOPS, f"{len(stores)} stores exceed the limit of {context.max_stops_per_route}.")
    if not is_temperature_compatible(
        route.stops,
        allow_mixed_zones=context.allow_mixed_temperature_zones,
        small_ambient_threshold=context.small_ambient_pallet_override_threshold,
    ):
        return Rejection(RejectReason.TEMPERATURE, "Temperature categories cannot share this load.")
    for stop in route.stops:
        if not is_time_in_window(route.time_slot, context.delivery_window_for(stop)):
            return Rejection(RejectReason.DELIVERY_WINDOW, f"Time slot {route.time_slot} is outside store {stop.store_id}'s window.")
    size, capacity = route_capacity(route.carrier, stores, route.time_slot, context.restrictions, context.night_window)
    if not capacity or route.total_pallets > capacity * context.overplan_factor:
        return Rejection(RejectReason.CAPACITY, f"{route.total_pallets:g} pallets exceed {size.value}' trailer capacity.")

    ordered = sequence_stops(route.stops, context.warehouse_id, context.distances)
    legs = stop_leg_distances(ordered, context.distances)
    if legs is None:
        return Rejection(RejectReason.MISSING_DISTANCE, "Distance data missing between stores.")
    if max(legs, default=0.0) > context.hard_max_leg_miles:
        return Rejection(RejectReason.LEG_DISTANCE, f"A leg exceeds the hard limit of {context.hard_max_leg_miles:g} miles.")

    cycle = simulate_route(ordered, context)
    if cycle.missing_legs:
        return Rejection(RejectReason.MISSING_DISTANCE, "Distance data missing for the return to the depot.")
    if cycle.distance_miles > context.max_route_mileage:
        return Rejection(RejectReason.MILEAGE, f"Route of {cycle.distance_miles:g} miles exceeds max mileage.")
    if context.enforce_duty_cycle and not cycle.is_compliant:
        return Rejection(RejectReason.DUTY_CYCLE, f"Route violates duty rules ({cycle.status.value}).")
    return None


def is_route_valid(route: Route, context: PlanningContext) -> bool:
    return validate_route(route, context) is None
