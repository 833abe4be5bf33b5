"""Per-route reporting and carrier capacity diagnostics."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence
from urllib.parse import quote

from ...models.domain import Address, Carrier, Route, Shipment
from .compatibility import has_restrictions, route_capacity, temperature_zones
from .context import PlanningContext
from .duty_cycle import DutyCycleResult
from .scorer import is_rejected, route_cost, score_insertion, simulate_route
from .sequencer import sequence_stops, store_sequence

MAPS_BASE_URL = "https://www.google.com/maps/dir/"


@dataclass(slots=True)
class RouteSummary:
    carrier: str
    route_id: str
    time_slot: str
    cluster: str
    stop_count: int
    stores: list[str]
    stop_sequence: str
    detailed_route: str
    total_miles: float
    has_restrictions: bool
    trailer_size: str
    temperature_zones: list[str]
    total_pallets: float
    utilization_pct: Optional[float]
    travel_minutes: float
    stop_minutes: float
    total_minutes: float
    duty_status: str
    estimated_cost: float
    mileage_status: str
    notes: str = ""
    map_link: Optional[str] = None
    shipments: list[Shipment] = field(default_factory=list)


@dataclass(slots=True)
class UnusedCapacity:
    carrier: str
    time_slot: str
    status: str
    reason: str


def format_stop_sequence(ordered_stops: Sequence[Shipment]) -> str:
    """``S1 (AMB,CHI) / S2 (FRE)`` style listing of stores and their categories."""
    categories: dict[str, list[str]] = {}
    for stop in ordered_stops:
        codes = categories.setdefault(stop.store_id, [])
        if stop.category.abbreviation not in codes:
            codes.append(stop.category.abbreviation)
    return " / ".join(f"{store} ({','.join(codes)})" for store, codes in categories.items())


def format_detailed_route(cycle: DutyCycleResult, warehouse_id: str) -> str:
    if not cycle.legs:
        return warehouse_id
    parts = [cycle.legs[0].from_id]
    for leg in cycle.legs:
        parts.append(f"({leg.distance_miles:.0f} mi) -> {leg.to_id}")
    return " ".join(parts)


def _address_text(address: Optional[Address]) -> Optional[str]:
    if address is None:
        return None
    text = ", ".join(part for part in (address.street, address.city, address.zip_code) if part)
    if text:
        return text
    if address.latitude is not None and address.longitude is not None:
        return f"{address.latitude},{address.longitude}"
    return None


def build_map_link(stores: Sequence[str], context: PlanningContext) -> Optional[str]:
    """Directions link depot -> stores -> depot, or None when an address is unknown."""
    locations = [context.warehouse_id, *stores, context.warehouse_id]
    texts = [_address_text(context.addresses.get(location)) for location in locations]
    if not stores or any(text is None for text in texts):
        return None
    return MAPS_BASE_URL + "/".join(quote(text, safe=",") for text in texts)


def summarize_route(route: Route, context: PlanningContext) -> RouteSummary:
    ordered = sequence_stops(route.stops, context.warehouse_id, context.distances)
    stores = store_sequence(ordered)
    cycle = simulate_route(ordered, context)
    size, capacity = route_capacity(route.carrier, stores, route.time_slot, context.restrictions, context.night_window)
    utilization = None
    if capacity and not math.isinf(capacity):
        utilization = round(route.total_pallets / capacity * 100, 1)

    return RouteSummary(
        carrier=route.carrier.name,
        route_id=route.route_id or "",
        time_slot=route.time_slot,
        cluster=route.cluster,
        stop_count=len(stores),
        stores=stores,
        stop_sequence=format_stop_sequence(ordered),
        detailed_route=format_detailed_route(cycle, context.warehouse_id),
        total_miles=round(cycle.distance_miles, 1),
        has_restrictions=has_restrictions(stores, context.restrictions),
        trailer_size=f"{size.value}'",
        temperature_zones=temperature_zones(ordered),
        total_pallets=route.total_pallets,
        utilization_pct=utilization,
        travel_minutes=round(cycle.travel_minutes, 1),
        stop_minutes=round(cycle.stop_minutes, 1),
        total_minutes=round(cycle.total_minutes, 1),
        duty_status=cycle.status.value,
        estimated_cost=round(route_cost(cycle.distance_miles, route.carrier), 2),
        mileage_status="OK" if cycle.distance_miles <= context.max_route_mileage else "OVER",
        notes=route.notes,
        map_link=build_map_link(stores, context),
        shipments=ordered,
    )


def diagnose_unused_carrier(carrier: Carrier, shipments: Sequence[Shipment], context: PlanningContext) -> str:
    """Explain why a carrier ended the run without any route."""
    if not carrier.time_slots:
        return "FAIL: No time slots defined for this carrier."
    if not shipments:
        return "FAIL: No shipments available to evaluate."

    first_rejection = None
    for slot in carrier.time_slots:
        probe = Route(carrier=carrier, time_slot=slot.label)
        for shipment in shipments:
            score = score_insertion(shipment, probe, context)
            if not is_rejected(score):
                return (
                    f"NOTE: Valid for store {shipment.store_id} at {slot.label} "
                    f"but not selected (cost not to use: {carrier.cost_not_to_use:g})."
                )
            if first_rejection is None:
                first_rejection = f"store {shipment.store_id} at {slot.label}: {score.detail}"
    return f"FAIL: No shipment fits this carrier ({first_rejection})."


def unused_capacity_rows(
    carriers: Sequence[Carrier],
    routes: Sequence[Route],
    shipments: Sequence[Shipment],
    context: PlanningContext,
) -> list[UnusedCapacity]:
    """One row per unused departure, with a diagnosis for carriers that got no routes."""
    used_carriers = {route.carrier.name for route in routes}
    rows: list[UnusedCapacity] = []
    for carrier in carriers:
        if carrier.name in used_carriers:
            for slot in carrier.time_slots:
                reason = f"Unused Capacity at {slot.label}"
                for _ in range(slot.spare):
                    rows.append(UnusedCapacity(carrier.name, slot.label, "UNUSED CAPACITY", reason))
            continue
        reason = diagnose_unused_carrier(carrier, shipments, context)
        if not carrier.time_slots:
            rows.append(UnusedCapacity(carrier.name, "", "NOT PLANNED", reason))
        for slot in carrier.time_slots:
            for _ in range(slot.spare):
                rows.append(UnusedCapacity(carrier.name, slot.label, "NOT PLANNED", reason))
    return rows
