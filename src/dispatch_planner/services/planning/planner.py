"""Planning run orchestration: input validation, construction, overflow and reporting."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Sequence, TypeVar

from ...models.domain import Carrier, Route, Shipment, TemperatureCategory, TimeSlot
from .builder import RouteBuilder
from .context import PlanningContext
from .diagnostics import PlanDiagnostics, build_diagnostics, log_diagnostics
from .errors import MissingDistanceError, PlanningInputError
from .evaluation import RouteSummary, UnusedCapacity, summarize_route, unused_capacity_rows
from .overflow import UnplannedGroup, handle_overflow

logger = logging.getLogger(__name__)

REPLAN_FILTERS = ("all", "low-utilization", "high-mileage", "mixed-clusters")
LOW_UTILIZATION_PCT = 85.0
HIGH_MILEAGE_MILES = 350.0

_ROUTE_NUMBER = re.compile(r"_(\d+)$")

RouteLike = TypeVar("RouteLike")


@dataclass(slots=True)
class PlanResult:
    routes: list[Route]
    overspill_routes: list[Route]
    unplanned: list[UnplannedGroup]
    carriers: list[Carrier]
    route_summaries: list[RouteSummary] = field(default_factory=list)
    overspill_summaries: list[RouteSummary] = field(default_factory=list)
    unused_capacity: list[UnusedCapacity] = field(default_factory=list)
    diagnostics: PlanDiagnostics = field(default_factory=PlanDiagnostics)
    next_route_number: int = 1
    metadata: dict = field(default_factory=dict)

    def all_shipments(self) -> list[Shipment]:
        shipments = [stop for route in self.routes for stop in route.stops]
        shipments.extend(stop for route in self.overspill_routes for stop in route.stops)
        shipments.extend(shipment for group in self.unplanned for shipment in group.shipments)
        return shipments


def clone_carriers(carriers: Iterable[Carrier]) -> list[Carrier]:
    """Copy carriers so slot usage belongs to a single run."""
    return [
        replace(
            carrier,
            capacities=dict(carrier.capacities),
            time_slots=[TimeSlot(slot.label, slot.capacity, slot.used) for slot in carrier.time_slots],
        )
        for carrier in carriers
    ]


def validate_shipments(shipments: Sequence[Shipment], context: PlanningContext) -> None:
    """Raise on input that should have been rejected at the ingestion boundary."""
    seen: set[int] = set()
    for shipment in shipments:
        if not shipment.store_id or not str(shipment.store_id).strip():
            raise PlanningInputError("Shipment is missing a store id.")
        if not isinstance(shipment.category, TemperatureCategory):
            raise PlanningInputError(f"Shipment for store {shipment.store_id} has unknown category {shipment.category!r}.")
        if shipment.pallets is None or shipment.pallets <= 0:
            raise PlanningInputError(f"Shipment for store {shipment.store_id} must have a positive pallet quantity.")
        if id(shipment) in seen:
            raise PlanningInputError(f"Shipment for store {shipment.store_id} was supplied more than once.")
        seen.add(id(shipment))
        if context.distances.lookup(context.warehouse_id, shipment.store_id) is None:
            raise MissingDistanceError(context.warehouse_id, shipment.store_id)


def next_route_number(route_ids: Iterable[str]) -> int:
    highest = 0
    for route_id in route_ids:
        match = _ROUTE_NUMBER.search(route_id or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def assemble_plan(
    routes: list[Route],
    overspill_routes: list[Route],
    unplanned: list[UnplannedGroup],
    carriers: list[Carrier],
    context: PlanningContext,
    *,
    next_number: int,
    metadata: dict | None = None,
) -> PlanResult:
    """Attach summaries, unused capacity and diagnostics to planned routes."""
    plan = PlanResult(
        routes=routes,
        overspill_routes=overspill_routes,
        unplanned=unplanned,
        carriers=carriers,
        next_route_number=next_number,
        metadata=dict(metadata or {}),
    )
    plan.route_summaries = [summarize_route(route, context) for route in routes]
    plan.overspill_summaries = [summarize_route(route, context) for route in overspill_routes]
    for summary in plan.route_summaries:
        if summary.total_miles > context.mileage_target:
            logger.warning(
                f"Route {summary.route_id} runs {summary.total_miles:g} miles, "
                f"above {context.mileage_target_ratio:.0%} of the {context.max_route_mileage:g} mile cap"
            )
    plan.unused_capacity = unused_capacity_rows(carriers, routes, plan.all_shipments(), context)
    plan.diagnostics = build_diagnostics(plan.route_summaries)
    log_diagnostics(plan.diagnostics)
    return plan


def generate_plan(
    shipments: Sequence[Shipment],
    carriers: Sequence[Carrier],
    context: PlanningContext,
    *,
    start_number: int = 1,
    overspill_start: int = 1,
) -> PlanResult:
    """Plan ``shipments`` onto ``carriers``.

    Slot usage already recorded on ``carriers`` is respected; the carriers passed in
    are not modified. Every input shipment ends up on exactly one committed route,
    overspill route or unplanned group.

    Raises:
        PlanningInputError: a shipment is malformed.
        MissingDistanceError: the depot to store distance of a shipment is unknown.
    """
    validate_shipments(shipments, context)
    working = clone_carriers(carriers)
    for shipment in shipments:
        shipment.reset_planning_state()

    logger.info(f"Planning {len(shipments)} shipments across {len(working)} carriers")
    built = RouteBuilder(working, context, start_number=start_number).build(shipments)
    overflow = handle_overflow(built.remaining, context, start_index=overspill_start)

    return assemble_plan(
        built.routes,
        overflow.overspill_routes,
        overflow.unplanned,
        working,
        context,
        next_number=built.next_route_number,
        metadata={
            "rebalance": built.rebalance_summary,
            "pull_forward_routes": built.pull_forward_routes,
        },
    )


def reconstruct_slot_usage(carriers: Sequence[Carrier], routes: Iterable[Route]) -> None:
    """Reset slot usage on ``carriers`` to what ``routes`` occupy."""
    by_name = {carrier.name: carrier for carrier in carriers}
    for carrier in carriers:
        for slot in carrier.time_slots:
            slot.used = 0
    for route in routes:
        carrier = by_name.get(route.carrier.name)
        slot = carrier.find_slot(route.time_slot) if carrier else None
        if slot is not None:
            slot.used += 1


def routes_for_replanning(summaries: Sequence[RouteLike], filter_name: str = "all") -> list[RouteLike]:
    """Select routes worth re-planning; accepts route summaries or their response models."""
    if filter_name not in REPLAN_FILTERS:
        raise ValueError(f"Unknown route filter '{filter_name}'. Expected one of: {', '.join(REPLAN_FILTERS)}.")
    if filter_name == "low-utilization":
        return [s for s in summaries if s.utilization_pct is not None and s.utilization_pct < LOW_UTILIZATION_PCT]
    if filter_name == "high-mileage":
        return [s for s in summaries if s.total_miles > HIGH_MILEAGE_MILES]
    if filter_name == "mixed-clusters":
        return [s for s in summaries if len({shipment.cluster for shipment in s.shipments}) > 1]
    return list(summaries)


def _merge_groups(previous: Sequence[UnplannedGroup], current: Sequence[UnplannedGroup]) -> list[UnplannedGroup]:
    merged: dict[str, UnplannedGroup] = {}
    for group in [*previous, *current]:
        existing = merged.get(group.reason)
        if existing is None:
            merged[group.reason] = UnplannedGroup(group.reason, group.route_id, group.notes, list(group.shipments))
        else:
            existing.shipments.extend(group.shipments)
    return list(merged.values())


def replan_routes(
    plan: PlanResult,
    route_ids: Iterable[str],
    carriers: Sequence[Carrier],
    context: PlanningContext,
) -> PlanResult:
    """Re-plan the shipments of the chosen committed routes, keeping every other route as is."""
    selected = {route_id for route_id in route_ids if route_id}
    if not selected:
        raise PlanningInputError("No route ids supplied for re-planning.")

    shipments = [stop for route in plan.routes if route.route_id in selected for stop in route.stops]
    if not shipments:
        raise PlanningInputError(f"No shipments found for routes: {', '.join(sorted(selected))}.")
    surviving = [route for route in plan.routes if route.route_id not in selected]

    working = clone_carriers(carriers)
    reconstruct_slot_usage(working, surviving)
    logger.info(f"Re-planning {len(shipments)} shipments from {len(selected)} routes")

    partial = generate_plan(
        shipments,
        working,
        context,
        start_number=plan.next_route_number,
        overspill_start=len(plan.overspill_routes) + 1,
    )
    return assemble_plan(
        surviving + partial.routes,
        plan.overspill_routes + partial.overspill_routes,
        _merge_groups(plan.unplanned, partial.unplanned),
        partial.carriers,
        context,
        next_number=partial.next_route_number,
        metadata={**partial.metadata, "replanned_routes": sorted(selected)},
    )
