"""Greedy route construction: seed a route, grow it by best insertion, commit or disband."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ...models.domain import UNCLUSTERED, Carrier, FailureReason, Route, Shipment, TimeSlot
from .context import PlanningContext
from .pull_forward import utilize_spare_capacity
from .rebalancer import rebalance_routes
from .scorer import is_rejected, route_cost, score_insertion, simulate_route
from .timewindows import is_restricted_window

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CarrierOption:
    carrier: Carrier
    slot: TimeSlot
    cost: float


@dataclass(slots=True)
class BuildResult:
    routes: list[Route]
    remaining: list[Shipment]
    next_route_number: int
    pull_forward_routes: int = 0
    rebalance_summary: dict = field(default_factory=dict)


def sort_by_pallets(shipments: list[Shipment]) -> None:
    """Largest first; equal pallet counts keep their current order."""
    shipments.sort(key=lambda shipment: shipment.pallets, reverse=True)


def find_best_initial_carrier(
    shipment: Shipment, carriers: Sequence[Carrier], context: PlanningContext
) -> Optional[CarrierOption]:
    """Cheapest carrier slot with spare capacity that accepts ``shipment`` on its own."""
    best: Optional[CarrierOption] = None
    for carrier in carriers:
        for slot in carrier.time_slots:
            if slot.used >= slot.capacity:
                continue
            empty_route = Route(carrier=carrier, time_slot=slot.label, cluster=shipment.cluster)
            if is_rejected(score_insertion(shipment, empty_route, context)):
                continue
            cost = route_cost(simulate_route([shipment], context).distance_miles, carrier)
            if best is None or cost < best.cost:
                best = CarrierOption(carrier=carrier, slot=slot, cost=cost)
    return best


class RouteBuilder:
    """Owns the unassigned pool and the held routes of one planning run."""

    def __init__(self, carriers: Sequence[Carrier], context: PlanningContext, *, start_number: int = 1) -> None:
        self.carriers = list(carriers)
        self.context = context
        self.next_route_number = start_number
        self.unassigned: list[Shipment] = []
        self.routes: list[Route] = []

    def build(self, shipments: Sequence[Shipment]) -> BuildResult:
        self.unassigned = list(shipments)
        self.routes = []

        while True:
            sort_by_pallets(self.unassigned)
            if self.routes and self.context.fill_existing_routes_first:
                self._fill_existing_routes()
            seed = self._next_seed()
            if seed is None:
                break
            option = find_best_initial_carrier(seed, self.carriers, self.context)
            if option is None:
                self._mark_failed(seed)
                continue
            route = Route(
                carrier=option.carrier,
                time_slot=option.slot.label,
                stops=[seed],
                total_pallets=seed.pallets,
                cluster=seed.cluster,
                seed_attempts=seed.attempts,
            )
            self._grow(route)
            self._commit_or_disband(route, option.slot)

        logger.info(f"Route construction finished with {len(self.routes)} routes, {len(self.unassigned)} shipments left")
        stats = rebalance_routes(self.routes, self.context)
        self.unassigned, self.next_route_number, pulled = utilize_spare_capacity(
            self.unassigned,
            self.carriers,
            self.context,
            self.routes,
            start_number=self.next_route_number,
        )
        return BuildResult(
            routes=self.routes,
            remaining=self.unassigned,
            next_route_number=self.next_route_number,
            pull_forward_routes=pulled,
            rebalance_summary=stats.as_dict(),
        )

    def _next_seed(self) -> Optional[Shipment]:
        cap = self.context.max_planning_attempts_per_shipment
        for index, shipment in enumerate(self.unassigned):
            if shipment.attempts < cap and shipment.failure_reason is None:
                seed = self.unassigned.pop(index)
                seed.attempts += 1
                return seed
        return None

    def _mark_failed(self, shipment: Shipment) -> None:
        if is_restricted_window(self.context.delivery_window_for(shipment)):
            shipment.failure_reason = FailureReason.TIME_CONSTRAINT
        else:
            shipment.failure_reason = FailureReason.NO_VIABLE_CARRIER
        logger.debug(f"Shipment {shipment.store_id}/{shipment.category.value} failed: {shipment.failure_reason.value}")
        self.unassigned.append(shipment)

    def _cluster_blocked(self, candidate: Shipment, route: Route) -> bool:
        if route.cluster == UNCLUSTERED or candidate.cluster == route.cluster:
            return False
        if candidate.insertion_failures >= self.context.cluster_relaxation_failure_threshold:
            return False
        return route.seed_attempts < self.context.relaxed_minimum_attempt_threshold

    def _grow(self, route: Route) -> None:
        while True:
            best: Optional[Shipment] = None
            best_score = math.inf
            for candidate in self.unassigned:
                if candidate.failure_reason is not None:
                    continue
                if self._cluster_blocked(candidate, route):
                    candidate.insertion_failures += 1
                    continue
                score = score_insertion(candidate, route, self.context)
                if is_rejected(score):
                    candidate.insertion_failures += 1
                    continue
                if score < best_score:
                    best_score = score
                    best = candidate
            if best is None:
                return
            self.unassigned.remove(best)
            self._accept(route, best)

    def _fill_existing_routes(self) -> None:
        inserted = 0
        for shipment in list(reversed(self.unassigned)):
            if shipment.failure_reason is not None:
                continue
            best_route: Optional[Route] = None
            best_score = math.inf
            for route in self.routes:
                score = score_insertion(shipment, route, self.context)
                if not is_rejected(score) and score < best_score:
                    best_score = score
                    best_route = route
            if best_route is not None:
                self.unassigned.remove(shipment)
                self._accept(best_route, shipment)
                inserted += 1
        if inserted:
            logger.info(f"Inserted {inserted} shipments into existing routes")

    @staticmethod
    def _accept(route: Route, shipment: Shipment) -> None:
        route.add(shipment)
        shipment.insertion_failures = 0
        if route.cluster == UNCLUSTERED and shipment.cluster != UNCLUSTERED:
            route.cluster = shipment.cluster

    def _commit_or_disband(self, route: Route, slot: TimeSlot) -> None:
        minimum = self.context.relaxed_minimum(route.seed_attempts)
        if route.total_pallets < minimum:
            for stop in route.stops:
                stop.insertion_failures += 1
                self.unassigned.append(stop)
            logger.debug(
                f"Disbanded route seeded at attempt {route.seed_attempts}: {route.total_pallets:g} < {minimum} pallets"
            )
            return
        slot.used += 1
        route.route_id = f"{route.carrier.route_prefix}_{self.next_route_number}"
        self.next_route_number += 1
        self.routes.append(route)
