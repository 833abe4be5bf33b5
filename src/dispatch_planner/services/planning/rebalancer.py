"""Post-construction improvement of committed routes.

Each round first tries to fold whole routes into other routes of the same carrier
and time slot, then tries pairwise shipment swaps between such routes, keeping a
swap only when both routes stay valid and the combined score drops.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from ...models.domain import Route
from .compatibility import route_capacity
from .context import PlanningContext
from .scorer import is_rejected, is_route_valid, route_cost, score_insertion, simulate_route
from .sequencer import sequence_stops

logger = logging.getLogger(__name__)

_IMPROVEMENT_TOLERANCE = 1e-9


@dataclass(slots=True)
class RebalanceStats:
    rounds: int = 0
    consolidations: int = 0
    swaps: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def route_score(route: Route, context: PlanningContext) -> float:
    """Cost plus penalties for low utilization, high mileage and mixed clusters."""
    ordered = sequence_stops(route.stops, context.warehouse_id, context.distances)
    cycle = simulate_route(ordered, context)
    _, capacity = route_capacity(
        route.carrier, route.unique_stores(), route.time_slot, context.restrictions, context.night_window
    )

    score = route_cost(cycle.distance_miles, route.carrier)
    utilization = route.total_pallets / capacity if capacity else 0.0
    score += (1 - utilization) ** 2 * context.utilization_penalty_weight

    overage = cycle.distance_miles - context.mileage_target
    if overage > 0:
        score += overage**2 * context.mileage_overage_penalty_weight

    if len({stop.cluster for stop in route.stops}) > 1:
        score += context.cluster_mixing_penalty
    return score


def same_departure(first: Route, second: Route) -> bool:
    return first.carrier.name == second.carrier.name and first.time_slot == second.time_slot


def _release_slot(route: Route) -> None:
    slot = route.carrier.find_slot(route.time_slot)
    if slot is not None and slot.used > 0:
        slot.used -= 1


def _try_consolidate(source: Route, target: Route, context: PlanningContext) -> bool:
    working = target.with_stops(target.stops)
    for stop in source.stops:
        if is_rejected(score_insertion(stop, working, context)):
            return False
        working.add(stop)
    return is_route_valid(working, context)


def _consolidation_pass(routes: list[Route], context: PlanningContext, stats: RebalanceStats) -> bool:
    changed = False
    for source_index in range(len(routes) - 1, -1, -1):
        source = routes[source_index]
        for target_index, target in enumerate(routes):
            if target_index == source_index or not same_departure(source, target):
                continue
            if not _try_consolidate(source, target, context):
                continue
            for stop in source.stops:
                target.add(stop)
            target.refresh_cluster()
            del routes[source_index]
            _release_slot(source)
            stats.consolidations += 1
            changed = True
            logger.info(f"Consolidated route {source.route_id} into {target.route_id}")
            break
    return changed


def _swap_pass(routes: list[Route], context: PlanningContext, stats: RebalanceStats) -> bool:
    changed = False
    for first_index, first in enumerate(routes):
        for second in routes[first_index + 1 :]:
            if not same_departure(first, second):
                continue
            for i in range(len(first.stops)):
                for j in range(len(second.stops)):
                    before = route_score(first, context) + route_score(second, context)
                    first_state, second_state = first.snapshot(), second.snapshot()
                    first.stops[i], second.stops[j] = second.stops[j], first.stops[i]
                    first.recount_pallets()
                    second.recount_pallets()
                    if is_route_valid(first, context) and is_route_valid(second, context):
                        after = route_score(first, context) + route_score(second, context)
                        if after < before - _IMPROVEMENT_TOLERANCE:
                            first.refresh_cluster()
                            second.refresh_cluster()
                            stats.swaps += 1
                            changed = True
                            continue
                    first.restore(first_state)
                    second.restore(second_state)
    return changed


def rebalance_routes(routes: list[Route], context: PlanningContext) -> RebalanceStats:
    """Improve ``routes`` in place; stops after a round with no change or at the round cap."""
    stats = RebalanceStats()
    if len(routes) < 2:
        return stats
    while stats.rounds < context.rebalance_round_cap:
        stats.rounds += 1
        consolidated = _consolidation_pass(routes, context, stats)
        swapped = _swap_pass(routes, context, stats)
        if not (consolidated or swapped):
            break
    logger.info(
        f"Rebalancing finished after {stats.rounds} rounds: "
        f"{stats.consolidations} consolidations, {stats.swaps} swaps"
    )
    return stats
