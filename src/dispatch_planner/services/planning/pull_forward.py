"""Fill spare carrier departures with leftover freight ("pull forward")."""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ...models.domain import Carrier, Route, Shipment
from .context import PlanningContext
from .scorer import is_rejected, score_insertion

logger = logging.getLogger(__name__)

PULL_FORWARD_NOTE = "Pull Forward Request"


def pull_forward_minimum(context: PlanningContext) -> int:
    relaxed = math.ceil(context.min_pallets_per_route * context.relaxed_minimum_factor)
    return max(1, math.ceil(context.pull_forward_minimum_floor), relaxed)


def _accumulate(route: Route, pool: Sequence[Shipment], minimum: float, context: PlanningContext) -> list[Shipment]:
    accepted: list[Shipment] = []
    for shipment in pool:
        if route.total_pallets >= minimum:
            break
        if is_rejected(score_insertion(shipment, route, context)):
            shipment.insertion_failures += 1
            continue
        route.add(shipment)
        accepted.append(shipment)
    return accepted


def utilize_spare_capacity(
    unassigned: Sequence[Shipment],
    carriers: Sequence[Carrier],
    context: PlanningContext,
    routes: list[Route],
    *,
    start_number: int = 1,
) -> tuple[list[Shipment], int, int]:
    """Build extra routes in unused carrier slots from ``unassigned`` freight.

    Committed routes are appended to ``routes``. Returns the shipments still
    unplaced, the next free route number and how many routes were created.
    """
    pool = sorted(unassigned, key=lambda shipment: shipment.pallets, reverse=True)
    minimum = pull_forward_minimum(context)
    number = start_number
    created = 0

    for carrier in carriers:
        for slot in carrier.time_slots:
            while pool and slot.used < slot.capacity:
                route = Route(carrier=carrier, time_slot=slot.label, notes=PULL_FORWARD_NOTE)
                accepted = _accumulate(route, pool, minimum, context)
                if route.total_pallets < minimum:
                    # the pool is unchanged, so this slot would fail the same way again
                    break
                accepted_ids = {id(shipment) for shipment in accepted}
                pool = [shipment for shipment in pool if id(shipment) not in accepted_ids]
                for shipment in accepted:
                    shipment.insertion_failures = 0
                route.cluster = accepted[0].cluster
                route.route_id = f"{carrier.route_prefix}_PF_{number}"
                number += 1
                slot.used += 1
                routes.append(route)
                created += 1
                logger.info(f"Pulled forward {route.total_pallets:g} pallets into {route.route_id} ({slot.label})")

    return pool, number, created
