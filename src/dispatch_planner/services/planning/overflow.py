"""Disposition of shipments the route builder could not place."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

from ...models.domain import Carrier, FailureReason, Route, Shipment, TrailerSize
from .context import PlanningContext
from .scorer import is_rejected, score_insertion

logger = logging.getLogger(__name__)

OVERSPILL_CARRIER = "Overspill"
TIME_CONSTRAINT_NOTE = "Could not be routed due to time window or carrier slot availability. Manual review needed."
OTHER_FAILURE_NOTE = "No viable carrier found for these shipments. Manual review needed."


@dataclass(slots=True)
class UnplannedGroup:
    """Shipments set aside for manual review, grouped by why they failed."""

    reason: str
    route_id: str
    notes: str
    shipments: list[Shipment] = field(default_factory=list)

    @property
    def total_pallets(self) -> float:
        return sum(shipment.pallets for shipment in self.shipments)


@dataclass(slots=True)
class OverflowResult:
    unplanned: list[UnplannedGroup] = field(default_factory=list)
    overspill_routes: list[Route] = field(default_factory=list)


def overspill_carrier() -> Carrier:
    """Pseudo-carrier for unscheduled freight: free and with unbounded trailers."""
    return Carrier(
        name=OVERSPILL_CARRIER,
        cost_per_mile=0.0,
        cost_per_route=0.0,
        cost_not_to_use=0.0,
        capacities={size: math.inf for size in TrailerSize},
    )


def _manual_review_groups(shipments: Sequence[Shipment]) -> list[UnplannedGroup]:
    time_bound = [s for s in shipments if s.failure_reason is FailureReason.TIME_CONSTRAINT]
    other = [s for s in shipments if s.failure_reason is FailureReason.NO_VIABLE_CARRIER]
    groups = []
    if time_bound:
        groups.append(UnplannedGroup("Time Constraint", "Time_1", TIME_CONSTRAINT_NOTE, time_bound))
    if other:
        groups.append(UnplannedGroup("Other", "Other_1", OTHER_FAILURE_NOTE, other))
    return groups


def handle_overflow(
    shipments: Sequence[Shipment],
    context: PlanningContext,
    *,
    start_index: int = 1,
) -> OverflowResult:
    """Group failed shipments for review and first-fit the rest onto overspill routes.

    Overspill routes still respect stop count, temperature and leg limits; mileage
    and duty limits are lifted.
    """
    result = OverflowResult(unplanned=_manual_review_groups(shipments))

    pending = sorted(
        (s for s in shipments if s.failure_reason is None),
        key=lambda shipment: shipment.pallets,
        reverse=True,
    )
    if not pending:
        return result

    relaxed = context.relaxed_for_overspill()
    carrier = overspill_carrier()
    routes = result.overspill_routes
    for shipment in pending:
        for route in routes:
            if not is_rejected(score_insertion(shipment, route, relaxed)):
                route.add(shipment)
                break
        else:
            route = Route(carrier=carrier, time_slot=context.overspill_time_slot, cluster=OVERSPILL_CARRIER)
            route.add(shipment)
            routes.append(route)

    for offset, route in enumerate(routes):
        route.route_id = f"{OVERSPILL_CARRIER}_{start_index + offset}"
    logger.info(f"Placed {len(pending)} leftover shipments on {len(routes)} overspill routes")
    return result
