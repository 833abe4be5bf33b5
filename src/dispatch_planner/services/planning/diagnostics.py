"""Plan-level statistics logged after every run."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Sequence

from .duty_cycle import DutyStatus
from .evaluation import RouteSummary

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlanDiagnostics:
    total_routes: int = 0
    total_pallets: float = 0.0
    total_miles: float = 0.0
    total_cost: float = 0.0
    average_pallets_per_route: float = 0.0
    average_miles_per_route: float = 0.0
    average_utilization_pct: float = 0.0
    min_miles: float = 0.0
    max_miles: float = 0.0
    duty_violations: int = 0
    over_mileage_routes: int = 0
    restricted_routes: int = 0
    longest_routes: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def build_diagnostics(summaries: Sequence[RouteSummary], *, longest: int = 5) -> PlanDiagnostics:
    diagnostics = PlanDiagnostics(total_routes=len(summaries))
    if not summaries:
        return diagnostics

    miles = [summary.total_miles for summary in summaries]
    diagnostics.total_pallets = sum(summary.total_pallets for summary in summaries)
    diagnostics.total_miles = round(sum(miles), 1)
    diagnostics.total_cost = round(sum(summary.estimated_cost for summary in summaries), 2)
    diagnostics.average_pallets_per_route = round(diagnostics.total_pallets / len(summaries), 1)
    diagnostics.average_miles_per_route = round(diagnostics.total_miles / len(summaries), 1)
    utilizations = [summary.utilization_pct for summary in summaries if summary.utilization_pct is not None]
    if utilizations:
        diagnostics.average_utilization_pct = round(sum(utilizations) / len(utilizations), 1)
    diagnostics.min_miles = min(miles)
    diagnostics.max_miles = max(miles)
    diagnostics.duty_violations = sum(1 for s in summaries if s.duty_status != DutyStatus.OK.value)
    diagnostics.over_mileage_routes = sum(1 for s in summaries if s.mileage_status == "OVER")
    diagnostics.restricted_routes = sum(1 for s in summaries if s.has_restrictions)
    ranked = sorted(summaries, key=lambda summary: summary.total_miles, reverse=True)[:longest]
    diagnostics.longest_routes = [
        {"route_id": summary.route_id, "total_miles": summary.total_miles, "stop_count": summary.stop_count}
        for summary in ranked
    ]
    return diagnostics


def log_diagnostics(diagnostics: PlanDiagnostics) -> None:
    logger.info(
        f"Plan diagnostics: {diagnostics.total_routes} routes, {diagnostics.total_pallets:g} pallets, "
        f"{diagnostics.total_miles:g} miles, average utilization {diagnostics.average_utilization_pct:g}%"
    )
    if diagnostics.duty_violations or diagnostics.over_mileage_routes:
        logger.warning(
            f"{diagnostics.duty_violations} routes violate duty limits and "
            f"{diagnostics.over_mileage_routes} exceed the mileage cap"
        )
    for entry in diagnostics.longest_routes:
        logger.debug(f"Long route {entry['route_id']}: {entry['total_miles']:g} miles, {entry['stop_count']} stops")
