"""Planning context: thresholds plus the collaborators every operation consults."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from ...config import Settings, settings as default_settings
from ...models.domain import Address, ProductDuration, Restriction, Shipment
from ..distances.matrix import DistanceMatrix, DistanceOracle
from .duty_cycle import DutyLimits

_THRESHOLD_FIELDS = (
    "max_stops_per_route",
    "max_route_mileage",
    "preferred_max_leg_miles",
    "hard_max_leg_miles",
    "min_pallets_per_route",
    "max_planning_attempts_per_shipment",
    "cluster_relaxation_failure_threshold",
    "relaxed_minimum_attempt_threshold",
    "relaxed_minimum_factor",
    "allow_mixed_temperature_zones",
    "small_ambient_pallet_override_threshold",
    "overplan_factor",
    "rebalance_round_cap",
    "fill_existing_routes_first",
    "pull_forward_minimum_floor",
    "pallets_per_full_load",
    "default_unload_minutes",
    "break_after_on_duty_minutes",
    "break_minutes",
    "driving_limit_minutes",
    "on_duty_limit_minutes",
    "night_window",
    "utilization_penalty_weight",
    "mileage_target_ratio",
    "mileage_overage_penalty_weight",
    "cluster_mixing_penalty",
    "overspill_time_slot",
)


@dataclass(slots=True)
class PlanningContext:
    warehouse_id: str
    distances: DistanceOracle
    restrictions: dict[str, Restriction] = field(default_factory=dict)
    durations: dict[tuple[str, str], ProductDuration] = field(default_factory=dict)
    addresses: dict[str, Address] = field(default_factory=dict)

    max_stops_per_route: int = 5
    max_route_mileage: float = 425.0
    preferred_max_leg_miles: float = 60.0
    hard_max_leg_miles: float = 75.0
    min_pallets_per_route: float = 20.0
    max_planning_attempts_per_shipment: int = 5
    cluster_relaxation_failure_threshold: int = 3
    relaxed_minimum_attempt_threshold: int = 4
    relaxed_minimum_factor: float = 0.8
    allow_mixed_temperature_zones: bool = True
    small_ambient_pallet_override_threshold: float = 6.0
    overplan_factor: float = 1.0
    rebalance_round_cap: int = 15
    fill_existing_routes_first: bool = True
    pull_forward_minimum_floor: float = 15.0

    pallets_per_full_load: float = 26.0
    default_unload_minutes: float = 15.0
    break_after_on_duty_minutes: float = 480.0
    break_minutes: float = 30.0
    driving_limit_minutes: float = 660.0
    on_duty_limit_minutes: float = 840.0
    night_window: tuple[str, str] = ("19:00", "06:00")
    enforce_duty_cycle: bool = True

    utilization_penalty_weight: float = 5000.0
    mileage_target_ratio: float = 0.85
    mileage_overage_penalty_weight: float = 1.0
    cluster_mixing_penalty: float = 800.0
    overspill_time_slot: str = "23:00"

    @classmethod
    def from_settings(
        cls,
        *,
        distances: DistanceOracle | None = None,
        restrictions: Mapping[str, Restriction] | None = None,
        durations: Mapping[tuple[str, str], ProductDuration] | None = None,
        addresses: Mapping[str, Address] | None = None,
        overrides: Mapping[str, Any] | None = None,
        config: Settings | None = None,
        warehouse_id: Optional[str] = None,
    ) -> "PlanningContext":
        """Build a context from settings, replacing any threshold given in ``overrides``.

        Override values of ``None`` keep the configured default.
        """
        config = config or default_settings
        values = {name: getattr(config, name) for name in _THRESHOLD_FIELDS}
        for name, value in (overrides or {}).items():
            if value is None:
                continue
            if name not in values:
                raise ValueError(f"Unknown planning threshold '{name}'.")
            values[name] = value
        values["night_window"] = tuple(values["night_window"])
        return cls(
            warehouse_id=warehouse_id or config.warehouse_id,
            distances=distances if distances is not None else DistanceMatrix(),
            restrictions=dict(restrictions or {}),
            durations=dict(durations or {}),
            addresses=dict(addresses or {}),
            **values,
        )

    def relaxed_for_overspill(self) -> "PlanningContext":
        """Context for unscheduled fallback routes: no mileage cap and no duty limits."""
        return replace(self, max_route_mileage=math.inf, enforce_duty_cycle=False)

    def relaxed_minimum(self, seed_attempts: int) -> int:
        factor = self.relaxed_minimum_factor if seed_attempts >= self.relaxed_minimum_attempt_threshold else 1.0
        return max(1, math.ceil(self.min_pallets_per_route * factor))

    @property
    def mileage_target(self) -> float:
        return self.max_route_mileage * self.mileage_target_ratio

    @property
    def duty_limits(self) -> DutyLimits:
        return DutyLimits(
            pallets_per_full_load=self.pallets_per_full_load,
            default_unload_minutes=self.default_unload_minutes,
            break_after_on_duty_minutes=self.break_after_on_duty_minutes,
            break_minutes=self.break_minutes,
            driving_limit_minutes=self.driving_limit_minutes,
            on_duty_limit_minutes=self.on_duty_limit_minutes,
        )

    def delivery_window_for(self, shipment: Shipment) -> Optional[str]:
        if shipment.delivery_window:
            return shipment.delivery_window
        restriction = self.restrictions.get(shipment.store_id)
        return restriction.delivery_window if restriction else None
