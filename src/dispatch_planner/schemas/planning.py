"""Planning request/response schemas."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.domain import TemperatureCategory


class PlanningConstraints(BaseModel):
    """Per-request threshold overrides; unset fields keep the configured defaults."""

    max_stops_per_route: Optional[int] = Field(None, ge=1)
    max_route_mileage: Optional[float] = Field(None, ge=0)
    preferred_max_leg_miles: Optional[float] = Field(None, ge=0)
    hard_max_leg_miles: Optional[float] = Field(None, ge=0)
    min_pallets_per_route: Optional[float] = Field(None, ge=0)
    max_planning_attempts_per_shipment: Optional[int] = Field(None, ge=1)
    cluster_relaxation_failure_threshold: Optional[int] = Field(None, ge=0)
    relaxed_minimum_attempt_threshold: Optional[int] = Field(None, ge=0)
    relaxed_minimum_factor: Optional[float] = Field(None, gt=0, le=1)
    allow_mixed_temperature_zones: Optional[bool] = None
    small_ambient_pallet_override_threshold: Optional[float] = Field(None, ge=0)
    overplan_factor: Optional[float] = Field(None, gt=0)
    rebalance_round_cap: Optional[int] = Field(None, ge=0)
    fill_existing_routes_first: Optional[bool] = None


class ShipmentModel(BaseModel):
    store_id: str = Field(..., min_length=1)
    category: TemperatureCategory
    pallets: float = Field(..., gt=0)
    product_type_id: Optional[str] = None
    pallet_type: str = ""
    secondary_pallet_type: str = ""
    delivery_window: Optional[str] = Field(default=None, description="'HH:MM-HH:MM'; empty or 'N/A' means unrestricted.")
    cluster: Optional[str] = None
    failure_reason: Optional[str] = Field(default=None, description="Set on output for shipments that could not be routed.")


class TimeSlotModel(BaseModel):
    label: str
    capacity: int = Field(..., ge=0)


class CarrierModel(BaseModel):
    name: str = Field(..., min_length=1)
    cost_per_mile: float = 0.0
    cost_per_route: float = 0.0
    cost_not_to_use: float = 0.0
    capacities: Dict[str, float] = Field(
        default_factory=dict,
        description="Pallet capacity per trailer size ('36', '48', '53'); missing sizes use the configured defaults.",
    )
    time_slots: List[TimeSlotModel] = Field(default_factory=list)


class RestrictionModel(BaseModel):
    store_id: str
    noise: Optional[str] = None
    equipment_day: Optional[str] = None
    equipment_night: Optional[str] = None
    details: Optional[str] = None
    delivery_window: Optional[str] = None


class AddressModel(BaseModel):
    store_id: str
    name: str = ""
    street: str = ""
    city: str = ""
    zip_code: str = ""
    cluster: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class DistanceModel(BaseModel):
    from_id: str
    to_id: str
    distance_miles: float = Field(..., ge=0)
    duration_minutes: float = Field(..., ge=0)


class DurationModel(BaseModel):
    store_id: str
    product_type_id: str
    loading_minutes: float = Field(0.0, ge=0)
    unloading_minutes: float = Field(0.0, ge=0)


class PlanRequest(BaseModel):
    shipments: List[ShipmentModel]
    carriers: List[CarrierModel]
    distances: List[DistanceModel] = Field(default_factory=list)
    restrictions: List[RestrictionModel] = Field(default_factory=list)
    addresses: List[AddressModel] = Field(default_factory=list)
    durations: List[DurationModel] = Field(default_factory=list)
    warehouse_id: Optional[str] = Field(default=None, description="Depot id; defaults to the configured warehouse.")
    constraints: Optional[PlanningConstraints] = None
    persist: bool = False
    requested_by: Optional[str] = Field(default=None, description="Person or system requesting the run.")
    run_label: Optional[str] = Field(default=None, description="Friendly name for persisted outputs.")
    notes: Optional[str] = Field(default=None, description="Free-form notes captured with the run.")


class WorkbookPlanRequest(BaseModel):
    """Plan from the configured planning workbook instead of an inline payload."""

    warehouse_id: Optional[str] = Field(default=None, description="Depot id; defaults to the configured warehouse.")
    constraints: Optional[PlanningConstraints] = None
    persist: bool = False
    requested_by: Optional[str] = Field(default=None, description="Person or system requesting the run.")
    run_label: Optional[str] = Field(default=None, description="Friendly name for persisted outputs.")
    notes: Optional[str] = Field(default=None, description="Free-form notes captured with the run.")


class RouteModel(BaseModel):
    carrier: str
    route_id: str
    time_slot: str
    cluster: str
    stop_count: int
    stores: List[str]
    stop_sequence: str
    detailed_route: str
    total_miles: float
    has_restrictions: bool
    trailer_size: str
    temperature_zones: List[str]
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
    shipments: List[ShipmentModel]


class UnplannedGroupModel(BaseModel):
    reason: str
    route_id: str
    notes: str
    total_pallets: float
    shipments: List[ShipmentModel]


class UnusedCapacityModel(BaseModel):
    carrier: str
    time_slot: str
    status: str
    reason: str


class PlanResponse(BaseModel):
    metadata: dict
    routes: List[RouteModel]
    overspill: List[RouteModel]
    unplanned: List[UnplannedGroupModel]
    unused_capacity: List[UnusedCapacityModel]
    diagnostics: dict


class ReplanRequest(BaseModel):
    request: PlanRequest = Field(..., description="Inputs the plan was generated from.")
    plan: PlanResponse
    route_ids: List[str] = Field(..., min_length=1)


class ReplanCandidatesRequest(BaseModel):
    plan: PlanResponse
    filter: str = Field(default="all", description="One of all, low-utilization, high-mileage, mixed-clusters.")


class ReplanCandidateModel(BaseModel):
    route_id: str
    carrier: str
    time_slot: str
    stop_count: int
    total_pallets: float
    utilization_pct: Optional[float]
    total_miles: float
    clusters: List[str]


class ReplanCandidatesResponse(BaseModel):
    filter: str
    routes: List[ReplanCandidateModel]
