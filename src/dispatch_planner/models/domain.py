"""Domain models for shipments, carriers, restrictions and routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

UNCLUSTERED = "Others"


class TemperatureCategory(str, Enum):
    AMBIENT = "Ambient"
    CHILLER = "Chiller"
    FREEZER = "Freezer"
    PRODUCE = "Produce"

    @property
    def abbreviation(self) -> str:
        return self.value[:3].upper()


class TrailerSize(str, Enum):
    """Trailer length classes; the value is the length in feet."""

    FT36 = "36"
    FT48 = "48"
    FT53 = "53"


class FailureReason(str, Enum):
    TIME_CONSTRAINT = "Time Constraint"
    NO_VIABLE_CARRIER = "No Viable Carrier"


@dataclass(slots=True, eq=False)
class Shipment:
    """Pallets for one store and temperature category, plus the planning state of a run.

    Shipments compare by identity so a run can track the exact objects it was given.
    """

    store_id: str
    category: TemperatureCategory
    pallets: float
    product_type_id: Optional[str] = None
    delivery_window: Optional[str] = None
    cluster: str = UNCLUSTERED
    pallet_type: str = ""
    secondary_pallet_type: str = ""
    attempts: int = 0
    insertion_failures: int = 0
    failure_reason: Optional[FailureReason] = None

    def reset_planning_state(self) -> None:
        self.attempts = 0
        self.insertion_failures = 0
        self.failure_reason = None


@dataclass(slots=True)
class TimeSlot:
    label: str
    capacity: int
    used: int = 0

    @property
    def spare(self) -> int:
        return max(0, self.capacity - self.used)


@dataclass(slots=True)
class Carrier:
    name: str
    cost_per_mile: float
    cost_per_route: float
    cost_not_to_use: float
    capacities: dict[TrailerSize, float]
    time_slots: list[TimeSlot] = field(default_factory=list)

    def capacity_for(self, size: TrailerSize) -> float:
        return self.capacities.get(size, 0.0)

    def find_slot(self, label: str) -> Optional[TimeSlot]:
        for slot in self.time_slots:
            if slot.label == label:
                return slot
        return None

    @property
    def route_prefix(self) -> str:
        return "".join(self.name.split())


@dataclass(slots=True)
class Restriction:
    """Per-store delivery restrictions."""

    store_id: str
    noise: Optional[str] = None
    equipment_day: Optional[str] = None
    equipment_night: Optional[str] = None
    details: Optional[str] = None
    delivery_window: Optional[str] = None


@dataclass(slots=True)
class Address:
    store_id: str
    name: str = ""
    street: str = ""
    city: str = ""
    zip_code: str = ""
    cluster: str = UNCLUSTERED
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(slots=True, frozen=True)
class ProductDuration:
    """Handling minutes per full load unit for one store and product type."""

    loading_minutes: float = 0.0
    unloading_minutes: float = 0.0


@dataclass(slots=True)
class Route:
    carrier: Carrier
    time_slot: str
    stops: list[Shipment] = field(default_factory=list)
    total_pallets: float = 0.0
    cluster: str = UNCLUSTERED
    route_id: Optional[str] = None
    notes: str = ""
    seed_attempts: int = 0

    def unique_stores(self) -> list[str]:
        return list(dict.fromkeys(stop.store_id for stop in self.stops))

    def add(self, shipment: Shipment) -> None:
        self.stops.append(shipment)
        self.total_pallets += shipment.pallets

    def recount_pallets(self) -> None:
        self.total_pallets = sum(stop.pallets for stop in self.stops)

    def refresh_cluster(self) -> None:
        """Tag the route with the first clustered stop it carries."""
        self.cluster = next((stop.cluster for stop in self.stops if stop.cluster != UNCLUSTERED), UNCLUSTERED)

    def with_stops(self, stops: list[Shipment]) -> "Route":
        """Return a detached copy of this route carrying ``stops``."""
        return Route(
            carrier=self.carrier,
            time_slot=self.time_slot,
            stops=list(stops),
            total_pallets=sum(stop.pallets for stop in stops),
            cluster=self.cluster,
            route_id=self.route_id,
            notes=self.notes,
            seed_attempts=self.seed_attempts,
        )

    def snapshot(self) -> tuple[list[Shipment], float]:
        return list(self.stops), self.total_pallets

    def restore(self, state: tuple[list[Shipment], float]) -> None:
        stops, pallets = state
        self.stops = list(stops)
        self.total_pallets = pallets
