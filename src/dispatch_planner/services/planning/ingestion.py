"""Turn raw demand and carrier records into planning inputs."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from ...models.domain import (
    UNCLUSTERED,
    Address,
    Carrier,
    ProductDuration,
    Restriction,
    Shipment,
    TemperatureCategory,
    TimeSlot,
    TrailerSize,
)
from ..distances.matrix import DistanceMatrix

logger = logging.getLogger(__name__)

_CHILLER_TYPES = {"chiller", "meat"}
_FREEZER_TYPES = {"freezer", "freezertkt"}
_PRODUCE_TYPES = {"produce"}
_SIZE_ORDER = (TrailerSize.FT36, TrailerSize.FT48, TrailerSize.FT53)


@dataclass(slots=True)
class DemandRow:
    store_id: str
    pallet_type: str
    pallets: object
    secondary_pallet_type: str = ""
    status: str = ""


@dataclass(slots=True)
class CarrierCost:
    cost_per_mile: float = 0.0
    cost_per_route: float = 0.0
    cost_not_to_use: float = 0.0


@dataclass(slots=True)
class PlanningInputs:
    shipments: list[Shipment] = field(default_factory=list)
    carriers: list[Carrier] = field(default_factory=list)
    restrictions: dict[str, Restriction] = field(default_factory=dict)
    addresses: dict[str, Address] = field(default_factory=dict)
    distances: DistanceMatrix = field(default_factory=DistanceMatrix)
    durations: dict[tuple[str, str], ProductDuration] = field(default_factory=dict)


def category_for_pallet_type(pallet_type: str) -> TemperatureCategory:
    value = (pallet_type or "").strip().lower()
    if value in _CHILLER_TYPES:
        return TemperatureCategory.CHILLER
    if value in _FREEZER_TYPES:
        return TemperatureCategory.FREEZER
    if value in _PRODUCE_TYPES:
        return TemperatureCategory.PRODUCE
    return TemperatureCategory.AMBIENT


def _to_float(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def aggregate_shipments(
    rows: Iterable[DemandRow],
    *,
    product_types: Mapping[str, str] | None = None,
    addresses: Mapping[str, Address] | None = None,
    restrictions: Mapping[str, Restriction] | None = None,
) -> list[Shipment]:
    """Aggregate demand rows into one shipment per (store, category).

    Standby rows are dropped. Rows without a store, a pallet type or a numeric,
    positive pallet quantity are skipped with a warning.
    """
    product_types = product_types or {}
    addresses = addresses or {}
    restrictions = restrictions or {}
    aggregated: dict[tuple[str, TemperatureCategory], Shipment] = {}
    invalid = 0
    standby = 0

    for row in rows:
        store = str(row.store_id or "").strip()
        pallet_type = str(row.pallet_type or "").strip()
        pallets = _to_float(row.pallets)
        if not store or not pallet_type or pallets is None or pallets <= 0:
            invalid += 1
            continue
        if str(row.status or "").strip().lower() == "standby":
            standby += 1
            continue

        category = category_for_pallet_type(pallet_type)
        key = (store, category)
        existing = aggregated.get(key)
        if existing is not None:
            existing.pallets += pallets
            continue

        address = addresses.get(store)
        restriction = restrictions.get(store)
        aggregated[key] = Shipment(
            store_id=store,
            category=category,
            pallets=pallets,
            product_type_id=product_types.get(pallet_type),
            delivery_window=restriction.delivery_window if restriction else None,
            cluster=address.cluster if address and address.cluster else UNCLUSTERED,
            pallet_type=pallet_type,
            secondary_pallet_type=str(row.secondary_pallet_type or "").strip(),
        )

    if invalid:
        logger.warning(f"Skipped {invalid} demand rows without store, pallet type or a positive pallet count")
    if standby:
        logger.info(f"Dropped {standby} standby demand rows")
    shipments = list(aggregated.values())
    logger.info(f"Aggregated demand into {len(shipments)} store/category shipments")
    return shipments


def build_carriers(
    slot_capacities: Mapping[str, Mapping[str, int]],
    *,
    costs: Mapping[str, CarrierCost] | None = None,
    trailer_capacities: Mapping[str, Mapping[TrailerSize, float]] | None = None,
    default_capacities: Sequence[float] = (18.0, 22.0, 26.0),
) -> list[Carrier]:
    """Merge departure slots, costs and trailer capacities per carrier.

    Slots with no vehicles are left out. Missing costs default to zero and missing
    trailer capacities to ``default_capacities`` (36', 48', 53').
    """
    costs = costs or {}
    trailer_capacities = trailer_capacities or {}
    carriers: list[Carrier] = []
    for name, slots in slot_capacities.items():
        name = str(name).strip()
        if not name:
            continue
        cost = costs.get(name) or CarrierCost()
        capacities = dict(zip(_SIZE_ORDER, (float(value) for value in default_capacities)))
        capacities.update(trailer_capacities.get(name, {}))
        time_slots = [
            TimeSlot(label=str(label).strip(), capacity=int(capacity))
            for label, capacity in slots.items()
            if capacity and int(capacity) > 0
        ]
        carriers.append(
            Carrier(
                name=name,
                cost_per_mile=cost.cost_per_mile,
                cost_per_route=cost.cost_per_route,
                cost_not_to_use=cost.cost_not_to_use,
                capacities=capacities,
                time_slots=time_slots,
            )
        )
    logger.info(f"Loaded {len(carriers)} carriers with {sum(len(c.time_slots) for c in carriers)} departure slots")
    return carriers
