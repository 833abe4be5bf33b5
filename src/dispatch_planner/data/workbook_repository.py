"""Planning workbook loader (one sheet per input table)."""

from __future__ import annotations

import logging
from datetime import datetime, time
from pathlib import Path
from typing import Any, Iterator, Optional

from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook

from ..config import settings
from ..models.domain import UNCLUSTERED, Address, ProductDuration, Restriction, TrailerSize
from ..services.distances.matrix import DistanceMatrix
from ..services.planning.ingestion import (
    CarrierCost,
    DemandRow,
    PlanningInputs,
    aggregate_shipments,
    build_carriers,
)

logger = logging.getLogger(__name__)

SHIPMENTS_SHEET = "Shipments"
CARRIERS_SHEET = "Carriers"
CARRIER_COSTS_SHEET = "Carrier Costs"
CARRIER_INVENTORY_SHEET = "Carrier Inventory"
RESTRICTIONS_SHEET = "Restrictions"
PRODUCT_TYPES_SHEET = "ProductTypes"
ADDRESSES_SHEET = "Addresses"
DISTANCES_SHEET = "Distance Matrix"
DURATIONS_SHEET = "Durations"


def _text(value: Any) -> str:
    """Normalise a cell to text; whole floats such as store numbers lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, time)):
        return value.strftime("%H:%M")
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _sheet_rows(workbook: Workbook, name: str) -> tuple[list[str], list[tuple]]:
    """Header and data rows of ``name``; both empty when the sheet is absent."""
    if name not in workbook.sheetnames:
        logger.warning(f"Sheet '{name}' not found in planning workbook")
        return [], []
    rows = workbook[name].iter_rows(min_row=1, values_only=True)
    header = next(rows, None)
    if header is None:
        return [], []
    data = [row for row in rows if any(cell not in (None, "") for cell in row)]
    return [_text(cell) for cell in header], data


def _records(workbook: Workbook, name: str) -> Iterator[dict[str, Any]]:
    header, rows = _sheet_rows(workbook, name)
    for row in rows:
        yield {column: row[index] if index < len(row) else None for index, column in enumerate(header) if column}


def _first(record: dict[str, Any], *columns: str) -> Any:
    for column in columns:
        if column in record:
            return record[column]
    return None


def load_product_types(workbook: Workbook) -> dict[str, str]:
    """Pallet type -> product type id (first column id, second column pallet type)."""
    _, rows = _sheet_rows(workbook, PRODUCT_TYPES_SHEET)
    mapping: dict[str, str] = {}
    for row in rows:
        if len(row) >= 2 and row[0] and row[1]:
            mapping[_text(row[1])] = _text(row[0])
    return mapping


def load_restrictions(workbook: Workbook) -> dict[str, Restriction]:
    restrictions: dict[str, Restriction] = {}
    for record in _records(workbook, RESTRICTIONS_SHEET):
        store = _text(record.get("Store"))
        if not store:
            continue
        restrictions[store] = Restriction(
            store_id=store,
            noise=_optional_text(record.get("Noise Restriction")),
            equipment_night=_optional_text(record.get("Equipment Restriction Night")),
            equipment_day=_optional_text(
                _first(record, "Equipment Restriction Day", "Equipment Restriciton Day")
            ),
            details=_optional_text(record.get("Special Details")),
            delivery_window=_optional_text(record.get("Delivery Window")),
        )
    return restrictions


def load_addresses(workbook: Workbook) -> dict[str, Address]:
    addresses: dict[str, Address] = {}
    for record in _records(workbook, ADDRESSES_SHEET):
        store = _text(_first(record, "Store Number", "Store"))
        if not store:
            continue
        addresses[store] = Address(
            store_id=store,
            name=_text(record.get("Name")),
            street=_text(record.get("Street")),
            city=_text(record.get("City")),
            zip_code=_text(record.get("ZipCode")),
            cluster=_text(record.get("Cluster")) or UNCLUSTERED,
            latitude=_optional_number(record.get("Latitude")),
            longitude=_optional_number(record.get("Longitude")),
        )
    return addresses


def load_distances(workbook: Workbook) -> DistanceMatrix:
    matrix = DistanceMatrix()
    skipped = 0
    for record in _records(workbook, DISTANCES_SHEET):
        from_id = _text(record.get("From"))
        to_id = _text(record.get("To"))
        miles = _optional_number(record.get("Miles"))
        minutes = _optional_number(record.get("Minutes"))
        if not from_id or not to_id or miles is None or minutes is None:
            skipped += 1
            continue
        matrix.add(from_id, to_id, miles, minutes)
    if skipped:
        logger.warning(f"Skipped {skipped} incomplete distance rows")
    return matrix


def load_durations(workbook: Workbook) -> dict[tuple[str, str], ProductDuration]:
    durations: dict[tuple[str, str], ProductDuration] = {}
    for record in _records(workbook, DURATIONS_SHEET):
        store = _text(record.get("Store"))
        product_type = _text(record.get("Product Type"))
        if not store or not product_type:
            continue
        durations[(store, product_type)] = ProductDuration(
            loading_minutes=_number(record.get("Loading Minutes")),
            unloading_minutes=_number(record.get("Unloading Minutes")),
        )
    return durations


def load_carrier_costs(workbook: Workbook) -> dict[str, CarrierCost]:
    _, rows = _sheet_rows(workbook, CARRIER_COSTS_SHEET)
    costs: dict[str, CarrierCost] = {}
    for row in rows:
        name = _text(row[0]) if row else ""
        if not name:
            continue
        values = list(row[1:4]) + [None] * (3 - len(row[1:4]))
        costs[name] = CarrierCost(*(_number(value) for value in values))
    if not costs:
        logger.warning("No carrier costs found; route costs will be calculated as 0")
    return costs


def load_trailer_capacities(workbook: Workbook) -> dict[str, dict[TrailerSize, float]]:
    capacities: dict[str, dict[TrailerSize, float]] = {}
    for record in _records(workbook, CARRIER_INVENTORY_SHEET):
        carrier = _text(record.get("Carrier"))
        size = _text(record.get("Size"))
        max_pallets = _optional_number(record.get("Max Pallets"))
        if not carrier or max_pallets is None:
            continue
        try:
            capacities.setdefault(carrier, {})[TrailerSize(size)] = max_pallets
        except ValueError:
            logger.warning(f"Ignoring unknown trailer size '{size}' for carrier {carrier}")
    return capacities


def load_slot_capacities(workbook: Workbook) -> dict[str, dict[str, int]]:
    """Carrier -> {time slot label: vehicles}; slot labels are the header cells after the first."""
    header, rows = _sheet_rows(workbook, CARRIERS_SHEET)
    slots: dict[str, dict[str, int]] = {}
    for row in rows:
        name = _text(row[0]) if row else ""
        if not name:
            continue
        carrier_slots = slots.setdefault(name, {})
        for index, label in enumerate(header[1:], start=1):
            if not label or index >= len(row):
                continue
            count = int(_number(row[index]))
            if count > 0:
                carrier_slots[label] = carrier_slots.get(label, 0) + count
    return slots


def load_demand_rows(workbook: Workbook) -> list[DemandRow]:
    rows: list[DemandRow] = []
    for record in _records(workbook, SHIPMENTS_SHEET):
        rows.append(
            DemandRow(
                store_id=_text(record.get("Store")),
                pallet_type=_text(_first(record, "Pallet Type 1", "PalletType1")),
                secondary_pallet_type=_text(_first(record, "Pallet Type 2", "PalletType2")),
                pallets=record.get("Pallets"),
                status=_text(record.get("Status")),
            )
        )
    return rows


def load_planning_inputs(source: Path | None = None) -> PlanningInputs:
    """Read every planning table from the workbook at ``source``."""
    workbook_path = source or settings.workbook_file
    if not workbook_path.exists():
        raise FileNotFoundError(f"Planning workbook not found: {workbook_path}")

    workbook = load_workbook(workbook_path, data_only=True, read_only=True)
    try:
        restrictions = load_restrictions(workbook)
        addresses = load_addresses(workbook)
        shipments = aggregate_shipments(
            load_demand_rows(workbook),
            product_types=load_product_types(workbook),
            addresses=addresses,
            restrictions=restrictions,
        )
        carriers = build_carriers(
            load_slot_capacities(workbook),
            costs=load_carrier_costs(workbook),
            trailer_capacities=load_trailer_capacities(workbook),
            default_capacities=settings.default_trailer_capacities,
        )
        inputs = PlanningInputs(
            shipments=shipments,
            carriers=carriers,
            restrictions=restrictions,
            addresses=addresses,
            distances=load_distances(workbook),
            durations=load_durations(workbook),
        )
    finally:
        workbook.close()
    logger.info(
        f"Loaded planning workbook {workbook_path.name}: {len(inputs.shipments)} shipments, "
        f"{len(inputs.carriers)} carriers, {len(inputs.distances)} distance pairs"
    )
    return inputs
