import pytest

from dispatch_planner.models.domain import Address, Restriction, TemperatureCategory, TrailerSize
from dispatch_planner.services.planning.ingestion import (
    CarrierCost,
    DemandRow,
    aggregate_shipments,
    build_carriers,
    category_for_pallet_type,
)


@pytest.mark.parametrize(
    ("pallet_type", "category"),
    [
        ("Chiller", TemperatureCategory.CHILLER),
        ("MEAT", TemperatureCategory.CHILLER),
        ("Freezer", TemperatureCategory.FREEZER),
        ("FreezerTKT", TemperatureCategory.FREEZER),
        ("produce", TemperatureCategory.PRODUCE),
        ("Dry", TemperatureCategory.AMBIENT),
        ("", TemperatureCategory.AMBIENT),
    ],
)
def test_category_for_pallet_type(pallet_type, category):
    assert category_for_pallet_type(pallet_type) is category


def test_rows_aggregate_per_store_and_category():
    rows = [
        DemandRow("1001", "Dry", 5),
        DemandRow("1001", "Dry", "3"),
        DemandRow("1001", "Meat", 4),
        DemandRow("1002", "Dry", 7, status="Standby"),
        DemandRow("1002", "Freezer", 6.5),
        DemandRow("", "Dry", 2),
        DemandRow("1003", "Dry", "abc"),
        DemandRow("1003", "Dry", 0),
        DemandRow("1003", "Dry", float("nan")),
    ]

    shipments = aggregate_shipments(
        rows,
        product_types={"Dry": "P1", "Meat": "P2"},
        addresses={"1001": Address(store_id="1001", cluster="North")},
        restrictions={"1002": Restriction(store_id="1002", delivery_window="09:00-11:00")},
    )

    summary = [(s.store_id, s.category, s.pallets, s.product_type_id) for s in shipments]
    assert summary == [
        ("1001", TemperatureCategory.AMBIENT, 8.0, "P1"),
        ("1001", TemperatureCategory.CHILLER, 4.0, "P2"),
        ("1002", TemperatureCategory.FREEZER, 6.5, None),
    ]
    assert shipments[0].cluster == "North"
    assert shipments[2].cluster == "Others"
    assert shipments[2].delivery_window == "09:00-11:00"


def test_first_row_pallet_types_are_kept():
    rows = [
        DemandRow("1001", "Dry", 5, secondary_pallet_type=" Bakery "),
        DemandRow("1001", "Dry", 3, secondary_pallet_type="Snacks"),
        DemandRow("1002", "Meat", 4),
    ]

    first, second = aggregate_shipments(rows)

    assert (first.pallet_type, first.secondary_pallet_type, first.pallets) == ("Dry", "Bakery", 8.0)
    assert (second.pallet_type, second.secondary_pallet_type) == ("Meat", "")


def test_build_carriers_merges_costs_and_capacities():
    carriers = build_carriers(
        {"Acme": {"08:00": 2, "10:00": 0}, "Beta": {"22:00": 1}, " ": {"08:00": 1}},
        costs={"Acme": CarrierCost(2.5, 150.0, 40.0)},
        trailer_capacities={"Acme": {TrailerSize.FT36: 20.0}},
    )

    assert [carrier.name for carrier in carriers] == ["Acme", "Beta"]
    acme, beta = carriers
    assert [(slot.label, slot.capacity) for slot in acme.time_slots] == [("08:00", 2)]
    assert (acme.cost_per_mile, acme.cost_per_route, acme.cost_not_to_use) == (2.5, 150.0, 40.0)
    assert acme.capacities == {TrailerSize.FT36: 20.0, TrailerSize.FT48: 22.0, TrailerSize.FT53: 26.0}
    assert beta.cost_per_route == 0.0
    assert beta.capacity_for(TrailerSize.FT53) == 26.0
