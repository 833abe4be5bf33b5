import pytest

from dispatch_planner.models.domain import (
    Carrier,
    Restriction,
    Route,
    Shipment,
    TemperatureCategory,
    TimeSlot,
    TrailerSize,
)
from dispatch_planner.services.distances.matrix import DistanceMatrix
from dispatch_planner.services.planning.builder import find_best_initial_carrier
from dispatch_planner.services.planning.context import PlanningContext
from dispatch_planner.services.planning.scorer import (
    RejectReason,
    is_rejected,
    is_route_valid,
    route_cost,
    score_insertion,
    simulate_route,
    validate_route,
)

DEPOT = "DC"


def _carrier(name: str = "Acme", cost_per_mile: float = 2.0, cost_per_route: float = 100.0, slot: str = "08:00") -> Carrier:
    return Carrier(
        name=name,
        cost_per_mile=cost_per_mile,
        cost_per_route=cost_per_route,
        cost_not_to_use=0.0,
        capacities={TrailerSize.FT36: 18.0, TrailerSize.FT48: 22.0, TrailerSize.FT53: 26.0},
        time_slots=[TimeSlot(slot, 1)],
    )


def _shipment(store: str, pallets: float = 5, category: TemperatureCategory = TemperatureCategory.AMBIENT, **kwargs) -> Shipment:
    return Shipment(store_id=store, category=category, pallets=pallets, **kwargs)


def _context(rows, **overrides) -> PlanningContext:
    return PlanningContext(warehouse_id=DEPOT, distances=DistanceMatrix.from_rows(rows), **overrides)


def _route(*stops: Shipment, carrier: Carrier | None = None, time_slot: str = "08:00") -> Route:
    route = Route(carrier=carrier or _carrier(), time_slot=time_slot)
    for stop in stops:
        route.add(stop)
    return route


def test_single_store_route_costs_depot_leg_plus_fixed_cost():
    carrier = _carrier()
    context = _context([(DEPOT, "S1", 50, 60)])
    shipment = _shipment("S1", 10)

    assert not is_rejected(score_insertion(shipment, _route(carrier=carrier), context))
    assert route_cost(simulate_route([shipment], context).distance_miles, carrier) == 50 * 2.0 + 100.0

    option = find_best_initial_carrier(shipment, [carrier], context)
    assert option is not None
    assert option.cost == 200.0


def test_freezer_cannot_join_chiller_at_same_store():
    context = _context([(DEPOT, "S1", 10, 10)])
    route = _route(_shipment("S1", 5, TemperatureCategory.CHILLER))

    score = score_insertion(_shipment("S1", 5, TemperatureCategory.FREEZER), route, context)

    assert is_rejected(score)
    assert score.reason is RejectReason.TEMPERATURE


def test_hard_leg_limit_rejects_before_mileage():
    context = _context(
        [(DEPOT, "S1", 10, 10), (DEPOT, "S2", 10, 10), ("S1", "S2", 80, 80)],
        max_route_mileage=50,
    )
    route = _route(_shipment("S1"))

    score = score_insertion(_shipment("S2"), route, context)

    assert is_rejected(score)
    assert score.reason is RejectReason.LEG_DISTANCE


def test_slot_outside_delivery_window_is_rejected():
    context = _context([(DEPOT, "S1", 10, 10)])

    score = score_insertion(_shipment("S1", delivery_window="09:00-11:00"), _route(time_slot="14:00"), context)

    assert is_rejected(score)
    assert score.reason is RejectReason.DELIVERY_WINDOW


def test_restriction_window_applies_when_shipment_has_none():
    context = _context(
        [(DEPOT, "S1", 10, 10)],
        restrictions={"S1": Restriction(store_id="S1", delivery_window="09:00-11:00")},
    )

    assert is_rejected(score_insertion(_shipment("S1"), _route(time_slot="14:00"), context))
    assert not is_rejected(score_insertion(_shipment("S1"), _route(time_slot="10:00"), context))


def test_max_stops_counts_distinct_stores():
    context = _context(
        [
            (DEPOT, "S1", 10, 10),
            (DEPOT, "S2", 10, 10),
            (DEPOT, "S3", 10, 10),
            ("S1", "S2", 5, 5),
            ("S2", "S3", 5, 5),
            ("S1", "S3", 5, 5),
            ("S1", DEPOT, 10, 10),
            ("S2", DEPOT, 10, 10),
        ],
        max_stops_per_route=2,
    )
    route = _route(_shipment("S1"), _shipment("S2"))

    third_store = score_insertion(_shipment("S3"), route, context)
    same_store = score_insertion(_shipment("S1", 2, TemperatureCategory.PRODUCE), route, context)

    assert third_store.reason is RejectReason.MAX_STOPS
    assert not is_rejected(same_store)


def test_capacity_respects_overplan_factor():
    rows = [(DEPOT, "S1", 10, 10)]
    route = _route(_shipment("S1", 20))

    strict = score_insertion(_shipment("S1", 10, TemperatureCategory.PRODUCE), route, _context(rows))
    overplanned = score_insertion(_shipment("S1", 10, TemperatureCategory.PRODUCE), route, _context(rows, overplan_factor=1.2))

    assert strict.reason is RejectReason.CAPACITY
    assert not is_rejected(overplanned)


def test_store_equipment_restriction_shrinks_capacity():
    context = _context(
        [(DEPOT, "S1", 10, 10)],
        restrictions={"S1": Restriction(store_id="S1", equipment_day="36 ft only")},
    )

    score = score_insertion(_shipment("S1", 20), _route(), context)

    assert score.reason is RejectReason.CAPACITY


def test_unknown_store_leg_is_rejected():
    context = _context([(DEPOT, "S1", 10, 10), (DEPOT, "S2", 10, 10)])

    score = score_insertion(_shipment("S2"), _route(_shipment("S1")), context)

    assert score.reason is RejectReason.MISSING_DISTANCE


def test_mileage_cap():
    context = _context([(DEPOT, "S1", 300, 60), ("S1", DEPOT, 300, 60)])

    score = score_insertion(_shipment("S1"), _route(), context)

    assert score.reason is RejectReason.MILEAGE


def test_duty_cycle_can_be_disabled():
    rows = [(DEPOT, "S1", 100, 700)]

    enforced = score_insertion(_shipment("S1"), _route(), _context(rows))
    relaxed = score_insertion(_shipment("S1"), _route(), _context(rows, enforce_duty_cycle=False))

    assert enforced.reason is RejectReason.DUTY_CYCLE
    assert not is_rejected(relaxed)


def test_score_is_marginal_cost_plus_leg_penalty():
    carrier = _carrier(cost_per_mile=1.0, cost_per_route=0.0)
    context = _context(
        [(DEPOT, "S1", 10, 10), (DEPOT, "S2", 75, 75), ("S1", "S2", 70, 70), ("S1", DEPOT, 10, 10), ("S2", DEPOT, 75, 75)]
    )
    route = _route(_shipment("S1"), carrier=carrier)

    score = score_insertion(_shipment("S2"), route, context)

    # 135 extra miles (10 + 70 + 75 against 10 + 10) plus (70 - 60) ** 2 for the long leg
    assert score == pytest.approx(235.0)


def test_score_does_not_modify_route():
    context = _context([(DEPOT, "S1", 10, 10), (DEPOT, "S2", 12, 12), ("S1", "S2", 5, 5)])
    first = _shipment("S1")
    route = _route(first)

    score_insertion(_shipment("S2"), route, context)

    assert route.stops == [first]
    assert route.total_pallets == 5


def test_validate_route_reports_first_broken_rule():
    context = _context(
        [(DEPOT, "S1", 10, 10), (DEPOT, "S2", 10, 10), ("S1", "S2", 5, 5), ("S1", DEPOT, 10, 10), ("S2", DEPOT, 10, 10)]
    )
    valid = _route(_shipment("S1", 10), _shipment("S2", 10))
    overloaded = _route(_shipment("S1", 20), _shipment("S2", 10))

    assert is_route_valid(valid, context)
    assert validate_route(overloaded, context).reason is RejectReason.CAPACITY


def test_unknown_return_leg_rejects_a_second_store():
    # B can only be reached through A and has no way back to the depot
    context = _context(
        [(DEPOT, "A", 10, 10), ("A", DEPOT, 10, 10), (DEPOT, "B", 200, 200), ("A", "B", 5, 5)],
        max_route_mileage=100,
    )
    route = _route(_shipment("A"))

    score = score_insertion(_shipment("B"), route, context)

    assert is_rejected(score)
    assert score.reason is RejectReason.MISSING_DISTANCE
    assert validate_route(_route(_shipment("A"), _shipment("B")), context).reason is RejectReason.MISSING_DISTANCE
    assert is_route_valid(route, context)
