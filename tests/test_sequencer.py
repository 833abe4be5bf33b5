from dispatch_planner.models.domain import Shipment, TemperatureCategory
from dispatch_planner.services.distances.matrix import DistanceMatrix
from dispatch_planner.services.planning.sequencer import nearest_neighbor, sequence_stops, store_sequence

DEPOT = "DC"


def _shipment(store: str, category: TemperatureCategory = TemperatureCategory.AMBIENT) -> Shipment:
    return Shipment(store_id=store, category=category, pallets=5)


def _matrix() -> DistanceMatrix:
    return DistanceMatrix.from_rows(
        [
            (DEPOT, "A", 10, 10),
            (DEPOT, "B", 20, 20),
            (DEPOT, "C", 30, 30),
            ("A", "B", 5, 5),
            ("B", "C", 5, 5),
            ("A", "C", 12, 12),
        ]
    )


def test_nearest_neighbor_from_depot():
    assert nearest_neighbor(["C", "B", "A"], DEPOT, _matrix(), DEPOT) == ["A", "B", "C"]


def test_nearest_neighbor_ties_keep_input_order():
    matrix = DistanceMatrix.from_rows([(DEPOT, "X", 10, 10), (DEPOT, "Y", 10, 10)])

    assert nearest_neighbor(["X", "Y"], DEPOT, matrix, DEPOT) == ["X", "Y"]
    assert nearest_neighbor(["Y", "X"], DEPOT, matrix, DEPOT) == ["Y", "X"]


def test_nearest_neighbor_uses_reverse_edges_between_stores():
    matrix = DistanceMatrix.from_rows([("C", "A", 5, 5), ("A", "B", 8, 8)])

    assert nearest_neighbor(["B", "C"], "A", matrix, DEPOT) == ["C", "B"]


def test_nearest_neighbor_appends_unreachable_stores_in_order():
    assert nearest_neighbor(["Q", "P", "R"], DEPOT, DistanceMatrix(), DEPOT) == ["Q", "P", "R"]


def test_ambient_stores_are_visited_before_cold_chain():
    stops = [
        _shipment("A", TemperatureCategory.CHILLER),
        _shipment("C"),
        _shipment("B"),
    ]

    ordered = sequence_stops(stops, DEPOT, _matrix())

    assert store_sequence(ordered) == ["B", "C", "A"]


def test_shipments_of_one_store_stay_together():
    first = _shipment("A")
    second = _shipment("B")
    third = _shipment("A", TemperatureCategory.PRODUCE)

    ordered = sequence_stops([first, second, third], DEPOT, _matrix())

    assert ordered == [first, third, second]


def test_sequencing_is_deterministic_and_idempotent():
    stops = [_shipment("C"), _shipment("A", TemperatureCategory.FREEZER), _shipment("B")]
    matrix = _matrix()

    once = sequence_stops(stops, DEPOT, matrix)
    again = sequence_stops(stops, DEPOT, matrix)
    twice = sequence_stops(once, DEPOT, matrix)

    assert once == again
    assert twice == once
