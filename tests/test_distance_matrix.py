import pytest

from dispatch_planner.services.distances.matrix import DistanceEdge, DistanceMatrix


def _matrix() -> DistanceMatrix:
    return DistanceMatrix.from_rows([("DC", "S1", 50, 60), ("S2", "S1", 8, 12)])


def test_lookup_is_directional():
    matrix = _matrix()

    assert matrix.lookup("DC", "S1") == DistanceEdge(50.0, 60.0)
    assert matrix.lookup("S1", "DC") is None


def test_lookup_either_falls_back_to_reverse_edge():
    matrix = _matrix()

    assert matrix.lookup_either("S1", "S2") == DistanceEdge(8.0, 12.0)
    assert matrix.lookup_either("S1", "S3") is None


def test_missing_pairs_lists_unknown_directions():
    matrix = _matrix()

    missing = matrix.missing_pairs(["DC", "S1"])

    assert missing == [("S1", "DC")]


def test_add_requires_both_ids():
    matrix = DistanceMatrix()
    with pytest.raises(ValueError):
        matrix.add("", "S1", 1, 1)


def test_container_protocol():
    matrix = _matrix()

    assert ("DC", "S1") in matrix
    assert len(matrix) == 2
    assert set(matrix) == {("DC", "S1"), ("S2", "S1")}
