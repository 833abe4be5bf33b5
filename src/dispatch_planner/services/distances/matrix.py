"""In-memory distance oracle keyed by location id pairs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Protocol


@dataclass(slots=True, frozen=True)
class DistanceEdge:
    distance_miles: float
    duration_minutes: float


class DistanceOracle(Protocol):
    def lookup(self, from_id: str, to_id: str) -> Optional[DistanceEdge]:
        ...

    def lookup_either(self, from_id: str, to_id: str) -> Optional[DistanceEdge]:
        ...


class DistanceMatrix:
    """Directional distance/duration table.

    ``lookup`` only answers for the stored direction. ``lookup_either`` falls back to
    the reverse edge when the forward one is unknown.
    """

    def __init__(self, edges: dict[tuple[str, str], DistanceEdge] | None = None) -> None:
        self._edges: dict[tuple[str, str], DistanceEdge] = dict(edges or {})

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[str, str, float, float]]) -> "DistanceMatrix":
        matrix = cls()
        for from_id, to_id, miles, minutes in rows:
            matrix.add(from_id, to_id, miles, minutes)
        return matrix

    def add(self, from_id: str, to_id: str, distance_miles: float, duration_minutes: float) -> None:
        if not from_id or not to_id:
            raise ValueError("Distance edges need both a source and a destination id.")
        self._edges[(str(from_id), str(to_id))] = DistanceEdge(float(distance_miles), float(duration_minutes))

    def lookup(self, from_id: str, to_id: str) -> Optional[DistanceEdge]:
        return self._edges.get((from_id, to_id))

    def lookup_either(self, from_id: str, to_id: str) -> Optional[DistanceEdge]:
        edge = self._edges.get((from_id, to_id))
        if edge is None:
            edge = self._edges.get((to_id, from_id))
        return edge

    def missing_pairs(self, location_ids: Iterable[str]) -> list[tuple[str, str]]:
        ids = list(dict.fromkeys(location_ids))
        return [
            (from_id, to_id)
            for from_id in ids
            for to_id in ids
            if from_id != to_id and (from_id, to_id) not in self._edges
        ]

    def __contains__(self, pair: object) -> bool:
        return pair in self._edges

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._edges)

    def __len__(self) -> int:
        return len(self._edges)
