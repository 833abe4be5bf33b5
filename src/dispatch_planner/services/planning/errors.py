"""Fatal planning errors raised when upstream data breaks the input contract."""

from __future__ import annotations


class PlanningInputError(ValueError):
    """Malformed input reached the planning core."""


class MissingDistanceError(PlanningInputError):
    """A depot to store distance needed for a single-stop route is unknown."""

    def __init__(self, from_id: str, to_id: str) -> None:
        super().__init__(f"Missing distance data from {from_id} to {to_id}.")
        self.from_id = from_id
        self.to_id = to_id
