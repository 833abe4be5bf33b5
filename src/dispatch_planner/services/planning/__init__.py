"""Dispatch planning engine exports."""

from .context import PlanningContext
from .errors import MissingDistanceError, PlanningInputError
from .planner import PlanResult, generate_plan, reconstruct_slot_usage, replan_routes, routes_for_replanning
from .scorer import Rejection, RejectReason, is_rejected, score_insertion

__all__ = [
    "PlanningContext",
    "PlanResult",
    "generate_plan",
    "replan_routes",
    "routes_for_replanning",
    "reconstruct_slot_usage",
    "score_insertion",
    "is_rejected",
    "Rejection",
    "RejectReason",
    "PlanningInputError",
    "MissingDistanceError",
]
