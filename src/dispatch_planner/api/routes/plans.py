"""Dispatch plan endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...schemas.planning import (
    PlanRequest,
    PlanResponse,
    ReplanCandidatesRequest,
    ReplanCandidatesResponse,
    ReplanRequest,
    WorkbookPlanRequest,
)
from ...services.planning.service import (
    generate_dispatch_plan,
    generate_workbook_plan,
    replan_candidates,
    replan_dispatch_plan,
)

router = APIRouter(prefix="/plans", tags=["plans"])


@router.post("/generate", response_model=PlanResponse, status_code=status.HTTP_200_OK)
def generate(payload: PlanRequest) -> PlanResponse:
    try:
        return generate_dispatch_plan(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error generating dispatch plan: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate dispatch plan: {str(exc)}",
        ) from exc


@router.post("/generate-from-workbook", response_model=PlanResponse, status_code=status.HTTP_200_OK)
def generate_from_workbook(payload: WorkbookPlanRequest) -> PlanResponse:
    try:
        return generate_workbook_plan(payload)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error generating dispatch plan from workbook: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate dispatch plan: {str(exc)}",
        ) from exc


@router.post("/replan", response_model=PlanResponse, status_code=status.HTTP_200_OK)
def replan(payload: ReplanRequest) -> PlanResponse:
    try:
        return replan_dispatch_plan(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error re-planning routes: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to re-plan routes: {str(exc)}",
        ) from exc


@router.post("/replan-candidates", response_model=ReplanCandidatesResponse, status_code=status.HTTP_200_OK)
def candidates(payload: ReplanCandidatesRequest) -> ReplanCandidatesResponse:
    try:
        return replan_candidates(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
