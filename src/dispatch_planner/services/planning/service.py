"""Dispatch planning orchestration for the HTTP layer."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ...config import settings
from ...data.workbook_repository import load_planning_inputs
from ...models.domain import (
    UNCLUSTERED,
    Address,
    Carrier,
    FailureReason,
    ProductDuration,
    Restriction,
    Route,
    Shipment,
    TimeSlot,
    TrailerSize,
)
from ...persistence.filesystem import FileStorage
from ...schemas.planning import (
    CarrierModel,
    PlanRequest,
    PlanResponse,
    ReplanCandidateModel,
    ReplanCandidatesRequest,
    ReplanCandidatesResponse,
    ReplanRequest,
    RouteModel,
    ShipmentModel,
    UnplannedGroupModel,
    UnusedCapacityModel,
    WorkbookPlanRequest,
)
from ..distances.enrichment import fill_missing_distances
from ..distances.matrix import DistanceMatrix
from ..distances.osrm_client import OSRMClient
from ..outputs.plan_formatter import plan_response_to_csv, plan_response_to_json
from .context import PlanningContext
from .evaluation import RouteSummary
from .overflow import OVERSPILL_CARRIER, UnplannedGroup, overspill_carrier
from .planner import PlanResult, generate_plan, next_route_number, replan_routes, routes_for_replanning

logger = logging.getLogger(__name__)

_SIZE_ORDER = (TrailerSize.FT36, TrailerSize.FT48, TrailerSize.FT53)


def _to_carrier(model: CarrierModel) -> Carrier:
    capacities = dict(zip(_SIZE_ORDER, settings.default_trailer_capacities))
    for size, pallets in model.capacities.items():
        try:
            capacities[TrailerSize(str(size).strip().rstrip("'"))] = float(pallets)
        except ValueError as exc:
            raise ValueError(f"Carrier {model.name} lists unknown trailer size '{size}'.") from exc
    return Carrier(
        name=model.name.strip(),
        cost_per_mile=model.cost_per_mile,
        cost_per_route=model.cost_per_route,
        cost_not_to_use=model.cost_not_to_use,
        capacities=capacities,
        time_slots=[TimeSlot(slot.label.strip(), slot.capacity) for slot in model.time_slots if slot.capacity > 0],
    )


def _to_shipment(model: ShipmentModel, addresses: dict[str, Address]) -> Shipment:
    store = model.store_id.strip()
    address = addresses.get(store)
    shipment = Shipment(
        store_id=store,
        category=model.category,
        pallets=model.pallets,
        product_type_id=model.product_type_id,
        pallet_type=model.pallet_type,
        secondary_pallet_type=model.secondary_pallet_type,
        delivery_window=model.delivery_window,
        cluster=model.cluster or (address.cluster if address else UNCLUSTERED),
    )
    if model.failure_reason:
        try:
            shipment.failure_reason = FailureReason(model.failure_reason)
        except ValueError:
            shipment.failure_reason = FailureReason.NO_VIABLE_CARRIER
    return shipment


def _shipment_model(shipment: Shipment) -> ShipmentModel:
    return ShipmentModel(
        store_id=shipment.store_id,
        category=shipment.category,
        pallets=shipment.pallets,
        product_type_id=shipment.product_type_id,
        pallet_type=shipment.pallet_type,
        secondary_pallet_type=shipment.secondary_pallet_type,
        delivery_window=shipment.delivery_window,
        cluster=shipment.cluster,
        failure_reason=shipment.failure_reason.value if shipment.failure_reason else None,
    )


def _route_model(summary: RouteSummary) -> RouteModel:
    return RouteModel(
        carrier=summary.carrier,
        route_id=summary.route_id,
        time_slot=summary.time_slot,
        cluster=summary.cluster,
        stop_count=summary.stop_count,
        stores=summary.stores,
        stop_sequence=summary.stop_sequence,
        detailed_route=summary.detailed_route,
        total_miles=summary.total_miles,
        has_restrictions=summary.has_restrictions,
        trailer_size=summary.trailer_size,
        temperature_zones=summary.temperature_zones,
        total_pallets=summary.total_pallets,
        utilization_pct=summary.utilization_pct,
        travel_minutes=summary.travel_minutes,
        stop_minutes=summary.stop_minutes,
        total_minutes=summary.total_minutes,
        duty_status=summary.duty_status,
        estimated_cost=summary.estimated_cost,
        mileage_status=summary.mileage_status,
        notes=summary.notes,
        map_link=summary.map_link,
        shipments=[_shipment_model(shipment) for shipment in summary.shipments],
    )


def _group_model(group: UnplannedGroup) -> UnplannedGroupModel:
    return UnplannedGroupModel(
        reason=group.reason,
        route_id=group.route_id,
        notes=group.notes,
        total_pallets=group.total_pallets,
        shipments=[_shipment_model(shipment) for shipment in group.shipments],
    )


def _build_context(payload: PlanRequest) -> PlanningContext:
    distances = DistanceMatrix.from_rows(
        (edge.from_id, edge.to_id, edge.distance_miles, edge.duration_minutes) for edge in payload.distances
    )
    restrictions = {
        item.store_id: Restriction(
            store_id=item.store_id,
            noise=item.noise,
            equipment_day=item.equipment_day,
            equipment_night=item.equipment_night,
            details=item.details,
            delivery_window=item.delivery_window,
        )
        for item in payload.restrictions
    }
    addresses = {
        item.store_id: Address(
            store_id=item.store_id,
            name=item.name,
            street=item.street,
            city=item.city,
            zip_code=item.zip_code,
            cluster=item.cluster or UNCLUSTERED,
            latitude=item.latitude,
            longitude=item.longitude,
        )
        for item in payload.addresses
    }
    durations = {
        (item.store_id, item.product_type_id): ProductDuration(item.loading_minutes, item.unloading_minutes)
        for item in payload.durations
    }
    overrides = payload.constraints.model_dump() if payload.constraints else None
    return PlanningContext.from_settings(
        distances=distances,
        restrictions=restrictions,
        durations=durations,
        addresses=addresses,
        overrides=overrides,
        warehouse_id=payload.warehouse_id,
    )


def _enrich_distances(context: PlanningContext, store_ids: Iterable[str]) -> int:
    if not settings.osrm_base_url or not isinstance(context.distances, DistanceMatrix):
        return 0
    locations = [context.warehouse_id, *dict.fromkeys(store_ids)]
    return fill_missing_distances(context.distances, locations, context.addresses, OSRMClient())


def _plan_response(
    plan: PlanResult,
    payload: PlanRequest | WorkbookPlanRequest,
    context: PlanningContext,
    extra: dict,
) -> PlanResponse:
    metadata = {
        "warehouse_id": context.warehouse_id,
        "route_count": len(plan.routes),
        "overspill_count": len(plan.overspill_routes),
        "unplanned_count": sum(len(group.shipments) for group in plan.unplanned),
        "next_route_number": plan.next_route_number,
        "requested_by": payload.requested_by,
        "run_label": payload.run_label,
        "notes": payload.notes,
        **plan.metadata,
        **extra,
    }
    response = PlanResponse(
        metadata=metadata,
        routes=[_route_model(summary) for summary in plan.route_summaries],
        overspill=[_route_model(summary) for summary in plan.overspill_summaries],
        unplanned=[_group_model(group) for group in plan.unplanned],
        unused_capacity=[
            UnusedCapacityModel(carrier=row.carrier, time_slot=row.time_slot, status=row.status, reason=row.reason)
            for row in plan.unused_capacity
        ],
        diagnostics=plan.diagnostics.as_dict(),
    )
    if payload.persist:
        storage = FileStorage()
        run_dir = storage.make_run_directory(prefix=f"plan_{payload.run_label}" if payload.run_label else "plan")
        response.metadata["output_path"] = str(run_dir)
        storage.write_json(run_dir / "summary.json", plan_response_to_json(response))
        storage.write_csv(run_dir / "routes.csv", plan_response_to_csv(response))
        logger.info(f"Saved plan outputs to {run_dir}")
    return response


def generate_dispatch_plan(payload: PlanRequest) -> PlanResponse:
    if not payload.shipments:
        raise ValueError("At least one shipment is required to generate a plan.")
    if not payload.carriers:
        raise ValueError("At least one carrier is required to generate a plan.")

    context = _build_context(payload)
    carriers = [_to_carrier(model) for model in payload.carriers]
    shipments = [_to_shipment(model, context.addresses) for model in payload.shipments]
    enriched = _enrich_distances(context, (shipment.store_id for shipment in shipments))

    plan = generate_plan(shipments, carriers, context)
    return _plan_response(plan, payload, context, {"shipment_count": len(shipments), "enriched_distance_pairs": enriched})


def generate_workbook_plan(payload: WorkbookPlanRequest) -> PlanResponse:
    """Generate a plan from the tables in ``settings.workbook_file``.

    Raises:
        FileNotFoundError: the workbook does not exist.
        ValueError: the workbook holds no shipments or no carriers.
    """
    inputs = load_planning_inputs()
    if not inputs.shipments:
        raise ValueError(f"No shipments found in {settings.workbook_file.name}.")
    if not inputs.carriers:
        raise ValueError(f"No carriers with departure slots found in {settings.workbook_file.name}.")

    context = PlanningContext.from_settings(
        distances=inputs.distances,
        restrictions=inputs.restrictions,
        durations=inputs.durations,
        addresses=inputs.addresses,
        overrides=payload.constraints.model_dump() if payload.constraints else None,
        warehouse_id=payload.warehouse_id,
    )
    enriched = _enrich_distances(context, (shipment.store_id for shipment in inputs.shipments))

    plan = generate_plan(inputs.shipments, inputs.carriers, context)
    return _plan_response(
        plan,
        payload,
        context,
        {
            "shipment_count": len(inputs.shipments),
            "enriched_distance_pairs": enriched,
            "source_workbook": settings.workbook_file.name,
        },
    )


def _restore_routes(models: Sequence[RouteModel], carriers: dict[str, Carrier], context: PlanningContext) -> list[Route]:
    routes: list[Route] = []
    for model in models:
        carrier = carriers.get(model.carrier)
        if carrier is None:
            raise ValueError(f"Route {model.route_id} references unknown carrier '{model.carrier}'.")
        route = Route(carrier=carrier, time_slot=model.time_slot, cluster=model.cluster, route_id=model.route_id, notes=model.notes)
        for shipment in model.shipments:
            route.add(_to_shipment(shipment, context.addresses))
        routes.append(route)
    return routes


def _restore_plan(response: PlanResponse, carriers: Sequence[Carrier], context: PlanningContext) -> PlanResult:
    by_name = {carrier.name: carrier for carrier in carriers}
    routes = _restore_routes(response.routes, by_name, context)
    overspill = _restore_routes(response.overspill, {OVERSPILL_CARRIER: overspill_carrier()}, context)
    unplanned = [
        UnplannedGroup(
            reason=group.reason,
            route_id=group.route_id,
            notes=group.notes,
            shipments=[_to_shipment(shipment, context.addresses) for shipment in group.shipments],
        )
        for group in response.unplanned
    ]
    return PlanResult(
        routes=routes,
        overspill_routes=overspill,
        unplanned=unplanned,
        carriers=list(carriers),
        next_route_number=next_route_number(route.route_id for route in routes),
    )


def replan_dispatch_plan(payload: ReplanRequest) -> PlanResponse:
    context = _build_context(payload.request)
    carriers = [_to_carrier(model) for model in payload.request.carriers]
    previous = _restore_plan(payload.plan, carriers, context)
    enriched = _enrich_distances(context, (shipment.store_id for shipment in previous.all_shipments()))

    plan = replan_routes(previous, payload.route_ids, carriers, context)
    return _plan_response(
        plan,
        payload.request,
        context,
        {"shipment_count": len(plan.all_shipments()), "enriched_distance_pairs": enriched},
    )


def replan_candidates(payload: ReplanCandidatesRequest) -> ReplanCandidatesResponse:
    selected = routes_for_replanning(payload.plan.routes, payload.filter)
    return ReplanCandidatesResponse(
        filter=payload.filter,
        routes=[
            ReplanCandidateModel(
                route_id=route.route_id,
                carrier=route.carrier,
                time_slot=route.time_slot,
                stop_count=route.stop_count,
                total_pallets=route.total_pallets,
                utilization_pct=route.utilization_pct,
                total_miles=route.total_miles,
                clusters=sorted({shipment.cluster or UNCLUSTERED for shipment in route.shipments}),
            )
            for route in selected
        ],
    )
