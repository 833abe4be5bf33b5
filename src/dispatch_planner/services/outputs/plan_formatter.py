"""Serializers for dispatch plan outputs."""

from __future__ import annotations

import csv
import io

from ...schemas.planning import PlanResponse, RouteModel

ROUTE_COLUMNS = [
    "carrier",
    "route_id",
    "time_slot",
    "cluster",
    "stop_count",
    "stop_sequence",
    "detailed_route",
    "total_miles",
    "restrictions",
    "trailer_size",
    "temperature_zones",
    "total_pallets",
    "utilization_pct",
    "travel_minutes",
    "stop_minutes",
    "total_minutes",
    "duty_status",
    "estimated_cost",
    "mileage_status",
    "notes",
    "map_link",
]


def plan_response_to_json(response: PlanResponse) -> dict:
    return response.model_dump(mode="json")


def _route_row(route: RouteModel) -> dict:
    return {
        "carrier": route.carrier,
        "route_id": route.route_id,
        "time_slot": route.time_slot,
        "cluster": route.cluster,
        "stop_count": route.stop_count,
        "stop_sequence": route.stop_sequence,
        "detailed_route": route.detailed_route,
        "total_miles": route.total_miles,
        "restrictions": "Yes" if route.has_restrictions else "No",
        "trailer_size": route.trailer_size,
        "temperature_zones": ", ".join(route.temperature_zones),
        "total_pallets": route.total_pallets,
        "utilization_pct": "N/A" if route.utilization_pct is None else route.utilization_pct,
        "travel_minutes": route.travel_minutes,
        "stop_minutes": route.stop_minutes,
        "total_minutes": route.total_minutes,
        "duty_status": route.duty_status,
        "estimated_cost": route.estimated_cost,
        "mileage_status": route.mileage_status,
        "notes": route.notes,
        "map_link": route.map_link or "",
    }


def plan_response_to_csv(response: PlanResponse) -> str:
    """One row per committed, overspill and manual-review route."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=ROUTE_COLUMNS)
    writer.writeheader()
    for route in [*response.routes, *response.overspill]:
        writer.writerow(_route_row(route))
    for group in response.unplanned:
        row = {column: "" for column in ROUTE_COLUMNS}
        row.update(
            {
                "carrier": group.reason,
                "route_id": group.route_id,
                "stop_count": len({shipment.store_id for shipment in group.shipments}),
                "stop_sequence": " / ".join(dict.fromkeys(shipment.store_id for shipment in group.shipments)),
                "total_pallets": group.total_pallets,
                "notes": group.notes,
            }
        )
        writer.writerow(row)
    return buffer.getvalue()
