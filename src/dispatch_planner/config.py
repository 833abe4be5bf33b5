"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DSP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Dispatch Planner API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for planning inputs and outputs.")
    workbook_file: Path = Field(
        default=Path("data/planning_workbook.xlsx"),
        description="Planning workbook with shipments, carriers, restrictions and distances.",
    )
    warehouse_id: str = Field(default="US0007", description="Depot location id every route starts and ends at.")
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service used to fill missing distance pairs.",
    )
    osrm_profile: str = Field(default="driving", description="OSRM profile used for travel times.")
    osrm_max_retries: int = Field(default=3, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)

    # Route construction
    max_stops_per_route: int = Field(default=5, ge=1)
    max_route_mileage: float = Field(default=425.0, ge=0.0)
    preferred_max_leg_miles: float = Field(default=60.0, ge=0.0)
    hard_max_leg_miles: float = Field(default=75.0, ge=0.0)
    min_pallets_per_route: float = Field(default=20.0, ge=0.0)
    max_planning_attempts_per_shipment: int = Field(default=5, ge=1)
    cluster_relaxation_failure_threshold: int = Field(default=3, ge=0)
    relaxed_minimum_attempt_threshold: int = Field(default=4, ge=0)
    relaxed_minimum_factor: float = Field(default=0.8, gt=0.0, le=1.0)
    allow_mixed_temperature_zones: bool = True
    small_ambient_pallet_override_threshold: float = Field(default=6.0, ge=0.0)
    overplan_factor: float = Field(default=1.0, gt=0.0)
    rebalance_round_cap: int = Field(default=15, ge=0)
    fill_existing_routes_first: bool = Field(
        default=True,
        description="Offer unassigned shipments to held routes before seeding a new route.",
    )
    pull_forward_minimum_floor: float = Field(default=15.0, ge=0.0)

    # Duty cycle
    pallets_per_full_load: float = Field(default=26.0, gt=0.0)
    default_unload_minutes: float = Field(default=15.0, ge=0.0)
    break_after_on_duty_minutes: float = Field(default=480.0, gt=0.0)
    break_minutes: float = Field(default=30.0, ge=0.0)
    driving_limit_minutes: float = Field(default=660.0, gt=0.0)
    on_duty_limit_minutes: float = Field(default=840.0, gt=0.0)
    night_window: tuple[str, str] = Field(
        default=("19:00", "06:00"),
        description="Departure times from the first value until the second count as night for equipment rules.",
    )

    # Rebalancer scoring
    utilization_penalty_weight: float = Field(default=5000.0, ge=0.0)
    mileage_target_ratio: float = Field(default=0.85, gt=0.0, le=1.0)
    mileage_overage_penalty_weight: float = Field(default=1.0, ge=0.0)
    cluster_mixing_penalty: float = Field(default=800.0, ge=0.0)

    default_trailer_capacities: tuple[float, float, float] = Field(
        default=(18.0, 22.0, 26.0),
        description="Pallet capacities for 36', 48' and 53' trailers when a carrier does not list one.",
    )
    overspill_time_slot: str = Field(default="23:00")

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", "workbook_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", "night_window", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("default_trailer_capacities", mode="before")
    @classmethod
    def _parse_float_tuple_from_env(cls, value: Any) -> tuple[float, ...]:
        """Parse float tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(float(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(float(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            if "," in value:
                return tuple(float(item.strip()) for item in value.split(",") if item.strip())
        return tuple()


settings = Settings()
