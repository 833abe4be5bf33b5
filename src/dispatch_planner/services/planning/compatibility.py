"""Load compatibility rules: temperature zones, trailer size and restriction flags."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from ...models.domain import Carrier, Restriction, Shipment, TemperatureCategory, TrailerSize
from .timewindows import is_night_departure, is_restricted_window

Ambient = TemperatureCategory.AMBIENT
Chiller = TemperatureCategory.CHILLER
Freezer = TemperatureCategory.FREEZER
Produce = TemperatureCategory.PRODUCE


def per_store_category_pallets(stops: Iterable[Shipment]) -> dict[str, dict[TemperatureCategory, float]]:
    counts: dict[str, dict[TemperatureCategory, float]] = defaultdict(lambda: defaultdict(float))
    for stop in stops:
        counts[stop.store_id][stop.category] += stop.pallets
    return counts


def is_temperature_compatible(
    stops: Sequence[Shipment],
    *,
    allow_mixed_zones: bool,
    small_ambient_threshold: float,
) -> bool:
    """Decide whether ``stops`` can share one trailer.

    Freezer freight never rides with any other category. Without the mixed-zone
    override, Chiller cannot ride with Ambient or Produce. With it, a store that
    receives Chiller may also receive at most ``small_ambient_threshold`` pallets of
    Ambient plus Produce.
    """
    categories = {stop.category for stop in stops}
    if Freezer in categories:
        return categories == {Freezer}
    if Chiller not in categories or not categories & {Ambient, Produce}:
        return True
    if not allow_mixed_zones:
        return False
    for counts in per_store_category_pallets(stops).values():
        if counts.get(Chiller, 0) <= 0:
            continue
        if counts.get(Ambient, 0) + counts.get(Produce, 0) > small_ambient_threshold:
            return False
    return True


def required_trailer_size(
    stores: Iterable[str],
    time_slot: str,
    restrictions: Mapping[str, Restriction],
    night_window: tuple[str, str],
) -> TrailerSize:
    """Smallest trailer any store on the route forces; 53' when none does."""
    night = is_night_departure(time_slot, night_window)
    requires_36 = False
    requires_48 = False
    for store in dict.fromkeys(stores):
        restriction = restrictions.get(store)
        if restriction is None:
            continue
        equipment = restriction.equipment_night if night else restriction.equipment_day
        if not equipment:
            continue
        if "36" in equipment:
            requires_36 = True
        if "48" in equipment:
            requires_48 = True
    if requires_36:
        return TrailerSize.FT36
    if requires_48:
        return TrailerSize.FT48
    return TrailerSize.FT53


def route_capacity(carrier: Carrier, stores: Iterable[str], time_slot: str, restrictions: Mapping[str, Restriction], night_window: tuple[str, str]) -> tuple[TrailerSize, float]:
    size = required_trailer_size(stores, time_slot, restrictions, night_window)
    return size, carrier.capacity_for(size)


def has_restrictions(stores: Iterable[str], restrictions: Mapping[str, Restriction]) -> bool:
    for store in stores:
        restriction = restrictions.get(store)
        if restriction is None:
            continue
        for value in (restriction.noise, restriction.equipment_night, restriction.equipment_day):
            if value and value.strip() and value.strip().upper() != "N/A":
                return True
        if is_restricted_window(restriction.delivery_window):
            return True
    return False


def temperature_zones(stops: Iterable[Shipment]) -> list[str]:
    order = [Ambient, Produce, Chiller, Freezer]
    present = {stop.category for stop in stops}
    return [category.value for category in order if category in present]
