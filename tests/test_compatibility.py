from dispatch_planner.models.domain import Restriction, Shipment, TemperatureCategory, TrailerSize
from dispatch_planner.services.planning.compatibility import (
    has_restrictions,
    is_temperature_compatible,
    required_trailer_size,
    temperature_zones,
)

NIGHT = ("19:00", "06:00")


def _shipment(store: str, category: TemperatureCategory, pallets: float = 5) -> Shipment:
    return Shipment(store_id=store, category=category, pallets=pallets)


def _compatible(stops, allow_mixed: bool = True, threshold: float = 6) -> bool:
    return is_temperature_compatible(stops, allow_mixed_zones=allow_mixed, small_ambient_threshold=threshold)


def test_freezer_only_rides_alone():
    assert _compatible([_shipment("S1", TemperatureCategory.FREEZER), _shipment("S2", TemperatureCategory.FREEZER)])
    assert not _compatible([_shipment("S1", TemperatureCategory.CHILLER), _shipment("S1", TemperatureCategory.FREEZER)])
    assert not _compatible([_shipment("S1", TemperatureCategory.AMBIENT), _shipment("S2", TemperatureCategory.FREEZER)])


def test_ambient_and_produce_mix_freely():
    assert _compatible(
        [_shipment("S1", TemperatureCategory.AMBIENT, 20), _shipment("S2", TemperatureCategory.PRODUCE, 20)],
        allow_mixed=False,
    )


def test_chiller_with_ambient_needs_mixed_zone_flag():
    stops = [_shipment("S1", TemperatureCategory.CHILLER, 10), _shipment("S1", TemperatureCategory.AMBIENT, 4)]

    assert not _compatible(stops, allow_mixed=False)
    assert _compatible(stops, allow_mixed=True)


def test_mixed_zone_threshold_applies_per_store():
    at_threshold = [_shipment("S1", TemperatureCategory.CHILLER, 10), _shipment("S1", TemperatureCategory.AMBIENT, 6)]
    over_threshold = [
        _shipment("S1", TemperatureCategory.CHILLER, 10),
        _shipment("S1", TemperatureCategory.AMBIENT, 4),
        _shipment("S1", TemperatureCategory.PRODUCE, 3),
    ]
    other_store = [_shipment("S1", TemperatureCategory.CHILLER, 10), _shipment("S2", TemperatureCategory.AMBIENT, 20)]

    assert _compatible(at_threshold)
    assert not _compatible(over_threshold)
    assert _compatible(other_store)


def test_required_trailer_size_follows_departure_time():
    restrictions = {
        "S1": Restriction(store_id="S1", equipment_day="36' only", equipment_night=None),
        "S2": Restriction(store_id="S2", equipment_day="48 ft max", equipment_night="48 ft max"),
    }

    assert required_trailer_size(["S1"], "08:00", restrictions, NIGHT) is TrailerSize.FT36
    assert required_trailer_size(["S1"], "22:00", restrictions, NIGHT) is TrailerSize.FT53
    assert required_trailer_size(["S2"], "22:00", restrictions, NIGHT) is TrailerSize.FT48
    assert required_trailer_size(["S1", "S2"], "08:00", restrictions, NIGHT) is TrailerSize.FT36
    assert required_trailer_size(["S3"], "08:00", restrictions, NIGHT) is TrailerSize.FT53


def test_has_restrictions_ignores_placeholders():
    restrictions = {
        "S1": Restriction(store_id="S1", noise="N/A"),
        "S2": Restriction(store_id="S2", noise="No deliveries before 6"),
        "S3": Restriction(store_id="S3", delivery_window="09:00-11:00"),
    }

    assert not has_restrictions(["S1"], restrictions)
    assert has_restrictions(["S1", "S2"], restrictions)
    assert has_restrictions(["S3"], restrictions)
    assert not has_restrictions(["S9"], restrictions)


def test_temperature_zones_in_fixed_order():
    stops = [_shipment("S1", TemperatureCategory.CHILLER), _shipment("S2", TemperatureCategory.AMBIENT)]

    assert temperature_zones(stops) == ["Ambient", "Chiller"]
