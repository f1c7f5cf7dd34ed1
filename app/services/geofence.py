"""Point-in-radius checks of a billboard location against the restricted-zone registry."""
import math
from collections.abc import Iterable

from app.schemas.violation import ViolationData, ZoneData

EARTH_RADIUS_METERS = 6_371_000.0

ZONE_VIOLATION_SEVERITY = "high"
ZONE_VIOLATION_CONFIDENCE = 95.0


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def describe_zone_violation(zone: ZoneData, distance: float) -> str:
    return (
        f"Located within {_round_half_up(distance)}m of {zone.name} ({zone.type}). "
        f"Minimum distance: {zone.radius_meters:g}m required."
    )


def matching_zones(lat: float, lng: float, zones: Iterable[ZoneData]) -> list[tuple[ZoneData, float]]:
    """Zones whose center lies within their radius of the point, boundary inclusive."""
    matches = []
    for zone in zones:
        distance = haversine_distance(lat, lng, zone.lat, zone.lng)
        if distance <= zone.radius_meters:
            matches.append((zone, distance))
    return matches


def evaluate_location(lat: float, lng: float, zones: Iterable[ZoneData]) -> list[ViolationData]:
    """One `location` violation per matching zone, in registry order.

    No I/O and no shared state: the result depends only on the arguments.
    """
    return [
        ViolationData(
            type="location",
            severity=ZONE_VIOLATION_SEVERITY,
            description=describe_zone_violation(zone, distance),
            confidence=ZONE_VIOLATION_CONFIDENCE,
        )
        for zone, distance in matching_zones(lat, lng, zones)
    ]
